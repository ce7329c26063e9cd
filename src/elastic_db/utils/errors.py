"""Normalization of raw client errors into reason strings.

Client errors come in several shapes: objects with a structured
serialization, raised exceptions with a traceback, errors wrapping a response
body, or arbitrary values. :func:`parse_error` turns any of them into a single
string and never raises itself.
"""

import json
import traceback
from collections.abc import Mapping
from typing import Any

from elastic_db.contracts import NormalizedError

REJECTED_EXECUTION = "es_rejected_execution_exception"
REDUCE_SEARCH_PHASE = "reduce_search_phase_exception"

_MISSING = object()


def get_path(value: Any, path: str, default: Any = None) -> Any:
    """Resolve a dotted path through mappings and attributes.

    Args:
        value: Root object (error, response or plain mapping).
        path: Dotted path such as ``"body.error.type"``.
        default: Returned when any segment is missing.

    Returns:
        The resolved value or ``default``.
    """
    current = value
    for segment in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(segment, _MISSING)
        else:
            current = getattr(current, segment, _MISSING)
        if current is _MISSING or current is None:
            return default
    return current


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return repr(value)


def _structured_form(error: Any) -> Any:
    for name in ("to_dict", "toJSON"):
        serializer = getattr(error, name, None)
        if callable(serializer):
            return serializer()
    return _MISSING


def parse_error(error: Any) -> str:
    """Return the most useful human-readable reason for ``error``.

    Priority: structured serialization (its ``msg``/``message`` field when
    present), then the traceback of a raised exception, then an embedded
    response body, then the value itself.

    Args:
        error: Anything a client call failed with.

    Returns:
        Reason string.
    """
    try:
        structured = _structured_form(error)
    except Exception as serialize_error:  # noqa: BLE001
        structured = {"serialization_error": repr(serialize_error)}

    if structured is not _MISSING:
        if isinstance(structured, Mapping):
            message = structured.get("msg") or structured.get("message")
            if message:
                return _to_text(message)
        return f"Unknown ES Error Format {_to_text(structured)}"

    if isinstance(error, BaseException) and error.__traceback__ is not None:
        return "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )

    for attribute in ("response", "body"):
        body = get_path(error, attribute)
        if body is not None:
            return _to_text(body)

    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return _to_text(error)


def is_backpressure_error(error: Any) -> bool:
    """Check whether the cluster rejected the call because its queues are full."""
    return get_path(error, "body.error.type") == REJECTED_EXECUTION


def reduce_phase_retryable(error: Any) -> bool | None:
    """Inspect a reduce-search-phase failure.

    Returns:
        ``None`` when ``error`` is not a reduce-phase failure, otherwise
        whether every root cause was a backpressure rejection.
    """
    if get_path(error, "body.error.type") != REDUCE_SEARCH_PHASE:
        return None
    root_causes = get_path(error, "body.error.root_cause", default=[])
    return all(get_path(cause, "type") == REJECTED_EXECUTION for cause in root_causes)


def normalize_error(error: Any) -> NormalizedError:
    """Build the reason and retry class for ``error``."""
    return NormalizedError(
        message=parse_error(error),
        is_backpressure=is_backpressure_error(error),
    )
