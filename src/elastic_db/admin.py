"""Cluster version and index settings inspection."""

import re
from collections.abc import Mapping
from typing import Any

from elastic_db.contracts import IndexVerification, IndexWindow
from elastic_db.utils.errors import get_path


def parse_version(version: str) -> tuple[int, ...]:
    """Parse the numeric prefix of each dotted component.

    ``"7.10.2"`` becomes ``(7, 10, 2)`` and ``"8.0.0-SNAPSHOT"`` ``(8, 0, 0)``.
    """
    parts: list[int] = []
    for component in version.split("."):
        digits = re.match(r"\d+", component)
        parts.append(int(digits.group()) if digits else 0)
    return tuple(parts)


def version_at_least(version: str, minimum: str) -> bool:
    """Compare dotted versions numerically."""
    current, required = parse_version(version), parse_version(minimum)
    width = max(len(current), len(required))
    return current + (0,) * (width - len(current)) >= required + (0,) * (
        width - len(required)
    )


def _window_size(index_settings: Any, default: int) -> int:
    return int(get_path(index_settings, "settings.index.max_result_window", default=default))


def verify_index(
    index_settings: Mapping[str, Any], name: str, default_window: int = 10000
) -> IndexVerification:
    """Find indices matching ``name`` and their result windows.

    An exact index name wins; otherwise ``name`` is used as a regular
    expression searched in every index name.

    Args:
        index_settings: ``indices.get_settings`` response keyed by index name.
        name: Index name or pattern.
        default_window: Window reported when an index does not set one.

    Returns:
        Matched indices with their ``max_result_window``.
    """
    if name in index_settings:
        return IndexVerification(
            found=True,
            index_window_size=[
                IndexWindow(
                    name=name,
                    window_size=_window_size(index_settings[name], default_window),
                )
            ],
        )

    pattern = re.compile(name)
    windows = [
        IndexWindow(name=key, window_size=_window_size(value, default_window))
        for key, value in index_settings.items()
        if pattern.search(key)
    ]
    return IndexVerification(found=bool(windows), index_window_size=windows)
