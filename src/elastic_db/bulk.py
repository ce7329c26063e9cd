"""Classification of per-item bulk results.

A bulk request body alternates action metadata and documents, so result
``i`` belongs to the request pair at ``2i`` and ``2i + 1``. Items are
classified in order:

- no error: success
- status 409: the document already exists, ignored
- ``es_rejected_execution_exception``: backpressure, the pair is re-queued
- ``document_already_exists_exception`` / ``document_missing_exception``:
  acceptable outcome, ignored
- anything else: fatal, classification stops at the first one
"""

from collections.abc import Mapping, Sequence
from typing import Any

from elastic_db.contracts import BulkItemResult, ClassifiedBulkResult
from elastic_db.utils.errors import REJECTED_EXECUTION

DOCUMENT_EXISTS = 409

IGNORABLE_ERROR_TYPES = frozenset(
    {"document_already_exists_exception", "document_missing_exception"}
)


def _item_result(item: Mapping[str, Any]) -> BulkItemResult:
    # keyed by action name (index/create/update/delete)
    return BulkItemResult.model_validate(next(iter(item.values()), {}))


def classify_bulk_response(
    request_body: Sequence[Any], results: Mapping[str, Any]
) -> ClassifiedBulkResult:
    """Split a bulk response into retryable request pairs or a fatal reason.

    Args:
        request_body: The alternating metadata/document body that was sent.
        results: Bulk response carrying an ``items`` sequence.

    Returns:
        Classified result. ``fatal`` holds ``"<type>--<reason>"`` of the first
        fatal item, in which case nothing is queued for retry.
    """
    to_retry: list[Any] = []

    for position, item in enumerate(results.get("items") or []):
        result = _item_result(item)
        error = result.error
        if error is None:
            continue
        if result.status == DOCUMENT_EXISTS:
            continue
        if error.type == REJECTED_EXECUTION:
            to_retry.extend(request_body[position * 2 : position * 2 + 2])
            continue
        if error.type in IGNORABLE_ERROR_TYPES:
            continue
        return ClassifiedBulkResult(fatal=f"{error.type}--{error.reason}")

    return ClassifiedBulkResult(to_retry=to_retry)
