"""Partial shard failure handling for search and count responses."""

from collections.abc import Mapping
from typing import Any

from elastic_db.contracts import ShardReconciliation
from elastic_db.utils.errors import REJECTED_EXECUTION, get_path


def shard_failure_types(response: Mapping[str, Any]) -> list[str]:
    """Return distinct shard failure types in first-seen order."""
    reasons: list[str] = []
    for failure in get_path(response, "_shards.failures", default=[]):
        reason_type = get_path(failure, "reason.type")
        if reason_type not in reasons:
            reasons.append(reason_type)
    return reasons


def reconcile_shard_failures(response: Mapping[str, Any]) -> ShardReconciliation:
    """Decide whether a read with failed shards is usable, retryable or fatal.

    Only a report whose sole failure type is a backpressure rejection is
    retried; any other mix is fatal.

    Args:
        response: Search or count response.

    Returns:
        Decision with the distinct failure types.
    """
    if get_path(response, "_shards.failed", default=0) <= 0:
        return ShardReconciliation(action="ok")

    reasons = shard_failure_types(response)
    if reasons == [REJECTED_EXECUTION]:
        return ShardReconciliation(action="retry", reasons=reasons)
    return ShardReconciliation(action="fail", reasons=[str(r) for r in reasons])
