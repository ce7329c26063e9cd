"""Utilities for the Elasticsearch client."""

from elastic_db.utils.errors import (
    get_path,
    is_backpressure_error,
    normalize_error,
    parse_error,
    reduce_phase_retryable,
)
from elastic_db.utils.retry import schedule_retry, wait_for_backoff
from elastic_db.utils.throttle import (
    ThrottledWarning,
    get_throttled_warning,
    reset_throttled_warnings,
)

__all__ = [
    "get_path",
    "is_backpressure_error",
    "normalize_error",
    "parse_error",
    "reduce_phase_retryable",
    "schedule_retry",
    "wait_for_backoff",
    "ThrottledWarning",
    "get_throttled_warning",
    "reset_throttled_warnings",
]
