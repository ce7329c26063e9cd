"""Domain errors raised by the retrying Elasticsearch wrappers.

Every error carries a normalized, human-readable ``reason`` string. Retryable
conditions never escape the wrappers; only what is listed here does.
"""


class ElasticOperationError(RuntimeError):
    """Base class for Elasticsearch domain errors."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ConfigurationError(ElasticOperationError):
    """Raised when client/configuration is invalid."""


class TransportOperationError(ElasticOperationError):
    """Raised for non-retryable transport failures on single calls."""


class BulkTransportError(ElasticOperationError):
    """Raised when the bulk request itself fails at the transport level."""


class FatalBulkItemError(ElasticOperationError):
    """Raised for the first bulk item whose error is neither ignorable nor retryable."""


class ShardFailureError(ElasticOperationError):
    """Raised when a read reports shard failures other than backpressure."""

    def __init__(self, reasons: list[str]):
        super().__init__(" | ".join(reasons))
        self.reasons = reasons


class SearchPhaseError(TransportOperationError):
    """Raised when the reduce search phase fails.

    ``retryable`` records whether every root cause was a backpressure
    rejection. The wrappers still surface the error in that case.
    """

    def __init__(self, reason: str, retryable: bool):
        super().__init__(reason)
        self.retryable = retryable


class IndexNotFoundError(ElasticOperationError):
    """Raised when the configured reader index matches no index in the cluster."""
