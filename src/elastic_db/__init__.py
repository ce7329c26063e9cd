"""Backpressure-aware retry layer over the Elasticsearch read and write APIs."""

from elastic_db.bulk import classify_bulk_response
from elastic_db.client import ElasticClient, build_async_client
from elastic_db.config import ElasticSettings, configure_logging, get_settings
from elastic_db.contracts import BackoffRange, ClassifiedBulkResult, SliceRequest
from elastic_db.errors import ElasticOperationError
from elastic_db.shards import reconcile_shard_failures

__all__ = [
    "BackoffRange",
    "ClassifiedBulkResult",
    "ElasticClient",
    "ElasticOperationError",
    "ElasticSettings",
    "SliceRequest",
    "build_async_client",
    "classify_bulk_response",
    "configure_logging",
    "get_settings",
    "reconcile_shard_failures",
]
