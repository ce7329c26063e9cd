"""Elasticsearch client wrapper that absorbs cluster backpressure.

This module provides :class:`ElasticClient`, a wrapper around
:class:`elasticsearch.AsyncElasticsearch` whose operations either return a
defined success value or raise an :class:`~elastic_db.errors.ElasticOperationError`
carrying a normalized reason. Backpressure (``es_rejected_execution_exception``)
is retried with a jittered, widening backoff owned by each call; bulk writes
re-submit only the rejected items.
"""

import logging
import re
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from elasticsearch import AsyncElasticsearch

from elastic_db.admin import verify_index, version_at_least
from elastic_db.bulk import classify_bulk_response
from elastic_db.config import ElasticSettings
from elastic_db.contracts import (
    BackoffRange,
    IndexVerification,
    NormalizedError,
    SliceRequest,
)
from elastic_db.errors import (
    BulkTransportError,
    ConfigurationError,
    FatalBulkItemError,
    IndexNotFoundError,
    SearchPhaseError,
    ShardFailureError,
    TransportOperationError,
)
from elastic_db.query import build_query
from elastic_db.shards import reconcile_shard_failures
from elastic_db.utils import (
    get_path,
    get_throttled_warning,
    normalize_error,
    parse_error,
    reduce_phase_retryable,
    wait_for_backoff,
)

logger = logging.getLogger(__name__)

BULK_OVERLOAD_WARNING = (
    "The elasticsearch cluster queues are overloaded, resubmitting failed queries from bulk"
)


def build_async_client(settings: ElasticSettings) -> AsyncElasticsearch:
    """Create the transport client described by ``settings``."""
    return AsyncElasticsearch(
        hosts=settings.hosts,
        api_key=settings.api_key,
        request_timeout=settings.request_timeout,
    )


def _body(response: Any) -> Any:
    """Unwrap transport response objects to their decoded body."""
    if isinstance(response, Mapping):
        return response
    return getattr(response, "body", response)


def _total_hits(response: Mapping[str, Any]) -> int:
    total = get_path(response, "hits.total", default=0)
    if isinstance(total, Mapping):
        return int(total.get("value", 0))
    return int(total)


class ElasticClient:
    """Backpressure-aware wrapper over the Elasticsearch read and write APIs."""

    def __init__(
        self,
        settings: ElasticSettings,
        async_es_client: AsyncElasticsearch,
    ):
        """Initialize the wrapper.

        Args:
            settings: Runtime settings (reader, backoff, logging).
            async_es_client: Initialized async Elasticsearch transport client.

        Raises:
            ConfigurationError: If no transport client is given.
        """
        if async_es_client is None:
            raise ConfigurationError("async_es_client is required")
        self.settings = settings
        self.client = async_es_client
        self._bulk_warning = get_throttled_warning(
            __name__, BULK_OVERLOAD_WARNING, settings.bulk_warning_interval_seconds
        )

    @classmethod
    def from_settings(cls, settings: ElasticSettings) -> "ElasticClient":
        """Create a wrapper and its transport client from settings."""
        return cls(settings, build_async_client(settings))

    async def close(self) -> None:
        """Close the underlying transport client."""
        await self.client.close()

    def _new_backoff(self) -> BackoffRange:
        return BackoffRange.from_config(self.settings.backoff)

    def _fail(self, error: Exception | NormalizedError) -> TransportOperationError:
        if not isinstance(error, NormalizedError):
            error = normalize_error(error)
        logger.error(error.message)
        return TransportOperationError(error.message)

    async def _call_with_retry(
        self,
        call: Callable[..., Awaitable[Any]],
        query: Mapping[str, Any],
    ) -> Any:
        """Run a single call, retrying it unchanged while the cluster pushes back.

        Args:
            call: Transport coroutine function.
            query: Keyword arguments for ``call``.

        Returns:
            Decoded response body.

        Raises:
            TransportOperationError: On any non-backpressure failure.
        """
        backoff = self._new_backoff()
        while True:
            try:
                return _body(await call(**query))
            except Exception as error:
                normalized = normalize_error(error)
                if not normalized.is_backpressure:
                    raise self._fail(normalized) from error
            await wait_for_backoff(backoff)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def _search_with_retry(self, query: Mapping[str, Any]) -> Mapping[str, Any]:
        """Search until every shard answers or a non-retryable failure occurs.

        Raises:
            ShardFailureError: If any shard failed for a reason other than
                backpressure.
            SearchPhaseError: If the reduce phase failed.
            TransportOperationError: On any other transport failure.
        """
        backoff = self._new_backoff()
        while True:
            try:
                data = _body(await self.client.search(**query))
            except Exception as error:
                normalized = normalize_error(error)
                retryable = reduce_phase_retryable(error)
                if retryable is not None:
                    logger.error(normalized.message)
                    raise SearchPhaseError(normalized.message, retryable=retryable) from error
                if not normalized.is_backpressure:
                    raise self._fail(normalized) from error
                await wait_for_backoff(backoff)
                continue

            shards = reconcile_shard_failures(data)
            if shards.action == "ok":
                return data
            if shards.action == "fail":
                logger.error(
                    "Not all shards returned successful, shard errors: %s", shards.reason
                )
                raise ShardFailureError(shards.reasons)
            await wait_for_backoff(backoff)

    async def search(self, query: Mapping[str, Any]) -> Any:
        """Search and return ``_source`` documents, or the raw response.

        The raw response is returned when ``reader.full_response`` is set.
        """
        data = await self._search_with_retry(query)
        if self.settings.reader.full_response:
            return data
        return [hit.get("_source") for hit in get_path(data, "hits.hits", default=[])]

    async def count(self, query: Mapping[str, Any]) -> int:
        """Return the total hit count of ``query`` without fetching documents."""
        data = await self._search_with_retry({**query, "size": 0})
        return _total_hits(data)

    async def get(self, query: Mapping[str, Any]) -> Any:
        """Fetch one document and return its ``_source``."""
        result = await self._call_with_retry(self.client.get, query)
        return result.get("_source")

    # ------------------------------------------------------------------
    # Point writes
    # ------------------------------------------------------------------

    async def index(self, query: Mapping[str, Any]) -> Any:
        """Index a document and return the raw result."""
        return await self._call_with_retry(self.client.index, query)

    async def index_with_id(self, query: Mapping[str, Any]) -> Any:
        """Index a document under an explicit id and return the document sent."""
        await self._call_with_retry(self.client.index, query)
        return query.get("document", query.get("body"))

    async def create(self, query: Mapping[str, Any]) -> Any:
        """Create a document and return the document sent."""
        await self._call_with_retry(self.client.create, query)
        return query.get("document", query.get("body"))

    async def update(self, query: Mapping[str, Any]) -> Any:
        """Apply a partial update and return the partial document sent."""
        await self._call_with_retry(self.client.update, query)
        if "doc" in query:
            return query["doc"]
        return get_path(query, "body.doc")

    async def remove(self, query: Mapping[str, Any]) -> bool:
        """Delete a document and return whether it existed."""
        result = await self._call_with_retry(self.client.delete, query)
        return bool(result.get("found", result.get("result") == "deleted"))

    # ------------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------------

    async def bulk_send(self, body: Sequence[Any]) -> Any:
        """Send a bulk body, re-submitting only items rejected for backpressure.

        Args:
            body: Alternating action metadata and documents.

        Returns:
            The response of the last bulk round.

        Raises:
            FatalBulkItemError: On the first item error that is neither
                ignorable nor retryable.
            BulkTransportError: If the bulk request itself fails. Transport
                failures are not retried.
        """
        backoff = self._new_backoff()
        pending = list(body)
        while True:
            try:
                results = _body(await self.client.bulk(operations=pending))
            except Exception as error:
                reason = f"bulk sender error: {parse_error(error)}"
                logger.error(reason)
                raise BulkTransportError(reason) from error

            if not results.get("errors"):
                return results

            classified = classify_bulk_response(pending, results)
            if classified.fatal is not None:
                logger.error("bulk item failed: %s", classified.fatal)
                raise FatalBulkItemError(classified.fatal)
            if not classified.to_retry:
                return results

            self._bulk_warning()
            pending = classified.to_retry
            await wait_for_backoff(backoff)

    # ------------------------------------------------------------------
    # Index administration
    # ------------------------------------------------------------------

    async def index_exists(self, query: Mapping[str, Any]) -> Any:
        """Check whether an index exists."""
        return await self._call_with_retry(self.client.indices.exists, query)

    async def index_create(self, query: Mapping[str, Any]) -> Any:
        """Create an index."""
        return await self._call_with_retry(self.client.indices.create, query)

    async def index_refresh(self, query: Mapping[str, Any]) -> Any:
        """Refresh an index."""
        return await self._call_with_retry(self.client.indices.refresh, query)

    async def index_recovery(self, query: Mapping[str, Any]) -> Any:
        """Return recovery status of an index."""
        return await self._call_with_retry(self.client.indices.recovery, query)

    async def put_template(self, template: Mapping[str, Any], name: str) -> Any:
        """Store an index template. Not retried."""
        try:
            return _body(await self.client.indices.put_template(name=name, body=template))
        except Exception as error:
            raise TransportOperationError(parse_error(error)) from error

    async def version(self) -> IndexVerification | None:
        """Check the cluster version and, on recent clusters, the reader index.

        Each matched index gets a warning about its ``max_result_window``,
        because slices larger than the window cannot be read.

        Returns:
            Matched indices, or ``None`` when the cluster is older than
            ``minimum_cluster_version`` and settings were not inspected.

        Raises:
            IndexNotFoundError: If the reader index matches nothing.
            ConfigurationError: If no reader index is configured or it is not
                a valid pattern.
            TransportOperationError: If the cluster calls fail.
        """
        try:
            stats = _body(await self.client.cluster.stats())
        except Exception as error:
            raise self._fail(error) from error

        cluster_version = str(get_path(stats, "nodes.versions", default=["0"])[0])
        if not version_at_least(cluster_version, self.settings.minimum_cluster_version):
            return None

        index_name = self.settings.reader.index
        if not index_name:
            raise ConfigurationError("reader index is not configured")

        try:
            index_settings = _body(await self.client.indices.get_settings())
        except Exception as error:
            raise self._fail(error) from error

        try:
            verification = verify_index(
                index_settings, index_name, self.settings.default_max_result_window
            )
        except re.error as error:
            raise ConfigurationError(f"invalid reader index pattern '{index_name}': {error}") from error

        if not verification.found:
            reason = "index specified in reader does not exist"
            logger.error(reason)
            raise IndexNotFoundError(reason)

        for window in verification.index_window_size:
            logger.warning(
                "max_result_window for index: %s is set at %d . On very large indices it is "
                "possible that a slice can not be divided to stay below this limit. If that "
                "occurs an error will be thrown by Elasticsearch and the slice can not be "
                "processed. Increasing max_result_window in the Elasticsearch index settings "
                "will resolve the problem.",
                window.name,
                window.window_size,
            )
        return verification

    async def node_info(self) -> Any:
        """Return node information."""
        try:
            return _body(await self.client.nodes.info())
        except Exception as error:
            raise TransportOperationError(parse_error(error)) from error

    async def node_stats(self) -> Any:
        """Return node statistics."""
        try:
            return _body(await self.client.nodes.stats())
        except Exception as error:
            raise TransportOperationError(parse_error(error)) from error

    # ------------------------------------------------------------------
    # Query construction
    # ------------------------------------------------------------------

    def build_query(self, msg: SliceRequest | Mapping[str, Any]) -> dict[str, Any]:
        """Build search arguments for a reader slice using reader settings."""
        if not isinstance(msg, SliceRequest):
            msg = SliceRequest.model_validate(msg)
        return build_query(self.settings.reader, msg)
