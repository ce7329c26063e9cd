"""
Root test configuration for elastic_db tests.

Provides settings with a millisecond backoff window so retry loops run for
real without slowing the suite, and an ElasticClient backed by AsyncMock.
"""

from typing import Any, Generator
from unittest.mock import AsyncMock

import pytest

from elastic_db import ElasticClient
from elastic_db.config import BackoffConfig, ElasticSettings, ReaderConfig
from elastic_db.utils import throttle


class FakeTransportError(Exception):
    """Client error exposing a decoded response body, like ``elasticsearch.ApiError``."""

    def __init__(self, message: str, body: Any = None):
        super().__init__(message)
        self.body = body


def rejected_error() -> FakeTransportError:
    """Backpressure rejection as raised by the transport client."""
    return FakeTransportError(
        "rejected execution",
        body={"error": {"type": "es_rejected_execution_exception", "reason": "queue full"}},
    )


def search_response(
    hits: list[dict[str, Any]] | None = None,
    failures: list[str] | None = None,
    total: Any = None,
) -> dict[str, Any]:
    """Build a search response with optional shard failure types."""
    failures = failures or []
    hits = hits or []
    return {
        "_shards": {
            "total": 5,
            "failed": len(failures),
            "failures": [{"reason": {"type": reason}} for reason in failures],
        },
        "hits": {
            "total": len(hits) if total is None else total,
            "hits": [{"_source": hit} for hit in hits],
        },
    }


@pytest.fixture(autouse=True)
def reset_throttled_warnings() -> Generator[None, None, None]:
    """
    Reset process-wide warning gates before each test.

    Gates are cached module-level state; without the reset a warning emitted
    in one test would be throttled in the next.
    """
    throttle.reset_throttled_warnings()
    yield
    throttle.reset_throttled_warnings()


@pytest.fixture
def settings() -> ElasticSettings:
    """Settings with a 1-3ms backoff window and a configured reader index."""
    return ElasticSettings(
        reader=ReaderConfig(index="events-2024", date_field_name="created"),
        backoff=BackoffConfig(
            floor_ms=1,
            ceiling_ms=2,
            floor_step_ms=1,
            ceiling_step_ms=1,
            floor_cap_ms=2,
            ceiling_cap_ms=3,
        ),
    )


@pytest.fixture
def mock_es() -> AsyncMock:
    """AsyncMock standing in for AsyncElasticsearch."""
    return AsyncMock()


@pytest.fixture
def client(settings: ElasticSettings, mock_es: AsyncMock) -> ElasticClient:
    """ElasticClient wired to the mocked transport client."""
    return ElasticClient(settings, mock_es)


@pytest.fixture
def make_rejected_error() -> Any:
    """Factory for backpressure rejections."""
    return rejected_error


@pytest.fixture
def make_transport_error() -> Any:
    """Factory for transport errors carrying a response body."""
    return FakeTransportError


@pytest.fixture
def make_search_response() -> Any:
    """Factory for search responses."""
    return search_response
