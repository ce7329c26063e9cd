"""Search request construction for reader slices."""

from typing import Any

from elastic_db.config import ReaderConfig
from elastic_db.contracts import SliceRequest


def build_range_query(config: ReaderConfig, msg: SliceRequest) -> dict[str, Any]:
    """Build the bool query body for a slice.

    Clauses are added in order: date range (only when both ``start`` and
    ``end`` are set), ``_uid`` wildcard for ``key``, then the configured
    lucene query string.
    """
    must: list[dict[str, Any]] = []

    if msg.start and msg.end:
        must.append(
            {"range": {config.date_field_name: {"gte": msg.start, "lt": msg.end}}}
        )

    if msg.key:
        must.append({"wildcard": {"_uid": msg.key}})

    if config.query:
        must.append({"query_string": {"query": config.query}})

    return {"query": {"bool": {"must": must}}}


def build_query(config: ReaderConfig, msg: SliceRequest) -> dict[str, Any]:
    """Build search keyword arguments for a slice.

    Args:
        config: Reader configuration (index, date field, query, fields).
        msg: Slice description.

    Returns:
        Mapping usable as ``client.search(**query)``.
    """
    query: dict[str, Any] = {
        "index": config.index,
        "size": msg.count,
        "body": build_range_query(config, msg),
    }

    if config.fields:
        query["_source"] = config.fields

    return query
