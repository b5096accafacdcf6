"""Time-partitioned commodity price store: index, shard loader, query API."""

from greco_tracker.storage.index import DateRangeIndex, IndexCache
from greco_tracker.storage.query import (
    BatchPricesResult,
    GetPricesResult,
    PriceQueryOptions,
    QueryMetadata,
    QueryService,
)
from greco_tracker.storage.shards import ShardFailure, ShardLoadResult, ShardStore

__all__ = [
    "BatchPricesResult",
    "DateRangeIndex",
    "GetPricesResult",
    "IndexCache",
    "PriceQueryOptions",
    "QueryMetadata",
    "QueryService",
    "ShardFailure",
    "ShardLoadResult",
    "ShardStore",
]
