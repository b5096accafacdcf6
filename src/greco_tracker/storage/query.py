"""Public price query API composing the index and the shard store."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date
from typing import Callable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from greco_tracker.core.exceptions import CommodityNotFoundError, InvalidQueryError
from greco_tracker.core.models import CommodityId, DateRange, PricePoint, QualityTier
from greco_tracker.storage.index import DateRangeIndex
from greco_tracker.storage.shards import ShardLoadResult, ShardStore

logger = logging.getLogger(__name__)


class PriceQueryOptions(BaseModel):
    """Optional filters for a single-commodity price query."""

    model_config = ConfigDict(frozen=True)

    start_date: date | None = None
    end_date: date | None = None
    quality: frozenset[QualityTier] | None = None
    limit: int | None = Field(default=None, ge=0)
    offset: int = Field(default=0, ge=0)

    @field_validator("quality", mode="before")
    @classmethod
    def single_tier_to_set(cls, v: object) -> object:
        if isinstance(v, str):
            return frozenset({v})
        return v

    @property
    def has_explicit_range(self) -> bool:
        return self.start_date is not None or self.end_date is not None


class QueryMetadata(BaseModel):
    """Provenance of one query result."""

    model_config = ConfigDict(frozen=True)

    date_range: DateRange | None
    record_count: int
    shards_loaded: list[str]
    failed_shards: dict[str, str] = {}
    query_time_ms: float
    truncated: bool


class GetPricesResult(BaseModel):
    """Prices for one commodity plus query metadata."""

    model_config = ConfigDict(frozen=True)

    commodity_id: CommodityId
    prices: list[PricePoint]
    metadata: QueryMetadata


@dataclass
class BatchPricesResult:
    """Independent per-commodity outcomes of a batch query."""

    results: dict[CommodityId, GetPricesResult] = field(default_factory=dict)
    errors: dict[CommodityId, Exception] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


def _years_before(d: date, years: int) -> date:
    try:
        return d.replace(year=d.year - years)
    except ValueError:
        # Feb 29 in a non-leap target year
        return d.replace(year=d.year - years, day=28)


class QueryService:
    """Single entry point for commodity price queries.

    Parameters
    ----------
    index : DateRangeIndex
        Shard catalogue (with its own TTL cache).
    store : ShardStore
        Shard file reader.
    default_lookback_years : int
        Trailing window used when a query gives no date bounds.
    today : Callable[[], date]
        Clock for "now"; injectable for tests.
    recent_count : int
        Default row count for `get_recent_prices`.
    """

    def __init__(
        self,
        index: DateRangeIndex,
        store: ShardStore,
        default_lookback_years: int = 5,
        today: Callable[[], date] = date.today,
        recent_count: int = 12,
    ) -> None:
        self._index = index
        self._store = store
        self._lookback_years = default_lookback_years
        self._recent_count = recent_count
        self._today = today

    @property
    def index(self) -> DateRangeIndex:
        return self._index

    def resolve_range(self, options: PriceQueryOptions) -> tuple[date, date]:
        """Fill missing bounds: end defaults to today, start to end - lookback."""
        end = options.end_date or self._today()
        start = options.start_date or _years_before(end, self._lookback_years)
        if start > end:
            raise InvalidQueryError(
                f"start_date ({start}) is after end_date ({end})",
                context={"start": str(start), "end": str(end)},
            )
        return start, end

    async def get_prices(
        self,
        commodity_id: CommodityId,
        options: PriceQueryOptions | None = None,
    ) -> GetPricesResult:
        """Get prices for one commodity, newest first.

        Raises:
            CommodityNotFoundError: The commodity is not in the index.
            InvalidQueryError: start_date is after end_date.
        """
        options = options or PriceQueryOptions()
        started = time.perf_counter()

        entry = self._index.get_commodity(commodity_id)
        if entry is None:
            raise CommodityNotFoundError(
                f"Commodity not found: {commodity_id}",
                context={"commodity_id": commodity_id},
            )

        load: ShardLoadResult
        if options.limit is not None and not options.has_explicit_range:
            # Recent path: one extra row tells us whether more data exists.
            wanted = options.offset + options.limit + 1
            load = await self._store.load_recent_prices(entry.shards, wanted)
        else:
            start, end = self.resolve_range(options)
            shards = self._index.get_shards_for_range(commodity_id, start, end)
            load = await self._store.load_shards_for_date_range(shards, start, end)

        prices = load.prices
        if options.quality:
            prices = [p for p in prices if p.quality in options.quality]

        page, truncated = _paginate(prices, options.limit, options.offset)

        if load.failures:
            logger.warning(
                "Query for %s skipped %d unreadable shard(s)",
                commodity_id, len(load.failures),
            )

        return GetPricesResult(
            commodity_id=commodity_id,
            prices=page,
            metadata=QueryMetadata(
                date_range=load.date_range,
                record_count=len(page),
                shards_loaded=load.shards_loaded,
                failed_shards={f.file: f.reason for f in load.failures},
                query_time_ms=round((time.perf_counter() - started) * 1000, 3),
                truncated=truncated,
            ),
        )

    async def get_recent_prices(
        self, commodity_id: CommodityId, count: int | None = None
    ) -> GetPricesResult:
        """The `count` most recent records for a commodity.

        `count` defaults to the service's `recent_count`. Fewer rows come back
        when the commodity holds fewer records.
        """
        if count is None:
            count = self._recent_count
        return await self.get_prices(commodity_id, PriceQueryOptions(limit=count))

    async def get_all_prices(self, commodity_id: CommodityId) -> GetPricesResult:
        """Full history for a commodity."""
        started = time.perf_counter()
        entry = self._index.get_commodity(commodity_id)
        if entry is None:
            raise CommodityNotFoundError(
                f"Commodity not found: {commodity_id}",
                context={"commodity_id": commodity_id},
            )
        load = await self._store.load_shards([s.file for s in entry.shards])
        return GetPricesResult(
            commodity_id=commodity_id,
            prices=load.prices,
            metadata=QueryMetadata(
                date_range=load.date_range,
                record_count=load.record_count,
                shards_loaded=load.shards_loaded,
                failed_shards={f.file: f.reason for f in load.failures},
                query_time_ms=round((time.perf_counter() - started) * 1000, 3),
                truncated=False,
            ),
        )

    async def get_batch_prices(
        self,
        commodity_ids: list[CommodityId],
        options: PriceQueryOptions | None = None,
    ) -> BatchPricesResult:
        """Run `get_prices` for each id concurrently.

        A failure for one id is recorded in `errors` and never cancels the
        others.
        """
        outcomes = await asyncio.gather(
            *(self.get_prices(cid, options) for cid in commodity_ids),
            return_exceptions=True,
        )

        batch = BatchPricesResult()
        for cid, outcome in zip(commodity_ids, outcomes):
            if isinstance(outcome, GetPricesResult):
                batch.results[cid] = outcome
            elif isinstance(outcome, Exception):
                logger.warning("Batch query failed for %s: %s", cid, outcome)
                batch.errors[cid] = outcome
            else:
                raise outcome
        return batch

    def has_commodity(self, commodity_id: CommodityId) -> bool:
        return self._index.has_commodity(commodity_id)

    def available_commodities(self) -> list[CommodityId]:
        return [entry.commodity_id for entry in self._index.list_commodities()]


def _paginate(
    prices: list[PricePoint],
    limit: int | None,
    offset: int,
) -> tuple[list[PricePoint], bool]:
    """Apply offset then limit; report whether rows remain past the page."""
    if limit is None:
        return prices[offset:], False
    page = prices[offset : offset + limit]
    return page, len(prices) > offset + limit
