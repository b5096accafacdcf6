"""Price sources feeding the valuation engine.

The engine asks a `PriceSource` for each commodity's points inside a date
window. Two strategies implement it:

- **LazyPriceSource** queries the store for every requested window. Used for
  one-off valuations.
- **PreloadedPriceSource** slices an in-memory batch loaded once up front.
  Used by time-series generation so the store is hit once per commodity.
"""

from __future__ import annotations

import asyncio
import bisect
import logging
import time
from datetime import date
from typing import Mapping, Protocol, runtime_checkable

from greco_tracker.core.exceptions import CommodityNotFoundError, IndexLoadError
from greco_tracker.core.models import CommodityId, PricePoint
from greco_tracker.storage.query import PriceQueryOptions, QueryService

logger = logging.getLogger(__name__)

PriceMap = dict[CommodityId, list[PricePoint]]


@runtime_checkable
class PriceSource(Protocol):
    """Consumer-facing interface for windowed commodity prices."""

    async def get_window(
        self,
        commodity_ids: list[CommodityId],
        start: date,
        end: date,
    ) -> PriceMap:
        """Points dated within [start, end] for each requested commodity.

        Commodities without data map to an empty list.
        """
        ...


class PriceLoader:
    """Loads commodity price histories through the QueryService.

    Unknown commodities and failed loads yield empty lists (with a warning)
    instead of raising, so one bad commodity never sinks a valuation.
    """

    def __init__(self, query_service: QueryService) -> None:
        self._query = query_service

    async def load_prices(
        self, commodity_id: CommodityId, start: date, end: date
    ) -> list[PricePoint]:
        options = PriceQueryOptions(start_date=start, end_date=end)
        try:
            result = await self._query.get_prices(commodity_id, options)
        except CommodityNotFoundError:
            logger.warning("No price data for commodity %s", commodity_id)
            return []
        return result.prices

    async def load_batch_prices(
        self,
        commodity_ids: list[CommodityId],
        start: date,
        end: date,
    ) -> PriceMap:
        """Load every commodity concurrently for the same window."""
        started = time.perf_counter()
        outcomes = await asyncio.gather(
            *(self.load_prices(cid, start, end) for cid in commodity_ids),
            return_exceptions=True,
        )

        prices: PriceMap = {}
        for cid, outcome in zip(commodity_ids, outcomes):
            if isinstance(outcome, IndexLoadError):
                raise outcome
            if isinstance(outcome, Exception):
                logger.warning("Failed to load prices for %s: %s", cid, outcome)
                prices[cid] = []
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                prices[cid] = outcome

        logger.info(
            "Batch-loaded %d commodities (%d points) for %s..%s in %.1fms",
            len(commodity_ids), sum(len(p) for p in prices.values()),
            start, end, (time.perf_counter() - started) * 1000,
        )
        return prices


class LazyPriceSource:
    """Queries the store for each requested window."""

    def __init__(self, loader: PriceLoader) -> None:
        self._loader = loader

    async def get_window(
        self,
        commodity_ids: list[CommodityId],
        start: date,
        end: date,
    ) -> PriceMap:
        return await self._loader.load_batch_prices(commodity_ids, start, end)


class PreloadedPriceSource:
    """Serves windows out of an already loaded price map."""

    def __init__(self, prices: Mapping[CommodityId, list[PricePoint]]) -> None:
        self._points = {cid: sorted(pts, key=lambda p: p.date) for cid, pts in prices.items()}
        self._dates = {cid: [p.date for p in pts] for cid, pts in self._points.items()}

    @property
    def commodity_ids(self) -> list[CommodityId]:
        return list(self._points)

    def window(self, commodity_id: CommodityId, start: date, end: date) -> list[PricePoint]:
        dates = self._dates.get(commodity_id)
        if not dates:
            return []
        lo = bisect.bisect_left(dates, start)
        hi = bisect.bisect_right(dates, end)
        return self._points[commodity_id][lo:hi]

    async def get_window(
        self,
        commodity_ids: list[CommodityId],
        start: date,
        end: date,
    ) -> PriceMap:
        return {cid: self.window(cid, start, end) for cid in commodity_ids}
