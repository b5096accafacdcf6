"""Greco value time series over a date grid."""

from __future__ import annotations

import logging
import time
from datetime import date, timedelta

import pandas as pd

from greco_tracker.core.exceptions import InvalidQueryError
from greco_tracker.core.models import BASE_CURRENCY, CurrencyId, GrecoValuation, Interval
from greco_tracker.valuation.engine import BasketValuationEngine
from greco_tracker.valuation.prices import PreloadedPriceSource, PriceLoader

logger = logging.getLogger(__name__)


def generate_date_grid(start: date, end: date, interval: Interval) -> list[date]:
    """Dates from `start` to `end` (inclusive) stepping by `interval`.

    Every date is offset from `start` itself (k * step months), so a day that
    does not exist in a shorter month clamps to that month's last day without
    drifting later dates: Jan 31 monthly gives Jan 31, Feb 28/29, Mar 31, Apr 30.

    Raises:
        InvalidQueryError: If start > end.
    """
    if start > end:
        raise InvalidQueryError(
            f"start ({start}) is after end ({end})",
            context={"start": str(start), "end": str(end)},
        )

    anchor = pd.Timestamp(start)
    step = interval.months
    dates: list[date] = []
    k = 0
    while True:
        d = (anchor + pd.DateOffset(months=k * step)).date()
        if d > end:
            break
        dates.append(d)
        k += 1
    return dates


class TimeSeriesOrchestrator:
    """Values the basket at every grid date using one batch price load.

    Usage:
        orchestrator = TimeSeriesOrchestrator(engine, loader)
        series = await orchestrator.generate(date(1950, 1, 31), date(1950, 12, 31))
    """

    def __init__(self, engine: BasketValuationEngine, loader: PriceLoader) -> None:
        self._engine = engine
        self._loader = loader

    async def generate(
        self,
        start: date,
        end: date,
        currency_id: CurrencyId = BASE_CURRENCY,
        interval: Interval = Interval.MONTHLY,
    ) -> list[GrecoValuation]:
        """Valuations in ascending date order. Dates without enough data are omitted.

        Raises:
            InvalidQueryError: If start > end.
        """
        dates = generate_date_grid(start, end, interval)
        started = time.perf_counter()

        settings = self._engine.settings
        load_start = start - timedelta(days=settings.buffer_before_days)
        load_end = end + timedelta(days=settings.buffer_after_days)
        prices = await self._loader.load_batch_prices(
            self._engine.basket.commodity_ids, load_start, load_end
        )
        source = PreloadedPriceSource(prices)

        series: list[GrecoValuation] = []
        for d in dates:
            valuation = await self._engine.calculate_greco_value(
                d, currency_id, preloaded=source
            )
            if valuation is not None:
                series.append(valuation)

        logger.info(
            "Generated %d/%d %s valuations (%s) for %s..%s in %.1fms",
            len(series), len(dates), interval.value, currency_id, start, end,
            (time.perf_counter() - started) * 1000,
        )
        return series
