"""Tests for valuation.timeseries: date grid and TimeSeriesOrchestrator."""

from datetime import date

import pytest

from greco_tracker.core.exceptions import InvalidQueryError
from greco_tracker.core.models import Interval, ValuationQuality
from greco_tracker.valuation.engine import BasketValuationEngine
from greco_tracker.valuation.timeseries import TimeSeriesOrchestrator, generate_date_grid


class TestGenerateDateGrid:
    def test_month_end_clamping(self):
        grid = generate_date_grid(date(2023, 1, 31), date(2023, 5, 31), Interval.MONTHLY)
        assert grid == [
            date(2023, 1, 31),
            date(2023, 2, 28),
            date(2023, 3, 31),
            date(2023, 4, 30),
            date(2023, 5, 31),
        ]

    def test_leap_february(self):
        grid = generate_date_grid(date(2024, 1, 31), date(2024, 3, 1), Interval.MONTHLY)
        assert grid == [date(2024, 1, 31), date(2024, 2, 29)]

    def test_no_month_skipped_or_duplicated(self):
        grid = generate_date_grid(date(2020, 1, 31), date(2021, 12, 31), Interval.MONTHLY)
        months = [(d.year, d.month) for d in grid]
        assert len(months) == 24
        assert len(set(months)) == 24

    def test_quarterly(self):
        grid = generate_date_grid(date(2023, 1, 15), date(2023, 12, 31), Interval.QUARTERLY)
        assert grid == [date(2023, 1, 15), date(2023, 4, 15), date(2023, 7, 15), date(2023, 10, 15)]

    def test_annual_from_leap_day(self):
        grid = generate_date_grid(date(2020, 2, 29), date(2024, 3, 1), Interval.ANNUAL)
        assert grid == [
            date(2020, 2, 29),
            date(2021, 2, 28),
            date(2022, 2, 28),
            date(2023, 2, 28),
            date(2024, 2, 29),
        ]

    def test_single_day(self):
        assert generate_date_grid(date(2023, 5, 5), date(2023, 5, 5), Interval.MONTHLY) == [
            date(2023, 5, 5)
        ]

    def test_end_inclusive(self):
        grid = generate_date_grid(date(2023, 1, 1), date(2023, 3, 1), Interval.MONTHLY)
        assert grid[-1] == date(2023, 3, 1)

    def test_start_after_end(self):
        with pytest.raises(InvalidQueryError):
            generate_date_grid(date(2023, 2, 1), date(2023, 1, 1), Interval.MONTHLY)


class RecordingLoader:
    """PriceLoader stand-in that serves a fixed map and counts batch loads."""

    def __init__(self, prices: dict):
        self._prices = prices
        self.batch_calls: list[tuple] = []

    async def load_batch_prices(self, commodity_ids, start, end):
        self.batch_calls.append((tuple(commodity_ids), start, end))
        return {cid: self._prices.get(cid, []) for cid in commodity_ids}


class TestTimeSeriesOrchestrator:
    async def test_single_batch_load_with_buffer(self, gold_wheat_basket, make_point):
        loader = RecordingLoader(
            {
                "gold": [make_point(date(2000, m, 1), 100.0) for m in range(1, 13)],
                "wheat": [make_point(date(2000, m, 1), 10.0) for m in range(1, 13)],
            }
        )
        orchestrator = TimeSeriesOrchestrator(BasketValuationEngine(gold_wheat_basket), loader)

        series = await orchestrator.generate(date(2000, 1, 1), date(2000, 12, 1))

        assert len(loader.batch_calls) == 1
        ids, start, end = loader.batch_calls[0]
        assert ids == ("gold", "wheat")
        assert start == date(1999, 10, 3)
        assert end == date(2000, 12, 31)
        assert len(series) == 12
        assert all(v.value == pytest.approx(55.0) for v in series)
        assert [v.date for v in series] == sorted(v.date for v in series)

    async def test_insufficient_dates_omitted(self, gold_wheat_basket, make_point):
        loader = RecordingLoader(
            {
                "gold": [make_point(date(2000, m, 1), 100.0) for m in range(1, 13)],
                # wheat only in the first quarter
                "wheat": [make_point(date(2000, m, 1), 10.0) for m in range(1, 4)],
            }
        )
        orchestrator = TimeSeriesOrchestrator(BasketValuationEngine(gold_wheat_basket), loader)

        series = await orchestrator.generate(date(2000, 1, 1), date(2000, 12, 1))

        # Mar 1 wheat is within 90 days up to May 1; Jun 1 is 92 days later
        assert [v.date.month for v in series] == [1, 2, 3, 4, 5]
        assert all(v.quality == ValuationQuality.HIGH for v in series)

    async def test_all_missing_gives_empty(self, gold_wheat_basket):
        orchestrator = TimeSeriesOrchestrator(
            BasketValuationEngine(gold_wheat_basket), RecordingLoader({})
        )
        assert await orchestrator.generate(date(2000, 1, 1), date(2000, 6, 1)) == []

    async def test_start_after_end(self, gold_wheat_basket):
        loader = RecordingLoader({})
        orchestrator = TimeSeriesOrchestrator(BasketValuationEngine(gold_wheat_basket), loader)
        with pytest.raises(InvalidQueryError):
            await orchestrator.generate(date(2000, 6, 1), date(2000, 1, 1))
        assert loader.batch_calls == []

    async def test_quarterly_interval(self, gold_wheat_basket, make_point):
        loader = RecordingLoader(
            {
                "gold": [make_point(date(2000, m, 1), 100.0) for m in range(1, 13)],
                "wheat": [make_point(date(2000, m, 1), 10.0) for m in range(1, 13)],
            }
        )
        orchestrator = TimeSeriesOrchestrator(BasketValuationEngine(gold_wheat_basket), loader)
        series = await orchestrator.generate(
            date(2000, 1, 1), date(2000, 12, 31), interval=Interval.QUARTERLY
        )
        assert [v.date for v in series] == [
            date(2000, 1, 1),
            date(2000, 4, 1),
            date(2000, 7, 1),
            date(2000, 10, 1),
        ]
