"""Shard file loading: read, validate, concatenate and sort price arrays.

Shard files live under `prices_dir` (one directory per commodity) and hold a
JSON array of price points sorted by date descending. A bad shard never
raises: it is logged, contributes no rows, and is listed in the result's
`failures` so callers can surface a data-quality warning. Invalid records
inside an otherwise readable shard are skipped one by one; the shard keeps
its valid rows and is listed with the skipped count.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from greco_tracker.core.models import DateRange, PricePoint, ShardInfo

logger = logging.getLogger(__name__)

_PRICE_POINT = TypeAdapter(PricePoint)


@dataclass(frozen=True)
class ShardFailure:
    """A shard that could not be read, or had records skipped."""

    file: str
    reason: str


@dataclass(frozen=True)
class ShardLoadResult:
    """Combined output of loading one or more shards.

    `prices` is sorted by date descending. `date_range` is None when nothing
    was loaded.
    """

    prices: list[PricePoint]
    shards_loaded: list[str]
    date_range: DateRange | None
    failures: list[ShardFailure] = field(default_factory=list)

    @property
    def record_count(self) -> int:
        return len(self.prices)

    @property
    def ok(self) -> bool:
        return not self.failures


def _sort_desc(prices: list[PricePoint]) -> list[PricePoint]:
    return sorted(prices, key=lambda p: p.date, reverse=True)


def _range_of(prices: list[PricePoint]) -> DateRange | None:
    """Range of an already descending-sorted list."""
    if not prices:
        return None
    return DateRange(start=prices[-1].date, end=prices[0].date)


class ShardStore:
    """Reads shard files relative to a prices directory.

    Parameters
    ----------
    prices_dir : Path | str
        Root directory that shard `file` entries are relative to.
    """

    def __init__(self, prices_dir: Path | str) -> None:
        self._root = Path(prices_dir)

    @property
    def prices_dir(self) -> Path:
        return self._root

    async def load_shard(self, shard_file: str) -> list[PricePoint]:
        """Load one shard. Returns [] (and logs) if it is missing or malformed."""
        prices, _ = await self._read(shard_file)
        return prices

    async def _read(self, shard_file: str) -> tuple[list[PricePoint], ShardFailure | None]:
        path = self._root / shard_file
        return await asyncio.to_thread(self._read_sync, shard_file, path)

    def _read_sync(
        self, shard_file: str, path: Path
    ) -> tuple[list[PricePoint], ShardFailure | None]:
        if not path.exists():
            logger.warning("Shard file not found: %s", shard_file)
            return [], ShardFailure(shard_file, "file not found")

        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning("Error reading shard %s: %s", shard_file, e)
            return [], ShardFailure(shard_file, f"unreadable: {e}")

        if not isinstance(raw, list):
            logger.warning("Invalid shard data format in %s", shard_file)
            return [], ShardFailure(
                shard_file, f"expected a JSON array, got {type(raw).__name__}"
            )

        prices: list[PricePoint] = []
        skipped = 0
        for record in raw:
            try:
                prices.append(_PRICE_POINT.validate_python(record))
            except ValidationError as e:
                logger.warning("Skipping invalid record in shard %s: %s", shard_file, e)
                skipped += 1

        if skipped:
            return prices, ShardFailure(shard_file, f"invalid records: {skipped}")
        return prices, None

    async def load_shards(self, shard_files: list[str]) -> ShardLoadResult:
        """Load several shards concurrently and merge them newest-first.

        The overall date range comes from each shard's first and last
        element, relying on the per-shard descending sort.
        """
        outcomes = await asyncio.gather(*(self._read(f) for f in shard_files))

        all_prices: list[PricePoint] = []
        loaded: list[str] = []
        failures: list[ShardFailure] = []
        min_date: date | None = None
        max_date: date | None = None

        for shard_file, (prices, failure) in zip(shard_files, outcomes):
            if failure is not None:
                failures.append(failure)
            if not prices:
                continue
            all_prices.extend(prices)
            loaded.append(shard_file)

            shard_max = prices[0].date
            shard_min = prices[-1].date
            if min_date is None or shard_min < min_date:
                min_date = shard_min
            if max_date is None or shard_max > max_date:
                max_date = shard_max

        date_range = (
            DateRange(start=min_date, end=max_date)
            if min_date is not None and max_date is not None
            else None
        )
        return ShardLoadResult(
            prices=_sort_desc(all_prices),
            shards_loaded=loaded,
            date_range=date_range,
            failures=failures,
        )

    async def load_shards_for_date_range(
        self,
        shards: list[ShardInfo],
        start: date,
        end: date,
    ) -> ShardLoadResult:
        """Load only shards overlapping [start, end], then filter rows exactly."""
        relevant = [s for s in shards if s.overlaps(start, end)]
        if not relevant:
            return ShardLoadResult(
                prices=[],
                shards_loaded=[],
                date_range=DateRange(start=start, end=end),
            )

        result = await self.load_shards([s.file for s in relevant])
        filtered = [p for p in result.prices if start <= p.date <= end]

        return ShardLoadResult(
            prices=filtered,
            shards_loaded=result.shards_loaded,
            date_range=_range_of(filtered) or DateRange(start=start, end=end),
            failures=result.failures,
        )

    async def load_recent_prices(
        self,
        shards: list[ShardInfo],
        count: int,
    ) -> ShardLoadResult:
        """Load the `count` most recent records, newest shards first.

        Shards are read one at a time by descending end date and the walk
        stops as soon as enough rows are held, so older shards are never
        opened when recent data suffices.
        """
        if count <= 0:
            return ShardLoadResult(prices=[], shards_loaded=[], date_range=None)

        ordered = sorted(shards, key=lambda s: s.end_date, reverse=True)
        collected: list[PricePoint] = []
        loaded: list[str] = []
        failures: list[ShardFailure] = []

        for shard in ordered:
            if len(collected) >= count:
                break
            prices, failure = await self._read(shard.file)
            if failure is not None:
                failures.append(failure)
            if prices:
                collected.extend(prices)
                loaded.append(shard.file)

        truncated = _sort_desc(collected)[:count]
        return ShardLoadResult(
            prices=truncated,
            shards_loaded=loaded,
            date_range=_range_of(truncated),
            failures=failures,
        )
