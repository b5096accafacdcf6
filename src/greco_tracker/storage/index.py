"""Date-range index: which shard files cover which dates, per commodity.

The index file is built offline. At runtime it is read once and held in an
`IndexCache` until the TTL expires, then replaced wholesale on the next read.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import date
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from greco_tracker.core.exceptions import IndexLoadError, InvalidQueryError
from greco_tracker.core.models import (
    CommodityId,
    CommodityIndexEntry,
    IndexDocument,
    IndexStats,
    ShardInfo,
)

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60.0


class IndexCache:
    """Holds one parsed index document with a time-to-live.

    Readers only ever see a complete document: `put()` swaps a single
    reference, so there is no partially updated state.
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._data: IndexDocument | None = None
        self._loaded_at: float = 0.0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @property
    def loaded_at(self) -> float:
        return self._loaded_at

    def is_fresh(self) -> bool:
        return self._data is not None and (self._clock() - self._loaded_at) < self._ttl

    def get(self) -> IndexDocument | None:
        """Return the cached document, or None if empty or expired."""
        if self.is_fresh():
            return self._data
        return None

    def put(self, document: IndexDocument) -> None:
        self._data = document
        self._loaded_at = self._clock()

    def invalidate(self) -> None:
        self._data = None
        self._loaded_at = 0.0


class DateRangeIndex:
    """Answers "which shards intersect [start, end] for commodity X".

    Usage:
        index = DateRangeIndex(Path("data/indexes/date-range-index.json"))
        shards = index.get_shards_for_range("copper", date(1945, 1, 1), date(1955, 12, 31))
    """

    def __init__(
        self,
        index_path: Path | str,
        cache: IndexCache | None = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
    ) -> None:
        self._path = Path(index_path)
        self._cache = cache or IndexCache(ttl_seconds=ttl_seconds)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def cache(self) -> IndexCache:
        return self._cache

    def load(self) -> IndexDocument:
        """Return the index document, re-reading the file when the cache expired.

        Raises:
            IndexLoadError: The file is missing, is not JSON, or does not match
                the index schema. Fatal: no query can be served without it.
        """
        cached = self._cache.get()
        if cached is not None:
            return cached

        document = self._read()
        self._cache.put(document)
        logger.debug(
            "Loaded date-range index %s (%d commodities, %d records)",
            self._path, len(document.commodities), document.total_records,
        )
        return document

    def _read(self) -> IndexDocument:
        if not self._path.exists():
            logger.error("Date-range index not found: %s", self._path)
            raise IndexLoadError(
                f"Index file not found: {self._path}",
                context={"path": str(self._path), "reason": "missing"},
            )
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            return IndexDocument.model_validate(raw)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
            logger.error("Failed to load date-range index %s: %s", self._path, e)
            raise IndexLoadError(
                f"Failed to load index {self._path}: {e}",
                context={"path": str(self._path), "reason": type(e).__name__},
            ) from e

    def invalidate(self) -> None:
        """Drop the cached document so the next read goes to disk."""
        self._cache.invalidate()

    # --- Lookups ---

    def get_commodity(self, commodity_id: CommodityId) -> CommodityIndexEntry | None:
        return self.load().commodities.get(commodity_id)

    def has_commodity(self, commodity_id: CommodityId) -> bool:
        """True if the commodity is indexed and has at least one record."""
        entry = self.get_commodity(commodity_id)
        return entry is not None and entry.total_records > 0

    def list_commodities(self) -> list[CommodityIndexEntry]:
        return list(self.load().commodities.values())

    def get_shards_for_range(
        self,
        commodity_id: CommodityId,
        start: date,
        end: date,
    ) -> list[ShardInfo]:
        """Shards whose [startDate, endDate] overlaps [start, end].

        Order follows the index file and is not guaranteed to be
        chronological. Unknown commodities yield an empty list.
        """
        if start > end:
            raise InvalidQueryError(
                f"start ({start}) is after end ({end})",
                context={"start": str(start), "end": str(end)},
            )
        entry = self.get_commodity(commodity_id)
        if entry is None:
            logger.warning("No index data found for commodity: %s", commodity_id)
            return []
        return [s for s in entry.shards if s.overlaps(start, end)]

    def get_all_shards(self, commodity_id: CommodityId) -> list[ShardInfo]:
        entry = self.get_commodity(commodity_id)
        if entry is None:
            logger.warning("No index data found for commodity: %s", commodity_id)
            return []
        return list(entry.shards)

    def get_most_recent_shard(self, commodity_id: CommodityId) -> ShardInfo | None:
        shards = self.get_all_shards(commodity_id)
        if not shards:
            return None
        return max(shards, key=lambda s: s.end_date)

    def stats(self) -> IndexStats:
        document = self.load()
        return IndexStats(
            generated_at=document.generated_at,
            commodity_count=document.commodity_count,
            total_records=document.total_records,
            total_size_mb=document.total_size / (1024 * 1024),
        )
