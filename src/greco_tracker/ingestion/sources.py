"""Ordered upstream source plans and primary/fallback fetching."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping

from greco_tracker.core.exceptions import CommodityNotFoundError, UpstreamError
from greco_tracker.core.models import CommodityId, PricePoint

logger = logging.getLogger(__name__)

PriceFetcher = Callable[[CommodityId], Awaitable[list[PricePoint]]]

FRED = "fred"
WORLDBANK = "worldbank"


@dataclass(frozen=True)
class SourcePlan:
    """Upstream sources for one commodity, in the order they are tried."""

    commodity_id: CommodityId
    sources: tuple[str, ...]

    @property
    def primary(self) -> str:
        return self.sources[0]

    @property
    def fallbacks(self) -> tuple[str, ...]:
        return self.sources[1:]


def _plans(*entries: tuple[CommodityId, tuple[str, ...]]) -> dict[CommodityId, SourcePlan]:
    return {cid: SourcePlan(cid, sources) for cid, sources in entries}


# FRED is preferred where it carries daily or verified series; World Bank
# covers the rest of the agricultural and industrial commodities.
DEFAULT_SOURCE_PLANS: dict[CommodityId, SourcePlan] = _plans(
    # Precious metals
    ("gold", (FRED, WORLDBANK)),
    ("silver", (FRED, WORLDBANK)),
    ("platinum", (FRED, WORLDBANK)),
    # Base metals
    ("aluminum", (FRED, WORLDBANK)),
    ("copper", (FRED, WORLDBANK)),
    ("iron", (WORLDBANK,)),
    ("lead", (FRED, WORLDBANK)),
    ("nickel", (FRED, WORLDBANK)),
    ("tin", (FRED, WORLDBANK)),
    ("zinc", (FRED, WORLDBANK)),
    # Energy
    ("petroleum", (FRED, WORLDBANK)),
    # Industrial
    ("rubber", (WORLDBANK,)),
    ("hides", (WORLDBANK,)),
    # Grains
    ("barley", (WORLDBANK, FRED)),
    ("corn", (FRED, WORLDBANK)),
    ("rice", (WORLDBANK, FRED)),
    ("wheat", (FRED, WORLDBANK)),
    ("oats", (FRED,)),
    ("rye", (FRED,)),
    # Agricultural
    ("cocoa", (WORLDBANK,)),
    ("coffee", (WORLDBANK,)),
    ("copra", (WORLDBANK,)),
    ("cotton", (FRED, WORLDBANK)),
    ("peanuts", (FRED, WORLDBANK)),
    ("soybeans", (FRED, WORLDBANK)),
    ("sugar", (WORLDBANK,)),
    ("wool", (WORLDBANK,)),
)


async def fetch_with_fallback(
    commodity_id: CommodityId,
    fetchers: Mapping[str, PriceFetcher],
    plans: Mapping[CommodityId, SourcePlan] = DEFAULT_SOURCE_PLANS,
) -> tuple[str, list[PricePoint]]:
    """Fetch prices from the first source in the commodity's plan that succeeds.

    Args:
        commodity_id: Commodity to fetch.
        fetchers: Source name -> coroutine function taking the commodity id.
        plans: Ordered source plans, keyed by commodity id.

    Returns:
        (source_name, prices) from the source that answered.

    Raises:
        CommodityNotFoundError: If the commodity has no plan.
        UpstreamError: The last source's error when every source fails.
    """
    plan = plans.get(commodity_id)
    if plan is None:
        raise CommodityNotFoundError(
            f"No upstream source plan for commodity: {commodity_id!r}",
            context={"commodity_id": commodity_id, "supported": sorted(plans)},
        )

    last_error: UpstreamError | None = None
    for source in plan.sources:
        fetcher = fetchers.get(source)
        if fetcher is None:
            logger.warning("No fetcher configured for source %s, skipping %s", source, commodity_id)
            continue
        try:
            prices = await fetcher(commodity_id)
        except UpstreamError as e:
            logger.warning("Source %s failed for %s: %s", source, commodity_id, e)
            last_error = e
            continue
        if source != plan.primary:
            logger.info("Fetched %s from fallback source %s", commodity_id, source)
        return source, prices

    if last_error is not None:
        raise last_error
    raise UpstreamError(
        f"No configured source could serve {commodity_id!r}",
        context={"commodity_id": commodity_id, "sources": list(plan.sources)},
    )
