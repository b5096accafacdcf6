"""Basket valuation: the Greco unit value for one date and currency."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Mapping, Protocol

from greco_tracker.core.config import ValuationConfig
from greco_tracker.core.exceptions import InvalidQueryError
from greco_tracker.core.models import (
    BASE_CURRENCY,
    Basket,
    CommodityId,
    CurrencyId,
    GrecoValuation,
    PricePoint,
    QualityPolicyName,
    QualityTier,
    ValuationQuality,
)
from greco_tracker.valuation.exchange import ExchangeRateProvider
from greco_tracker.valuation.prices import PreloadedPriceSource, PriceSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Contribution:
    """One basket commodity's matched price (or lack of one) for a date."""

    commodity_id: CommodityId
    weight: float
    point: PricePoint | None = None

    @property
    def found(self) -> bool:
        return self.point is not None


def find_nearest_price(
    points: Iterable[PricePoint],
    target: date,
    before_days: int = 90,
    after_days: int = 30,
) -> PricePoint | None:
    """Usable point closest to `target` within [target - before, target + after].

    Ties go to the earlier date. Input order does not matter.
    """
    lo = target - timedelta(days=before_days)
    hi = target + timedelta(days=after_days)

    best: PricePoint | None = None
    best_key: tuple[int, date] | None = None
    for p in points:
        if not p.is_usable or p.date < lo or p.date > hi:
            continue
        key = (abs((p.date - target).days), p.date)
        if best_key is None or key < best_key:
            best, best_key = p, key
    return best


def validate_completeness(contributions: Iterable[Contribution]) -> float | None:
    """Weight share of commodities that found a price. None if total weight is 0."""
    total = 0.0
    found = 0.0
    for c in contributions:
        total += c.weight
        if c.found:
            found += c.weight
    if total <= 0:
        return None
    return found / total


# --- Quality policies ---


class QualityPolicy(Protocol):
    def assess(
        self, completeness: float, contributions: list[Contribution]
    ) -> ValuationQuality: ...


class CompletenessQualityPolicy:
    """HIGH at or above `high_threshold` completeness, MEDIUM below it."""

    def __init__(self, high_threshold: float = 0.95) -> None:
        self.high_threshold = high_threshold

    def assess(
        self, completeness: float, contributions: list[Contribution]
    ) -> ValuationQuality:
        if completeness >= self.high_threshold:
            return ValuationQuality.HIGH
        return ValuationQuality.MEDIUM


class ConstituentQualityPolicy:
    """Grades by completeness first, then by the contributors' own tiers.

    Below `reject_threshold` is MISSING and below `low_threshold` is LOW.
    Otherwise the share of contributors whose stored tier is `high` decides:
    at least 80% HIGH, at least 50% MEDIUM, else LOW.
    """

    def __init__(self, reject_threshold: float = 0.80, low_threshold: float = 0.90) -> None:
        self.reject_threshold = reject_threshold
        self.low_threshold = low_threshold

    def assess(
        self, completeness: float, contributions: list[Contribution]
    ) -> ValuationQuality:
        if completeness < self.reject_threshold:
            return ValuationQuality.MISSING
        if completeness < self.low_threshold:
            return ValuationQuality.LOW

        found = [c for c in contributions if c.point is not None]
        if not found:
            return ValuationQuality.MISSING
        high = sum(1 for c in found if c.point.quality == QualityTier.HIGH)
        share = high / len(found)
        if share >= 0.8:
            return ValuationQuality.HIGH
        if share >= 0.5:
            return ValuationQuality.MEDIUM
        return ValuationQuality.LOW


def quality_policy_for(settings: ValuationConfig) -> QualityPolicy:
    """Build the policy named by `settings.quality_policy`."""
    if settings.quality_policy == QualityPolicyName.CONSTITUENT:
        return ConstituentQualityPolicy(
            reject_threshold=settings.reject_threshold,
            low_threshold=settings.low_quality_threshold,
        )
    return CompletenessQualityPolicy(high_threshold=settings.high_quality_threshold)


# --- Engine ---


class BasketValuationEngine:
    """Values the basket on a date in a currency.

    Parameters
    ----------
    basket : Basket
        Weighted commodity basket.
    exchange_rates : ExchangeRateProvider | None
        Needed for any currency other than USD.
    settings : ValuationConfig
        Thresholds and the nearest-price window.
    quality_policy : QualityPolicy | None
        Defaults to the policy named in `settings`.
    lazy_source : PriceSource | None
        Source used when no preloaded prices are passed.
    """

    def __init__(
        self,
        basket: Basket,
        exchange_rates: ExchangeRateProvider | None = None,
        settings: ValuationConfig | None = None,
        quality_policy: QualityPolicy | None = None,
        lazy_source: PriceSource | None = None,
    ) -> None:
        self._basket = basket
        self._rates = exchange_rates
        self._settings = settings or ValuationConfig()
        self._policy = quality_policy or quality_policy_for(self._settings)
        self._lazy_source = lazy_source

    @property
    def basket(self) -> Basket:
        return self._basket

    @property
    def settings(self) -> ValuationConfig:
        return self._settings

    def window(self, target: date) -> tuple[date, date]:
        """Date window searched for prices around `target`."""
        return (
            target - timedelta(days=self._settings.buffer_before_days),
            target + timedelta(days=self._settings.buffer_after_days),
        )

    async def calculate_greco_value(
        self,
        target: date,
        currency_id: CurrencyId = BASE_CURRENCY,
        preloaded: Mapping[CommodityId, list[PricePoint]] | PreloadedPriceSource | None = None,
    ) -> GrecoValuation | None:
        """Greco value on `target`, or None when the data is insufficient.

        Never raises for missing data: too few priced commodities, an unknown
        currency or a missing exchange rate all give None.

        Raises:
            InvalidQueryError: No preloaded prices and no lazy source configured.
        """
        source = self._source_for(preloaded)
        currency = currency_id.upper()
        ids = self._basket.commodity_ids
        start, end = self.window(target)

        prices = await source.get_window(ids, start, end)
        contributions = [
            Contribution(
                commodity_id=w.commodity_id,
                weight=w.weight,
                point=find_nearest_price(
                    prices.get(w.commodity_id, []),
                    target,
                    self._settings.buffer_before_days,
                    self._settings.buffer_after_days,
                ),
            )
            for w in self._basket.weights
        ]

        completeness = validate_completeness(contributions)
        if completeness is None:
            logger.debug("Basket %s has zero total weight", self._basket.version)
            return None
        if completeness < self._settings.reject_threshold:
            logger.debug(
                "Rejected %s: completeness %.1f%% below %.1f%%",
                target, completeness * 100, self._settings.reject_threshold * 100,
            )
            return None

        # Missing weight is not redistributed.
        value_usd = sum(c.point.price * c.weight for c in contributions if c.point is not None)

        value = value_usd
        if currency != BASE_CURRENCY:
            rate = await self._rate(currency, target)
            if rate is None:
                return None
            value = value_usd * rate

        return GrecoValuation(
            date=target,
            currency_id=currency,
            value=value,
            value_usd=value_usd,
            completeness=min(completeness, 1.0),
            quality=self._policy.assess(completeness, contributions),
            basket_version=self._basket.version,
            contributing_commodity_ids=[c.commodity_id for c in contributions if c.found],
            missing_commodity_ids=[c.commodity_id for c in contributions if not c.found],
        )

    def _source_for(
        self,
        preloaded: Mapping[CommodityId, list[PricePoint]] | PreloadedPriceSource | None,
    ) -> PriceSource:
        if isinstance(preloaded, PreloadedPriceSource):
            return preloaded
        if preloaded is not None:
            return PreloadedPriceSource(preloaded)
        if self._lazy_source is None:
            raise InvalidQueryError(
                "No price source: pass preloaded prices or configure a lazy source"
            )
        return self._lazy_source

    async def _rate(self, currency: CurrencyId, target: date) -> float | None:
        if self._rates is None:
            logger.debug("No exchange-rate provider for %s valuation", currency)
            return None
        rate = await self._rates.get_rate(currency, target)
        if rate is None:
            logger.debug("No %s exchange rate near %s", currency, target)
        return rate
