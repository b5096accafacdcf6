"""Basket valuation: engine, price sources, exchange rates, time series."""

from greco_tracker.valuation.basket import load_basket
from greco_tracker.valuation.engine import (
    BasketValuationEngine,
    CompletenessQualityPolicy,
    ConstituentQualityPolicy,
    Contribution,
    QualityPolicy,
    find_nearest_price,
    quality_policy_for,
    validate_completeness,
)
from greco_tracker.valuation.exchange import ExchangeRateProvider, ExchangeRateTable
from greco_tracker.valuation.prices import (
    LazyPriceSource,
    PreloadedPriceSource,
    PriceLoader,
    PriceSource,
)
from greco_tracker.valuation.timeseries import TimeSeriesOrchestrator, generate_date_grid

__all__ = [
    "BasketValuationEngine",
    "CompletenessQualityPolicy",
    "ConstituentQualityPolicy",
    "Contribution",
    "ExchangeRateProvider",
    "ExchangeRateTable",
    "LazyPriceSource",
    "PreloadedPriceSource",
    "PriceLoader",
    "PriceSource",
    "QualityPolicy",
    "TimeSeriesOrchestrator",
    "find_nearest_price",
    "generate_date_grid",
    "load_basket",
    "quality_policy_for",
    "validate_completeness",
]
