"""Core models, configuration and the exception hierarchy."""

from greco_tracker.core.config import (
    DataConfig,
    GrecoConfig,
    IndexConfig,
    QueryConfig,
    RetryPolicy,
    UpstreamSourceConfig,
    ValuationConfig,
    load_config,
)
from greco_tracker.core.exceptions import (
    AuthenticationError,
    CommodityNotFoundError,
    ConfigError,
    DataError,
    GrecoError,
    IndexLoadError,
    InvalidQueryError,
    NetworkError,
    RateLimitError,
    ServerError,
    UpstreamError,
    UpstreamNotFoundError,
    UpstreamTimeoutError,
    UpstreamValidationError,
)
from greco_tracker.core.models import (
    BASE_CURRENCY,
    Basket,
    BasketWeight,
    CommodityId,
    CommodityIndexEntry,
    CurrencyId,
    DateRange,
    ExchangeRate,
    GrecoValuation,
    IndexDocument,
    IndexStats,
    Interval,
    PricePoint,
    QualityPolicyName,
    QualityTier,
    ShardInfo,
    ValuationQuality,
)

__all__ = [
    # Type aliases
    "CommodityId",
    "CurrencyId",
    "BASE_CURRENCY",
    # Enums
    "QualityTier",
    "ValuationQuality",
    "Interval",
    "QualityPolicyName",
    # Store models
    "PricePoint",
    "DateRange",
    "ShardInfo",
    "CommodityIndexEntry",
    "IndexDocument",
    "IndexStats",
    # Basket / valuation models
    "BasketWeight",
    "Basket",
    "ExchangeRate",
    "GrecoValuation",
    # Config
    "GrecoConfig",
    "DataConfig",
    "IndexConfig",
    "QueryConfig",
    "ValuationConfig",
    "UpstreamSourceConfig",
    "RetryPolicy",
    "load_config",
    # Exceptions
    "GrecoError",
    "ConfigError",
    "DataError",
    "IndexLoadError",
    "CommodityNotFoundError",
    "InvalidQueryError",
    "UpstreamError",
    "AuthenticationError",
    "RateLimitError",
    "UpstreamTimeoutError",
    "NetworkError",
    "UpstreamValidationError",
    "UpstreamNotFoundError",
    "ServerError",
]
