"""Upstream price ingestion: rate limiting, retry, HTTP client, source plans."""

from greco_tracker.ingestion.client import SourceClient
from greco_tracker.ingestion.ratelimit import RateLimiter, rate_limited
from greco_tracker.ingestion.retry import (
    compute_backoff,
    is_retryable,
    retry_delay,
    with_retry,
)
from greco_tracker.ingestion.sources import (
    DEFAULT_SOURCE_PLANS,
    SourcePlan,
    fetch_with_fallback,
)

__all__ = [
    "DEFAULT_SOURCE_PLANS",
    "RateLimiter",
    "SourceClient",
    "SourcePlan",
    "compute_backoff",
    "fetch_with_fallback",
    "is_retryable",
    "rate_limited",
    "retry_delay",
    "with_retry",
]
