"""Per-source request rate limiting."""

from __future__ import annotations

import functools
import logging
from typing import Awaitable, Callable, ParamSpec, TypeVar

from aiolimiter import AsyncLimiter

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


class RateLimiter:
    """Token bucket allowing `max_requests_per_minute` requests per minute.

    Tokens refill at a steady rate (one every 60 / max_requests_per_minute
    seconds) up to a full bucket. `acquire()` blocks until a token is free.

    Usage:
        limiter = RateLimiter(max_requests_per_minute=120)
        await limiter.acquire()
    """

    def __init__(self, max_requests_per_minute: int) -> None:
        if max_requests_per_minute < 1:
            raise ValueError(
                f"max_requests_per_minute must be >= 1, got {max_requests_per_minute}"
            )
        self._max_per_minute = max_requests_per_minute
        self._limiter = AsyncLimiter(max_rate=max_requests_per_minute, time_period=60.0)

    @property
    def max_requests_per_minute(self) -> int:
        return self._max_per_minute

    @property
    def refill_interval(self) -> float:
        """Seconds between single-token refills."""
        return 60.0 / self._max_per_minute

    def has_capacity(self) -> bool:
        """True if a token is available right now."""
        return self._limiter.has_capacity()

    async def acquire(self) -> None:
        """Wait until a token is available, then consume it."""
        await self._limiter.acquire()

    async def __aenter__(self) -> RateLimiter:
        await self.acquire()
        return self

    async def __aexit__(self, *exc: object) -> None:
        return None


def rate_limited(
    fn: Callable[P, Awaitable[R]],
    limiter: RateLimiter,
) -> Callable[P, Awaitable[R]]:
    """Wrap a coroutine function so each call first takes a token."""

    @functools.wraps(fn)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        await limiter.acquire()
        return await fn(*args, **kwargs)

    return wrapper
