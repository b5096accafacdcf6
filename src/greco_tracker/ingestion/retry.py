"""Exponential-backoff retry for fallible upstream operations."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from greco_tracker.core.config import RetryPolicy
from greco_tracker.core.exceptions import RateLimitError, UpstreamError, UpstreamTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryCallback = Callable[[int, Exception, float], None]


def is_retryable(exc: BaseException) -> bool:
    """Rate limits, network failures, timeouts and 5xx are retryable.

    Authentication, validation, not-found and every other 4xx are not.
    Anything that is not an UpstreamError is treated as a bug and not retried.
    """
    if isinstance(exc, UpstreamError):
        return exc.is_retryable
    return False


def compute_backoff(policy: RetryPolicy, attempt: int) -> float:
    """Delay before retry number `attempt` (1-based), capped at max_delay."""
    delay = policy.initial_delay * policy.multiplier ** (attempt - 1)
    return min(delay, policy.max_delay)


def retry_delay(exc: BaseException, attempt: int, policy: RetryPolicy) -> float:
    """Seconds to wait before the next attempt.

    An explicit Retry-After from a rate-limit error wins over the computed
    backoff. Both are capped at max_delay.
    """
    if isinstance(exc, RateLimitError) and exc.retry_after:
        return min(exc.retry_after, policy.max_delay)
    return compute_backoff(policy, attempt)


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    should_retry: Callable[[BaseException], bool] = is_retryable,
    on_retry: RetryCallback | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call `fn` until it succeeds, at most `policy.max_retries + 1` times.

    Each attempt is bounded by `policy.attempt_timeout` when set; a timeout
    surfaces as a (retryable) UpstreamTimeoutError.

    Raises:
        The last error once attempts are exhausted, or the first
        non-retryable error immediately.
    """
    policy = policy or RetryPolicy()

    attempt = 1
    while True:
        try:
            if policy.attempt_timeout is not None:
                return await asyncio.wait_for(fn(), timeout=policy.attempt_timeout)
            return await fn()
        except asyncio.TimeoutError as e:
            exc: Exception = UpstreamTimeoutError(
                f"Attempt {attempt} timed out after {policy.attempt_timeout}s",
                context={"timeout": policy.attempt_timeout, "attempt": attempt},
            )
            exc.__cause__ = e
        except Exception as e:
            exc = e

        if not should_retry(exc) or attempt > policy.max_retries:
            raise exc

        delay = retry_delay(exc, attempt, policy)
        logger.warning(
            "Attempt %d/%d failed (%s), retrying in %.2fs",
            attempt, policy.max_retries + 1, exc, delay,
        )
        if on_retry is not None:
            on_retry(attempt, exc, delay)
        await sleep(delay)
        attempt += 1
