"""Rate-limited async HTTP client for upstream commodity price APIs."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from greco_tracker.core.config import RetryPolicy, UpstreamSourceConfig
from greco_tracker.core.exceptions import (
    AuthenticationError,
    NetworkError,
    RateLimitError,
    ServerError,
    UpstreamError,
    UpstreamNotFoundError,
    UpstreamTimeoutError,
    UpstreamValidationError,
)
from greco_tracker.ingestion.ratelimit import RateLimiter
from greco_tracker.ingestion.retry import with_retry

logger = logging.getLogger(__name__)


def _parse_retry_after(value: str | None) -> float | None:
    """Retry-After as seconds. HTTP-date values are ignored."""
    if value is None:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


class SourceClient:
    """Rate-limited async client for one upstream source.

    Each request takes a token from the source's bucket before sending and
    runs under the retry policy. Non-200 responses are mapped onto the
    UpstreamError hierarchy so the retry wrapper can classify them.

    Use via `async with SourceClient(source, retry) as client:`.
    """

    def __init__(
        self,
        source: UpstreamSourceConfig,
        retry: RetryPolicy | None = None,
        limiter: RateLimiter | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._source = source
        self._retry = retry or RetryPolicy()
        self._limiter = limiter or RateLimiter(source.max_requests_per_minute)
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=source.base_url,
            timeout=httpx.Timeout(source.timeout_seconds),
            follow_redirects=True,
        )

    @property
    def name(self) -> str:
        return self._source.name

    async def __aenter__(self) -> SourceClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET `path` relative to the source base URL and decode JSON.

        The source's `api_key`, when configured, is sent as the `api_key`
        query parameter.

        Raises:
            UpstreamError: (or a subclass) once retries are exhausted or on
                the first non-retryable failure.
        """
        query = dict(params or {})
        if self._source.api_key and "api_key" not in query:
            query["api_key"] = self._source.api_key

        async def attempt() -> Any:
            response = await self._send("GET", path, query)
            try:
                return response.json()
            except ValueError as e:
                raise UpstreamValidationError(
                    f"Invalid JSON from {self.name}: {path}",
                    status_code=response.status_code,
                    source=self.name,
                    context={"url": str(response.request.url)},
                ) from e

        return await with_retry(attempt, self._retry)

    async def _send(
        self,
        method: str,
        path: str,
        params: dict[str, Any],
    ) -> httpx.Response:
        """One rate-limited request, returning only 200 responses."""
        await self._limiter.acquire()
        try:
            response = await self._client.request(method, path, params=params)
        except httpx.TimeoutException as e:
            raise UpstreamTimeoutError(
                f"Request to {self.name} timed out: {path}",
                source=self.name,
                context={"path": path},
            ) from e
        except httpx.TransportError as e:
            raise NetworkError(
                f"Connection to {self.name} failed: {e}",
                source=self.name,
                context={"path": path, "error": str(e)},
            ) from e

        if response.status_code == 200:
            return response
        raise self._classify(response)

    def _classify(self, response: httpx.Response) -> UpstreamError:
        status = response.status_code
        url = str(response.request.url)
        ctx = {"url": url, "status_code": status}

        if status in (401, 403):
            return AuthenticationError(
                f"HTTP {status} from {self.name}: check the API key",
                status_code=status, source=self.name, context=ctx,
            )
        if status == 404:
            return UpstreamNotFoundError(
                f"Not found on {self.name}: {url}",
                status_code=status, source=self.name, context=ctx,
            )
        if status == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            logger.warning(
                "Rate limited (429) by %s, retry after %s", self.name, retry_after,
            )
            return RateLimitError(
                f"Rate limited by {self.name}",
                retry_after=retry_after,
                source=self.name,
                context={**ctx, "retry_after": retry_after},
            )
        if status in (400, 422):
            return UpstreamValidationError(
                f"HTTP {status} from {self.name}: request rejected",
                status_code=status, source=self.name, context=ctx,
            )
        if status >= 500:
            return ServerError(
                f"Server error {status} from {self.name}",
                status_code=status, source=self.name, context=ctx,
            )
        return UpstreamError(
            f"HTTP {status} from {self.name}",
            status_code=status, source=self.name, context=ctx,
        )
