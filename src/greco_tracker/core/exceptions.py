"""Custom exception hierarchy for greco-tracker."""

from typing import Any


class GrecoError(Exception):
    """Base exception for all greco-tracker errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(GrecoError):
    """Invalid or missing configuration.

    Raised by load_config() and the basket/exchange-rate loaders during
    startup. Should be treated as fatal.

    Context keys:
        field (str): the config field that failed validation
        value (Any): the invalid value (redacted for secrets)
    """


class DataError(GrecoError):
    """Problem with the stored price data itself."""


class IndexLoadError(DataError):
    """The date-range index could not be read or parsed.

    Policy: fatal. No query can be served without the index.

    Context keys:
        path (str): the index file
        reason (str): why loading failed
    """


class CommodityNotFoundError(DataError):
    """The requested commodity is not present in the index.

    Distinct from a known commodity that simply has no rows in range.

    Context keys:
        commodity_id (str)
    """


class InvalidQueryError(GrecoError, ValueError):
    """Malformed query arguments (e.g. start date after end date).

    Policy: raise synchronously. Never retried.

    Context keys:
        start, end (str): the offending range
    """


class UpstreamError(GrecoError):
    """An upstream data API call failed.

    Used by the ingestion side only. Subclasses set `retryable` so the retry
    wrapper can classify errors without inspecting messages.

    Context keys:
        url (str): the URL that was being fetched
        source (str): upstream source name ("fred", "worldbank")
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        source: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context)
        self.status_code = status_code
        self.source = source

    @property
    def is_retryable(self) -> bool:
        if self.retryable:
            return True
        return self.status_code is not None and self.status_code >= 500


class AuthenticationError(UpstreamError):
    """HTTP 401/403: missing or rejected API key. Fatal for that source."""


class RateLimitError(UpstreamError):
    """HTTP 429 from an upstream source.

    Policy: backoff and retry, honoring `retry_after` when the server sent one.

    Context keys:
        retry_after (float | None): seconds to wait
    """

    retryable = True

    def __init__(
        self,
        message: str,
        retry_after: float | None = None,
        source: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, status_code=429, source=source, context=context)
        self.retry_after = retry_after


class UpstreamTimeoutError(UpstreamError):
    """The request (or one retry attempt) exceeded its timeout."""

    retryable = True


class NetworkError(UpstreamError):
    """Connection-level failure (DNS, refused, reset)."""

    retryable = True


class UpstreamValidationError(UpstreamError):
    """Upstream payload did not match the expected schema (or HTTP 400/422)."""


class UpstreamNotFoundError(UpstreamError):
    """HTTP 404: the series or indicator does not exist upstream."""


class ServerError(UpstreamError):
    """HTTP 5xx from an upstream source."""

    retryable = True
