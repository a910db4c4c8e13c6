"""Error hierarchy for registry fetches and chat completion."""

from __future__ import annotations

UPSTREAM_UNAVAILABLE = "upstream unavailable"
RATE_LIMITED = "rate limited"
REQUEST_REJECTED = "request rejected"
MALFORMED_RESPONSE = "malformed response"


class FetchError(Exception):
    """A catalog fetch failed."""

    def __init__(
        self,
        message: str,
        *,
        reason: str = UPSTREAM_UNAVAILABLE,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code


class TransportError(FetchError):
    """Network or connection failure reaching upstream."""


class UpstreamServerError(FetchError):
    """Upstream answered with a 5xx status."""


class RateLimitedError(FetchError):
    """Upstream answered 429."""

    def __init__(
        self,
        message: str,
        *,
        retry_after: float | None = None,
        status_code: int | None = 429,
    ) -> None:
        super().__init__(message, reason=RATE_LIMITED, status_code=status_code)
        self.retry_after = retry_after


class ExhaustedRetriesError(FetchError):
    """The retry budget was spent without a successful response."""

    def __init__(self, attempts: int, last_error: FetchError) -> None:
        reason = RATE_LIMITED if isinstance(last_error, RateLimitedError) else UPSTREAM_UNAVAILABLE
        super().__init__(
            f"{reason} after {attempts} attempts: {last_error}",
            reason=reason,
            status_code=last_error.status_code,
        )
        self.attempts = attempts
        self.last_error = last_error


class MalformedEntryError(ValueError):
    """A catalog entry lacks required fields."""


class ChatCompletionError(Exception):
    """A chat completion could not be built or was refused upstream."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class RefreshAbandonedError(FetchError):
    """The event loop running a shared refresh shut down before it finished."""
