"""Rate-limited client for the OpenRouter model registry."""

from __future__ import annotations

import asyncio
import math
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import SecretStr

from openrouter_models.errors import (
    MALFORMED_RESPONSE,
    RATE_LIMITED,
    REQUEST_REJECTED,
    ExhaustedRetriesError,
    FetchError,
    MalformedEntryError,
    RateLimitedError,
    TransportError,
    UpstreamServerError,
)
from openrouter_models.logging import get_logger
from openrouter_models.models.registry import (
    CatalogSnapshot,
    ModelDescriptor,
    RateLimitState,
    utcnow,
)

if TYPE_CHECKING:
    from openrouter_models.settings import Settings

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"

# X-RateLimit-Reset values above this are epoch milliseconds, below
# EPOCH_SECONDS_FLOOR they are a delta in seconds.
EPOCH_MILLIS_FLOOR = 10**12
EPOCH_SECONDS_FLOOR = 10**9

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], datetime]


def build_headers(
    api_key: SecretStr | None,
    http_referer: str | None = None,
    app_title: str | None = None,
) -> dict[str, str]:
    """Authentication and attribution headers for OpenRouter requests."""
    headers = {"Accept": "application/json"}
    if api_key is not None:
        headers["Authorization"] = f"Bearer {api_key.get_secret_value()}"
    if http_referer:
        headers["HTTP-Referer"] = http_referer
    if app_title:
        headers["X-Title"] = app_title
    return headers


def parse_rate_limit(headers: httpx.Headers, now: datetime) -> RateLimitState:
    """Extract rate-limit state from response headers.

    Missing, unparsable or out-of-range headers leave the matching field
    unknown.
    """
    remaining: int | None = None
    raw_remaining = _finite_float(headers.get("x-ratelimit-remaining"))
    if raw_remaining is not None:
        remaining = int(raw_remaining)

    reset_at = _parse_reset(headers.get("x-ratelimit-reset"), now)
    retry_at = _parse_retry_after(headers.get("retry-after"), now)
    if retry_at is not None and (reset_at is None or retry_at > reset_at):
        reset_at = retry_at

    return RateLimitState(remaining=remaining, reset_at=reset_at)


def _finite_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _parse_reset(value: str | None, now: datetime) -> datetime | None:
    number = _finite_float(value)
    if number is None:
        return None
    try:
        if number >= EPOCH_MILLIS_FLOOR:
            return datetime.fromtimestamp(number / 1000, tz=now.tzinfo)
        if number >= EPOCH_SECONDS_FLOOR:
            return datetime.fromtimestamp(number, tz=now.tzinfo)
        return now + timedelta(seconds=max(number, 0.0))
    except (OverflowError, OSError, ValueError):
        return None


def _parse_retry_after(value: str | None, now: datetime) -> datetime | None:
    if value is None:
        return None
    number = _finite_float(value)
    if number is not None:
        try:
            return now + timedelta(seconds=max(number, 0.0))
        except OverflowError:
            return None
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=UTC)
    return retry_at


class RegistryClient:
    """Client for fetching the model catalog from OpenRouter.

    Transport errors, 5xx and 429 responses are retried with exponential
    backoff. A 429 that carries a reset signal is not retried before the
    signalled time. Rate-limit headers from every response are remembered
    so the next call can hold off while the window is exhausted.
    """

    def __init__(
        self,
        api_key: SecretStr | str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        *,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        max_attempts: int = 5,
        max_retry_after: float = 300.0,
        timeout: float = 30.0,
        http_referer: str | None = None,
        app_title: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = utcnow,
    ) -> None:
        """Initialize the registry client.

        Args:
            api_key: OpenRouter API key.
            base_url: OpenRouter API base URL.
            base_delay: Delay before the first retry, in seconds.
            max_delay: Upper bound for any backoff delay, in seconds.
            max_attempts: Total attempts per fetch, including the first.
            max_retry_after: Reset signals further away than this fail the
                fetch immediately instead of waiting.
            timeout: Per-request timeout, in seconds.
            http_referer: Attribution URL sent as HTTP-Referer.
            app_title: Attribution title sent as X-Title.
            http_client: Shared client to send requests with. A short-lived
                client is opened per fetch when omitted.
            sleep: Awaitable used for every delay.
            clock: Source of the current time.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if isinstance(api_key, str):
            api_key = SecretStr(api_key)

        self.base_url = base_url.rstrip("/")
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.max_attempts = max_attempts
        self.max_retry_after = max_retry_after
        self.timeout = timeout
        self._headers = build_headers(api_key, http_referer, app_title)
        self._http_client = http_client
        self._sleep = sleep
        self._clock = clock
        self._rate_limit = RateLimitState()

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> RegistryClient:
        """Build a client from application settings."""
        return cls(
            api_key=settings.api_key,
            base_url=settings.base_url,
            base_delay=settings.backoff_base_delay,
            max_delay=settings.backoff_max_delay,
            max_attempts=settings.max_attempts,
            max_retry_after=settings.max_retry_after,
            timeout=settings.request_timeout,
            http_referer=settings.http_referer,
            app_title=settings.app_title,
            **kwargs,
        )

    @property
    def rate_limit(self) -> RateLimitState:
        """A copy of the most recently observed rate-limit state."""
        return self._rate_limit.model_copy()

    def backoff_delay(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (0-based)."""
        return min(self.base_delay * (2**attempt), self.max_delay)

    async def fetch_models(self) -> CatalogSnapshot:
        """Fetch the full model catalog.

        Returns:
            CatalogSnapshot with entries in upstream order.

        Raises:
            ExhaustedRetriesError: If every attempt failed transiently.
            FetchError: If upstream rejected the request, sent an unusable
                body, or asked us to wait longer than ``max_retry_after``.
        """
        url = f"{self.base_url}/models"
        logger.info("Fetching models from OpenRouter", url=url)

        last_error: FetchError | None = None
        for attempt in range(self.max_attempts):
            await self._respect_rate_limit()
            try:
                data = await self._get_json(url)
            except (TransportError, UpstreamServerError, RateLimitedError) as e:
                last_error = e
                if attempt + 1 >= self.max_attempts:
                    break
                delay = self._retry_delay(attempt, e)
                logger.warning(
                    "Model fetch failed, retrying",
                    attempt=attempt + 1,
                    max_attempts=self.max_attempts,
                    delay=delay,
                    status_code=e.status_code,
                    error=str(e),
                )
                await self._sleep(delay)
                continue

            snapshot = self._parse_catalog(data)
            logger.info(
                "Fetched models from OpenRouter",
                model_count=len(snapshot.entries),
                attempts=attempt + 1,
            )
            return snapshot

        if last_error is None:
            raise FetchError("Model fetch made no attempts")
        logger.error(
            "Model fetch failed",
            attempts=self.max_attempts,
            reason=last_error.reason,
            error=str(last_error),
        )
        raise ExhaustedRetriesError(self.max_attempts, last_error) from last_error

    async def _respect_rate_limit(self) -> None:
        """Hold off while the last known window is exhausted, within max_delay."""
        wait = min(self._rate_limit.wait_seconds(self._clock()), self.max_delay)
        if wait > 0:
            logger.info("Rate limit window exhausted, waiting", delay=wait)
            await self._sleep(wait)

    def _retry_delay(self, attempt: int, error: FetchError) -> float:
        delay = self.backoff_delay(attempt)
        if isinstance(error, RateLimitedError) and error.retry_after is not None:
            if error.retry_after > self.max_retry_after:
                raise FetchError(
                    f"Rate limited for {error.retry_after:.0f}s, longer than allowed wait",
                    reason=RATE_LIMITED,
                    status_code=error.status_code,
                ) from error
            delay = max(delay, error.retry_after)
        return delay

    async def _get_json(self, url: str) -> Any:
        """Send one GET, record rate-limit state and classify the outcome."""
        try:
            response = await self._send(url)
        except httpx.RequestError as e:
            raise TransportError(f"Request failed: {e}") from e

        now = self._clock()
        self._rate_limit = parse_rate_limit(response.headers, now)

        status = response.status_code
        if status == 429:
            retry_after = None
            if self._rate_limit.reset_at is not None:
                retry_after = max((self._rate_limit.reset_at - now).total_seconds(), 0.0)
            raise RateLimitedError("HTTP error: 429", retry_after=retry_after)
        if status >= 500:
            raise UpstreamServerError(f"HTTP error: {status}", status_code=status)
        if status >= 400:
            raise FetchError(
                f"HTTP error: {status}", reason=REQUEST_REJECTED, status_code=status
            )

        try:
            return response.json()
        except ValueError as e:
            raise FetchError(
                "Response body is not JSON", reason=MALFORMED_RESPONSE, status_code=status
            ) from e

    async def _send(self, url: str) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.get(url, headers=self._headers, timeout=self.timeout)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.get(url, headers=self._headers)

    def _parse_catalog(self, data: Any) -> CatalogSnapshot:
        """Turn the response body into a snapshot, dropping malformed entries."""
        raw_models = data.get("data") if isinstance(data, dict) else None
        if not isinstance(raw_models, list):
            raise FetchError("Response has no model list", reason=MALFORMED_RESPONSE)

        entries: list[ModelDescriptor] = []
        seen: set[str] = set()
        for index, raw in enumerate(raw_models):
            try:
                descriptor = ModelDescriptor.from_api(raw)
            except MalformedEntryError as e:
                logger.warning("Dropping malformed model entry", index=index, error=str(e))
                continue
            if descriptor.id in seen:
                logger.warning("Dropping duplicate model entry", index=index, model_id=descriptor.id)
                continue
            seen.add(descriptor.id)
            entries.append(descriptor)

        return CatalogSnapshot(entries=entries, fetched_at=self._clock())
