"""Process-wide in-memory cache of the OpenRouter model catalog."""

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
from datetime import datetime
from typing import TYPE_CHECKING, Literal

from openrouter_models.errors import FetchError, RefreshAbandonedError
from openrouter_models.logging import get_logger
from openrouter_models.models.registry import CatalogSnapshot, ModelDescriptor, utcnow
from openrouter_models.registry_client import Clock, RegistryClient

if TYPE_CHECKING:
    from openrouter_models.settings import Settings

logger = get_logger(__name__)

CacheState = Literal["empty", "populated", "stale"]


class ModelCache:
    """In-memory cache of the model catalog with single-flight refresh.

    The snapshot is replaced wholesale, never mutated. Only installing a
    snapshot and deciding to start a refresh take the lock. Concurrent
    callers that find the cache empty or stale all await the same refresh,
    whichever thread or event loop they run on.
    """

    def __init__(
        self,
        client: RegistryClient,
        ttl: float = 3600.0,
        clock: Clock = utcnow,
    ) -> None:
        """Initialize the cache.

        Args:
            client: Registry client used to refresh the catalog.
            ttl: Seconds a snapshot stays fresh after it is installed.
            clock: Source of the current time.
        """
        self.client = client
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot: CatalogSnapshot | None = None
        self._fetched_at: datetime | None = None
        self._pending: concurrent.futures.Future[CatalogSnapshot] | None = None
        self._refresh_task: asyncio.Task[None] | None = None
        self._last_error: FetchError | None = None

    @classmethod
    def from_settings(
        cls, settings: Settings, client: RegistryClient | None = None
    ) -> ModelCache:
        """Build a cache (and, unless given, its client) from settings."""
        if client is None:
            client = RegistryClient.from_settings(settings)
        return cls(client, ttl=settings.cache_ttl)

    @property
    def fetched_at(self) -> datetime | None:
        """When the current snapshot was installed."""
        return self._fetched_at

    @property
    def last_error(self) -> FetchError | None:
        """Failure of the most recent refresh, cleared by the next success."""
        return self._last_error

    @property
    def is_stale(self) -> bool:
        """True when a snapshot exists but is older than the ttl."""
        return self.state == "stale"

    @property
    def state(self) -> CacheState:
        with self._lock:
            fetched_at = self._fetched_at
            empty = self._snapshot is None
        if empty:
            return "empty"
        return "stale" if self._expired(fetched_at) else "populated"

    def _expired(self, fetched_at: datetime | None) -> bool:
        if fetched_at is None:
            return True
        return (self._clock() - fetched_at).total_seconds() > self.ttl

    def get_cached_models(self) -> CatalogSnapshot | None:
        """Return the current snapshot without fetching.

        Returns:
            The snapshot, or None if the cache was never populated or the
            snapshot is older than the ttl.
        """
        with self._lock:
            snapshot = self._snapshot
            fetched_at = self._fetched_at
        if snapshot is None or self._expired(fetched_at):
            return None
        return snapshot

    def set_cached_models(
        self, snapshot: CatalogSnapshot, fetched_at: datetime | None = None
    ) -> None:
        """Install a snapshot, replacing any previous one.

        Args:
            snapshot: The catalog to cache.
            fetched_at: Install time to record. Defaults to now.
        """
        stamp = fetched_at or self._clock()
        with self._lock:
            self._snapshot = snapshot
            self._fetched_at = stamp
        logger.debug("Installed model catalog", model_count=len(snapshot.entries))

    async def refresh(self) -> CatalogSnapshot:
        """Fetch a new catalog, joining a refresh already in flight.

        The refresh runs as its own task: a caller that is cancelled while
        waiting leaves it running, and its result still lands in the cache.
        If the event loop that owns the refresh shuts down first, waiters on
        other loops start a new refresh on their own loop.

        Raises:
            FetchError: If the shared refresh failed. Every waiter of that
                refresh receives the same error.
        """
        while True:
            with self._lock:
                pending = self._pending
                start = pending is None
                if pending is None:
                    pending = concurrent.futures.Future()
                    self._pending = pending

            if start:
                self._refresh_task = asyncio.get_running_loop().create_task(
                    self._run_refresh(pending)
                )
            else:
                logger.debug("Joining in-flight model refresh")

            try:
                return await asyncio.shield(asyncio.wrap_future(pending))
            except RefreshAbandonedError:
                logger.info("In-flight model refresh was abandoned, restarting")

    async def _run_refresh(self, pending: concurrent.futures.Future[CatalogSnapshot]) -> None:
        logger.info("Refreshing model cache", state=self.state)
        try:
            snapshot = await self.client.fetch_models()
        except asyncio.CancelledError:
            with self._lock:
                if self._pending is pending:
                    self._pending = None
            pending.set_exception(RefreshAbandonedError("Model refresh abandoned by its event loop"))
            raise
        except FetchError as e:
            with self._lock:
                self._pending = None
                self._last_error = e
            logger.warning("Model cache refresh failed", reason=e.reason, error=str(e))
            pending.set_exception(e)
            return
        except Exception as e:
            with self._lock:
                self._pending = None
            logger.exception("Unexpected error refreshing model cache")
            pending.set_exception(e)
            return

        stamp = self._clock()
        with self._lock:
            self._snapshot = snapshot
            self._fetched_at = stamp
            self._pending = None
            self._last_error = None
        logger.info("Model cache refreshed", model_count=len(snapshot.entries))
        pending.set_result(snapshot)

    async def get_catalog(self) -> CatalogSnapshot | None:
        """Return the freshest catalog available, refreshing when needed.

        A failed refresh falls back to the stale snapshot if there is one.

        Returns:
            The catalog, or None if nothing was ever fetched successfully.
            The failure is then available from ``last_error``.
        """
        snapshot = self.get_cached_models()
        if snapshot is not None:
            return snapshot

        try:
            return await self.refresh()
        except FetchError as e:
            with self._lock:
                stale = self._snapshot
            if stale is None:
                return None
            logger.warning(
                "Serving stale model catalog",
                fetched_at=str(self._fetched_at),
                reason=e.reason,
            )
            return stale

    async def get_model_info(self, model_id: str) -> ModelDescriptor | None:
        """Look up a model by exact, case-sensitive id."""
        catalog = await self.get_catalog()
        if catalog is None:
            return None
        return catalog.get(model_id)

    async def validate_model(self, model_id: str) -> bool:
        """Check whether a model id exists in the catalog."""
        return await self.get_model_info(model_id) is not None


_default_cache: ModelCache | None = None
_default_lock = threading.Lock()


def get_model_cache() -> ModelCache:
    """Return the process-wide cache, creating it from settings on first use."""
    global _default_cache
    with _default_lock:
        if _default_cache is None:
            from openrouter_models.settings import settings

            _default_cache = ModelCache.from_settings(settings)
        return _default_cache


def reset_model_cache() -> None:
    """Forget the process-wide cache so the next access builds a new one."""
    global _default_cache
    with _default_lock:
        _default_cache = None
