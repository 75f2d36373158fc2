"""
Cache-aside orchestration with distributed locking, request coalescing
and stale-while-revalidate.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from .coalescer import RequestCoalescer
from .core import CachedPayload, CacheResult, Clock, DurableState, FetchResult, now_ms
from .durable import DurableBackend, connect_durable_tier
from .local import MAX_LOCAL_ENTRIES, LocalTier
from .lock import LOCK_TTL_SECONDS, DistributedLock
from .store import DURABLE_TTL_BUFFER_SECONDS, TieredStore

logger = logging.getLogger("cache.manager")

# How long to wait for another refresher before re-reading the store
LOCK_WAIT_SECONDS = 0.2

FetchAdapter = Callable[[], Awaitable[FetchResult]]


class CacheService:
    """
    Main cache orchestration with:
    - Two-tier store (process-local + shared durable tier)
    - Distributed lock electing one refresher across processes
    - Request coalescing for concurrent duplicate requests in this process
    - Stale-while-revalidate while another caller refreshes
    - Response metadata tracking

    Infrastructure failures never reach the caller; only errors raised by
    the fetch adapter do. Retrying those is the caller's business.
    """

    def __init__(
        self,
        durable: Optional[DurableBackend] = None,
        durable_state: Optional[DurableState] = None,
        max_local_entries: int = MAX_LOCAL_ENTRIES,
        lock_ttl_seconds: int = LOCK_TTL_SECONDS,
        lock_wait_seconds: float = LOCK_WAIT_SECONDS,
        lock_acquire_on_error: bool = True,
        durable_ttl_buffer_seconds: int = DURABLE_TTL_BUFFER_SECONDS,
        clock: Clock = now_ms,
    ):
        """
        Initialize the cache service.

        Args:
            durable: Durable tier backend, or None for local-only operation
            durable_state: Connection state; inferred from ``durable`` if omitted
            max_local_entries: Capacity bound of the process-local tier
            lock_ttl_seconds: Lifetime of a refresh lock record
            lock_wait_seconds: Backoff before re-reading when the lock is held
            lock_acquire_on_error: Treat lock errors as "acquired"
            durable_ttl_buffer_seconds: Extra durable lifetime past expiry
            clock: Epoch-millisecond clock
        """
        if durable_state is None:
            durable_state = (
                DurableState.CONNECTED if durable is not None else DurableState.UNCONFIGURED
            )
        if durable_state != DurableState.CONNECTED:
            durable = None

        self._durable = durable
        self._clock = clock
        self._lock_wait_seconds = lock_wait_seconds
        self._local = LocalTier(max_entries=max_local_entries, clock=clock)
        self._store = TieredStore(
            self._local,
            durable=durable,
            state=durable_state,
            clock=clock,
            durable_ttl_buffer_seconds=durable_ttl_buffer_seconds,
            max_cursors=max_local_entries,
        )
        self._coalescer = RequestCoalescer()
        self._lock = DistributedLock(
            durable,
            self._coalescer,
            ttl_seconds=lock_ttl_seconds,
            acquire_on_error=lock_acquire_on_error,
            clock=clock,
        )

        # Stats tracking
        self._stats = {
            "hits_fresh": 0,
            "hits_stale": 0,
            "hits_after_wait": 0,
            "misses": 0,
            "lock_contended": 0,
            "fetch_errors": 0,
        }

    @classmethod
    def from_settings(cls, settings) -> "CacheService":
        """Build the service from application settings."""
        state, backend = connect_durable_tier(
            settings.redis_url,
            socket_timeout=settings.redis_socket_timeout_seconds,
        )
        return cls(
            durable=backend,
            durable_state=state,
            max_local_entries=settings.local_cache_max_entries,
            lock_ttl_seconds=settings.lock_ttl_seconds,
            lock_wait_seconds=settings.lock_wait_seconds,
            lock_acquire_on_error=settings.lock_acquire_on_error,
            durable_ttl_buffer_seconds=settings.durable_ttl_buffer_seconds,
        )

    async def verify_durable_tier(self) -> DurableState:
        """
        Round-trip the durable tier once at startup.

        A tier that does not answer is dropped for the life of the process
        so requests never pay its timeouts.
        """
        if self._durable is None:
            return self.durable_state

        try:
            await self._durable.ping()
        except Exception as e:
            logger.warning(f"Durable tier unreachable, using in-memory cache only: {e}")
            await self.close()
            self._durable = None
            self._store.disable_durable()
            self._lock.disable_durable()
        else:
            logger.info("Durable tier reachable")
        return self.durable_state

    @property
    def durable_state(self) -> DurableState:
        return self._store.durable_state

    @property
    def store(self) -> TieredStore:
        return self._store

    async def get_or_fetch(
        self,
        cache_key: str,
        fetch_fn: FetchAdapter,
        stale_while_revalidate: bool = False,
    ) -> CacheResult:
        """
        Get data from cache or fetch from upstream.

        Args:
            cache_key: Unique cache key
            fetch_fn: Coroutine function returning a FetchResult
            stale_while_revalidate: Serve an expired payload while another
                caller holds the refresh lock

        Returns:
            CacheResult with the value and its freshness metadata

        Raises:
            Exception: Whatever fetch_fn raises, unchanged
        """
        cached = await self._store.read(cache_key, allow_stale=True)

        # Cache hit - fresh
        if cached is not None and not cached.is_expired(self._clock()):
            logger.debug(f"CACHE HIT (fresh): {cache_key}")
            self._stats["hits_fresh"] += 1
            return self._from_cache(cached)

        if await self._lock.acquire(cache_key):
            logger.info(f"CACHE MISS: {cache_key}")
            self._stats["misses"] += 1
            try:
                payload = await self._fetch_and_store(cache_key, fetch_fn)
            finally:
                await self._lock.release(cache_key)
            return CacheResult(value=payload.value, from_cache=False, fetched_at=payload.fetched_at)

        # Another caller is refreshing this key
        self._stats["lock_contended"] += 1
        if cached is not None and stale_while_revalidate:
            logger.info(f"CACHE HIT (stale, refresh in progress): {cache_key}")
            self._stats["hits_stale"] += 1
            return self._from_cache(cached)

        await asyncio.sleep(self._lock_wait_seconds)
        refreshed = await self._store.read(cache_key)
        if refreshed is not None:
            logger.debug(f"CACHE HIT (after wait): {cache_key}")
            self._stats["hits_after_wait"] += 1
            return self._from_cache(refreshed)

        # Refresher did not finish in time; fetch ourselves
        logger.info(f"CACHE MISS (lock held, fetching anyway): {cache_key}")
        self._stats["misses"] += 1
        payload = await self._fetch_and_store(cache_key, fetch_fn)
        return CacheResult(value=payload.value, from_cache=False, fetched_at=payload.fetched_at)

    async def get_stored_continuation_token(self, cache_key: str) -> Optional[str]:
        """Get the server-owned pagination cursor for ``cache_key``."""
        return await self._store.get_continuation_token(cache_key)

    async def _fetch_and_store(self, cache_key: str, fetch_fn: FetchAdapter) -> CachedPayload:
        """Fetch through the coalescer; joiners share the stored payload."""

        async def fetch_and_write() -> CachedPayload:
            result = await fetch_fn()
            return await self._store.write(
                cache_key,
                result.value,
                result.ttl_ms,
                result.continuation_token,
            )

        try:
            return await self._coalescer.get_or_fetch(cache_key, fetch_and_write)
        except Exception:
            self._stats["fetch_errors"] += 1
            raise

    @staticmethod
    def _from_cache(payload: CachedPayload) -> CacheResult:
        return CacheResult(value=payload.value, from_cache=True, fetched_at=payload.fetched_at)

    async def close(self) -> None:
        """Release the durable tier's connections, if any."""
        close = getattr(self._durable, "close", None)
        if close is not None:
            await close()

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        hits = (
            self._stats["hits_fresh"]
            + self._stats["hits_stale"]
            + self._stats["hits_after_wait"]
        )
        total_requests = hits + self._stats["misses"]
        hit_rate = (hits / total_requests * 100) if total_requests > 0 else 0

        return {
            **self._stats,
            "hit_rate_percent": round(hit_rate, 1),
            "store": self._store.get_stats(),
            "coalescer": self._coalescer.get_stats(),
        }
