"""
Best-effort distributed lock electing a single refresher per cache key.
"""
import logging
from typing import Optional

from .coalescer import RequestCoalescer
from .core import Clock, now_ms
from .durable import DurableBackend
from .keys import lock_key

logger = logging.getLogger("cache.lock")

LOCK_TTL_SECONDS = 15


class DistributedLock:
    """
    Short-lived lock records in the durable tier.

    A lock record expires on its own after ``ttl_seconds``, so a crashed
    holder never blocks a key for longer than that. Without a durable
    tier the lock falls back to an advisory check against this process's
    in-flight requests.

    This is not strict mutual exclusion: when the durable tier errors
    during acquire, ``acquire_on_error`` decides the outcome. The default
    (True) accepts an occasional duplicate upstream call over blocking
    callers.
    """

    def __init__(
        self,
        durable: Optional[DurableBackend],
        coalescer: RequestCoalescer,
        ttl_seconds: int = LOCK_TTL_SECONDS,
        acquire_on_error: bool = True,
        clock: Clock = now_ms,
    ):
        self._durable = durable
        self._coalescer = coalescer
        self._ttl_seconds = ttl_seconds
        self._acquire_on_error = acquire_on_error
        self._clock = clock

    async def acquire(self, key: str, ttl_seconds: Optional[int] = None) -> bool:
        """
        Try to become the refresher for ``key``.

        Returns:
            True if this caller created the lock record, False if it was
            already held
        """
        if self._durable is None:
            # Local advisory check only
            return not self._coalescer.is_in_flight(key)

        record = lock_key(key)
        try:
            created = await self._durable.set_if_absent(
                record,
                str(self._clock()),
                ttl_seconds or self._ttl_seconds,
            )
        except Exception as e:
            logger.error(f"Durable tier lock error for {record}: {e}")
            return self._acquire_on_error

        if not created:
            return False

        logger.debug(f"Lock acquired: {record}")
        return True

    def disable_durable(self) -> None:
        """Fall back to the local advisory check."""
        self._durable = None

    async def release(self, key: str) -> None:
        """Release the lock for ``key``. Releasing an absent lock is a no-op."""
        if self._durable is None:
            return

        record = lock_key(key)
        try:
            await self._durable.delete(record)
            logger.debug(f"Lock released: {record}")
        except Exception as e:
            logger.error(f"Durable tier unlock error for {record}: {e}")
