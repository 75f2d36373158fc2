"""
Process-local cache tier.

Serves repeat reads within one worker without a round trip to the
durable tier. Bounded in size so a long-lived process polling many
distinct chats does not grow without limit.
"""
import logging
from typing import Any, Dict, Optional

from .core import CachedPayload, Clock, now_ms

logger = logging.getLogger("cache.local")

MAX_LOCAL_ENTRIES = 100


class LocalTier:
    """
    In-memory map of cache key to payload.

    Owned by a single event loop, so no locking is needed.
    """

    def __init__(self, max_entries: int = MAX_LOCAL_ENTRIES, clock: Clock = now_ms):
        self._entries: Dict[str, CachedPayload] = {}
        self._max_entries = max_entries
        self._clock = clock
        self._evictions = 0

    def get(self, key: str, allow_expired: bool = False) -> Optional[CachedPayload]:
        """Get a payload, hiding expired ones unless ``allow_expired``."""
        payload = self._entries.get(key)
        if payload is None:
            return None
        if not allow_expired and payload.is_expired(self._clock()):
            return None
        return payload

    def set(self, key: str, payload: CachedPayload) -> None:
        """Store a payload, superseding any previous one for the key."""
        self._entries[key] = payload
        self.sweep()

    def sweep(self) -> int:
        """
        Drop expired entries, then the soonest-expiring ones while over capacity.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [k for k, p in self._entries.items() if p.is_expired(now)]
        for key in expired:
            del self._entries[key]

        overflow = len(self._entries) - self._max_entries
        evicted = []
        if overflow > 0:
            by_expiry = sorted(self._entries.items(), key=lambda item: item[1].expires_at)
            evicted = [key for key, _ in by_expiry[:overflow]]
            for key in evicted:
                del self._entries[key]

        removed = len(expired) + len(evicted)
        if removed:
            self._evictions += removed
            logger.debug(
                f"Swept local tier: {len(expired)} expired, {len(evicted)} over capacity"
            )
        return removed

    def clear(self) -> int:
        """Remove every entry. Returns the number removed."""
        count = len(self._entries)
        self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        """Get local tier statistics."""
        return {
            "entries": len(self._entries),
            "max_entries": self._max_entries,
            "evictions": self._evictions,
        }
