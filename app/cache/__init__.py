"""
Response cache for YouTube API calls: two-tier store, distributed refresh
lock, request coalescing and stale-while-revalidate.
"""
from .core import (
    CachedPayload,
    CacheResult,
    DurableState,
    FetchResult,
    InvalidPayloadError,
    now_ms,
)
from .keys import RequestKind, SERVER_FINGERPRINT, cache_key, fingerprint, lock_key
from .local import LocalTier
from .durable import DurableBackend, RedisBackend, connect_durable_tier
from .store import TieredStore
from .coalescer import RequestCoalescer
from .lock import DistributedLock
from .manager import CacheService

__all__ = [
    # Core types
    "CachedPayload",
    "CacheResult",
    "DurableState",
    "FetchResult",
    "InvalidPayloadError",
    "now_ms",
    # Keys
    "RequestKind",
    "SERVER_FINGERPRINT",
    "cache_key",
    "fingerprint",
    "lock_key",
    # Tiers
    "LocalTier",
    "DurableBackend",
    "RedisBackend",
    "connect_durable_tier",
    "TieredStore",
    # Coordination
    "RequestCoalescer",
    "DistributedLock",
    # Orchestration
    "CacheService",
]
