"""
Two-level payload store: process-local tier in front of the durable tier.
"""
import json
import logging
import math
from collections import OrderedDict
from typing import Any, Dict, Optional

from .core import CachedPayload, Clock, DurableState, InvalidPayloadError, now_ms
from .durable import DurableBackend
from .local import MAX_LOCAL_ENTRIES, LocalTier

logger = logging.getLogger("cache.store")

# Extra seconds the durable copy lives past its logical expiry, so a
# stale payload is still around for stale-while-revalidate reads.
DURABLE_TTL_BUFFER_SECONDS = 5


class TieredStore:
    """
    Answers "is there a valid payload for this key" and stores new ones.

    Every durable tier call is wrapped: an unreachable or misbehaving
    durable tier degrades the store to local-only operation and is never
    surfaced to the caller.
    """

    def __init__(
        self,
        local: LocalTier,
        durable: Optional[DurableBackend] = None,
        state: DurableState = DurableState.UNCONFIGURED,
        clock: Clock = now_ms,
        durable_ttl_buffer_seconds: int = DURABLE_TTL_BUFFER_SECONDS,
        max_cursors: int = MAX_LOCAL_ENTRIES,
    ):
        self._local = local
        self._durable = durable if state == DurableState.CONNECTED else None
        self._state = state
        self._clock = clock
        self._ttl_buffer = durable_ttl_buffer_seconds
        # Latest cursor per key, kept apart from payloads so the expiry sweep
        # cannot drop a cursor that is only stale
        self._cursors: "OrderedDict[str, str]" = OrderedDict()
        self._max_cursors = max_cursors
        self._stats = {
            "local_hits": 0,
            "durable_hits": 0,
            "stale_reads": 0,
            "misses": 0,
            "durable_errors": 0,
        }

    @property
    def durable_state(self) -> DurableState:
        return self._state

    async def read(self, key: str, allow_stale: bool = False) -> Optional[CachedPayload]:
        """
        Get the payload for ``key`` (local tier, then durable tier).

        Args:
            key: Cache key
            allow_stale: Also return payloads past their TTL that are
                still physically present

        Returns:
            The payload, or None on miss
        """
        local = self._local.get(key, allow_expired=True)
        if local is not None and not local.is_expired(self._clock()):
            self._stats["local_hits"] += 1
            return local

        remote = None
        if self._durable is not None:
            try:
                raw = await self._durable.get(key)
                remote = self._decode(raw) if raw is not None else None
            except Exception as e:
                self._stats["durable_errors"] += 1
                logger.error(f"Durable tier get error for {key}: {e}")

        if remote is not None and not remote.is_expired(self._clock()):
            # Populate local tier so the next read in this process skips the round trip
            self._local.set(key, remote)
            self._stats["durable_hits"] += 1
            return remote

        if allow_stale:
            candidates = [p for p in (local, remote) if p is not None]
            if candidates:
                self._stats["stale_reads"] += 1
                return max(candidates, key=lambda p: p.fetched_at)

        self._stats["misses"] += 1
        return None

    async def write(
        self,
        key: str,
        value: Any,
        ttl_ms: int,
        continuation_token: Optional[str] = None,
    ) -> CachedPayload:
        """
        Store ``value`` under ``key`` in both tiers.

        The local write always succeeds; the durable write is best-effort.

        Returns:
            The payload that was stored
        """
        now = self._clock()
        payload = CachedPayload(
            value=value,
            fetched_at=now,
            expires_at=now + ttl_ms,
            continuation_token=continuation_token,
        )
        self._local.set(key, payload)
        self._remember_cursor(key, continuation_token)

        if self._durable is not None:
            ttl_seconds = math.ceil(ttl_ms / 1000) + self._ttl_buffer
            try:
                await self._durable.set(key, json.dumps(payload.to_dict()), ttl_seconds)
            except Exception as e:
                self._stats["durable_errors"] += 1
                logger.error(f"Durable tier set error for {key}: {e}")

        return payload

    async def get_continuation_token(self, key: str) -> Optional[str]:
        """
        Get the pagination cursor stored with the latest payload for ``key``.

        A cursor stays valid after its payload goes stale, so expired
        payloads are consulted too. Once neither tier holds the payload,
        the cursor recorded by this process at write time is used.
        """
        payload = await self.read(key, allow_stale=True)
        if payload is not None:
            return payload.continuation_token
        return self._cursors.get(key)

    def disable_durable(self) -> None:
        """Switch to local-only operation for the rest of the process."""
        self._durable = None
        self._state = DurableState.UNAVAILABLE

    def _remember_cursor(self, key: str, continuation_token: Optional[str]) -> None:
        if continuation_token is None:
            self._cursors.pop(key, None)
            return
        self._cursors[key] = continuation_token
        self._cursors.move_to_end(key)
        while len(self._cursors) > self._max_cursors:
            self._cursors.popitem(last=False)

    @staticmethod
    def _decode(raw: str) -> CachedPayload:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise InvalidPayloadError(f"not valid JSON: {e}") from e
        return CachedPayload.from_dict(data)

    def get_stats(self) -> Dict[str, Any]:
        """Get store statistics."""
        return {
            "durable_state": self._state.value,
            **self._stats,
            "local": self._local.get_stats(),
        }
