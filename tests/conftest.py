"""
Shared test doubles for the cache: a simulated clock and in-memory /
always-failing durable tier backends.
"""
import asyncio
from typing import Dict, Optional, Tuple

import pytest

from app.cache import CacheService, DurableState


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class InMemoryBackend:
    """Durable tier double honouring TTLs against a FakeClock."""

    def __init__(self, clock: FakeClock):
        self._clock = clock
        self.data: Dict[str, Tuple[str, Optional[int]]] = {}
        self.calls = []

    def _live(self, key: str) -> bool:
        entry = self.data.get(key)
        if entry is None:
            return False
        expires_at = entry[1]
        if expires_at is not None and self._clock() >= expires_at:
            del self.data[key]
            return False
        return True

    async def get(self, key):
        self.calls.append(("get", key))
        await asyncio.sleep(0)
        return self.data[key][0] if self._live(key) else None

    async def set(self, key, value, ttl_seconds):
        self.calls.append(("set", key, ttl_seconds))
        await asyncio.sleep(0)
        self.data[key] = (value, self._clock() + ttl_seconds * 1000)

    async def set_if_absent(self, key, value, ttl_seconds=None):
        self.calls.append(("set_if_absent", key, ttl_seconds))
        await asyncio.sleep(0)
        if self._live(key):
            return False
        expires_at = self._clock() + ttl_seconds * 1000 if ttl_seconds is not None else None
        self.data[key] = (value, expires_at)
        return True

    async def delete(self, key):
        self.calls.append(("delete", key))
        await asyncio.sleep(0)
        self.data.pop(key, None)

    async def expire(self, key, ttl_seconds):
        self.calls.append(("expire", key, ttl_seconds))
        await asyncio.sleep(0)
        if self._live(key):
            self.data[key] = (self.data[key][0], self._clock() + ttl_seconds * 1000)

    async def ping(self):
        self.calls.append(("ping",))
        await asyncio.sleep(0)


class FailingBackend:
    """Durable tier double where every call raises, like an unreachable Redis."""

    def __init__(self):
        self.calls = 0

    async def _fail(self, *args):
        self.calls += 1
        raise ConnectionError("durable tier unreachable")

    get = _fail
    set = _fail
    set_if_absent = _fail
    delete = _fail
    expire = _fail
    ping = _fail


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend(clock):
    return InMemoryBackend(clock)


@pytest.fixture
def failing_backend():
    return FailingBackend()


@pytest.fixture
def make_service(clock):
    """Factory for isolated CacheService instances on the fake clock."""

    def _make(durable=None, **kwargs):
        kwargs.setdefault("lock_wait_seconds", 0.05)
        state = DurableState.CONNECTED if durable is not None else DurableState.UNCONFIGURED
        return CacheService(durable=durable, durable_state=state, clock=clock, **kwargs)

    return _make
