"""
Tests for in-process request coalescing.
"""
import asyncio

import pytest

from app.cache import RequestCoalescer


def test_concurrent_calls_share_one_fetch():
    coalescer = RequestCoalescer()
    calls = []

    async def fetch():
        calls.append(1)
        await asyncio.sleep(0.05)
        return {"page": 1}

    async def scenario():
        return await asyncio.gather(*(coalescer.get_or_fetch("k", fetch) for _ in range(10)))

    results = asyncio.run(scenario())
    assert len(calls) == 1
    assert all(result == {"page": 1} for result in results)
    assert coalescer.active_requests == 0


def test_different_keys_fetch_independently():
    coalescer = RequestCoalescer()
    calls = []

    async def fetch_for(key):
        async def fetch():
            calls.append(key)
            await asyncio.sleep(0)
            return key
        return await coalescer.get_or_fetch(key, fetch)

    async def scenario():
        return await asyncio.gather(fetch_for("a"), fetch_for("b"))

    assert asyncio.run(scenario()) == ["a", "b"]
    assert sorted(calls) == ["a", "b"]


def test_error_reaches_every_caller_and_clears_registration():
    coalescer = RequestCoalescer()

    async def fetch():
        await asyncio.sleep(0.01)
        raise RuntimeError("quota exceeded")

    async def scenario():
        return await asyncio.gather(
            coalescer.get_or_fetch("k", fetch),
            coalescer.get_or_fetch("k", fetch),
            return_exceptions=True,
        )

    results = asyncio.run(scenario())
    assert all(isinstance(r, RuntimeError) for r in results)
    assert not coalescer.is_in_flight("k")


def test_sequential_calls_fetch_again():
    """Registrations only live while the fetch is unresolved."""
    coalescer = RequestCoalescer()
    calls = []

    async def fetch():
        calls.append(1)
        return len(calls)

    async def scenario():
        first = await coalescer.get_or_fetch("k", fetch)
        second = await coalescer.get_or_fetch("k", fetch)
        return first, second

    assert asyncio.run(scenario()) == (1, 2)


def test_cancelled_waiter_does_not_cancel_shared_fetch():
    coalescer = RequestCoalescer()

    async def fetch():
        await asyncio.sleep(0.05)
        return "done"

    async def scenario():
        owner = asyncio.create_task(coalescer.get_or_fetch("k", fetch))
        await asyncio.sleep(0)
        waiter = asyncio.create_task(coalescer.get_or_fetch("k", fetch))
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter
        return await owner

    assert asyncio.run(scenario()) == "done"


def test_cancelled_initiator_does_not_cancel_joiners():
    coalescer = RequestCoalescer()
    calls = []

    async def fetch():
        calls.append(1)
        await asyncio.sleep(0.05)
        return "done"

    async def scenario():
        owner = asyncio.create_task(coalescer.get_or_fetch("k", fetch))
        await asyncio.sleep(0)
        joiner = asyncio.create_task(coalescer.get_or_fetch("k", fetch))
        await asyncio.sleep(0)
        owner.cancel()
        with pytest.raises(asyncio.CancelledError):
            await owner
        assert coalescer.is_in_flight("k")
        return await joiner

    assert asyncio.run(scenario()) == "done"
    assert len(calls) == 1
    assert coalescer.active_requests == 0
