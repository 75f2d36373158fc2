"""
Tests for the process-local cache tier and its eviction policy.
"""
from app.cache import CachedPayload, LocalTier


def _payload(clock, ttl_ms, value="v"):
    now = clock()
    return CachedPayload(value=value, fetched_at=now, expires_at=now + ttl_ms)


def test_get_hides_expired_unless_asked(clock):
    tier = LocalTier(clock=clock)
    tier.set("k", _payload(clock, 1000))

    clock.advance(1000)
    assert tier.get("k") is None
    assert tier.get("k", allow_expired=True).value == "v"


def test_sweep_removes_expired_entries(clock):
    tier = LocalTier(clock=clock)
    tier.set("short", _payload(clock, 500))
    tier.set("long", _payload(clock, 5000))

    clock.advance(600)
    assert tier.sweep() == 1
    assert len(tier) == 1
    assert tier.get("long") is not None


def test_capacity_bound_evicts_soonest_expiring_first(clock):
    tier = LocalTier(max_entries=3, clock=clock)
    tier.set("a", _payload(clock, 4000))
    tier.set("b", _payload(clock, 1000))
    tier.set("c", _payload(clock, 3000))
    tier.set("d", _payload(clock, 2000))

    assert len(tier) == 3
    assert tier.get("b") is None
    for key in ("a", "c", "d"):
        assert tier.get(key) is not None


def test_many_distinct_keys_converge_to_bound(clock):
    tier = LocalTier(max_entries=10, clock=clock)
    for i in range(250):
        tier.set(f"key-{i}", _payload(clock, 60_000 + i))

    assert len(tier) == 10
    assert tier.get_stats()["evictions"] == 240


def test_set_supersedes_previous_payload(clock):
    tier = LocalTier(clock=clock)
    tier.set("k", _payload(clock, 1000, value=1))
    clock.advance(10)
    tier.set("k", _payload(clock, 1000, value=2))

    assert tier.get("k").value == 2
    assert len(tier) == 1
