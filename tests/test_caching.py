"""Tests for AccessDecisionCache."""

import asyncio

import pytest

from record_access.caching import AccessDecisionCache
from record_access.models import CacheOptions, CachePriority


class CountingCompute:
    """Compute function that counts calls and can be held open."""

    def __init__(self, value="decision", error=None):
        self.value = value
        self.error = error
        self.calls = 0
        self.gate = asyncio.Event()
        self.gate.set()

    async def __call__(self):
        self.calls += 1
        await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.value


class TestGetOrCompute:

    @pytest.mark.asyncio
    async def test_computes_on_miss_and_serves_hit(self, decision_cache):
        compute = CountingCompute()

        first = await decision_cache.get_or_compute("k", compute)
        second = await decision_cache.get_or_compute("k", compute)

        assert first == second == "decision"
        assert compute.calls == 1
        assert decision_cache.stats["hits"] == 1
        assert decision_cache.stats["misses"] == 1

    @pytest.mark.asyncio
    async def test_single_flight_for_concurrent_callers(self, decision_cache):
        compute = CountingCompute()
        compute.gate.clear()

        callers = [
            asyncio.ensure_future(decision_cache.get_or_compute("k", compute))
            for _ in range(20)
        ]
        await asyncio.sleep(0)
        compute.gate.set()
        results = await asyncio.gather(*callers)

        assert compute.calls == 1
        assert results == ["decision"] * 20

    @pytest.mark.asyncio
    async def test_unrelated_keys_compute_independently(self, decision_cache):
        compute_a = CountingCompute("a")
        compute_b = CountingCompute("b")

        a, b = await asyncio.gather(
            decision_cache.get_or_compute("key-a", compute_a),
            decision_cache.get_or_compute("key-b", compute_b),
        )

        assert (a, b) == ("a", "b")
        assert compute_a.calls == 1
        assert compute_b.calls == 1


class TestFailures:

    @pytest.mark.asyncio
    async def test_failure_reaches_every_waiter_and_is_not_cached(self, decision_cache):
        error = RuntimeError("rpc down")
        compute = CountingCompute(error=error)
        compute.gate.clear()

        callers = [
            asyncio.ensure_future(decision_cache.get_or_compute("k", compute))
            for _ in range(5)
        ]
        await asyncio.sleep(0)
        compute.gate.set()
        results = await asyncio.gather(*callers, return_exceptions=True)

        assert compute.calls == 1
        assert all(r is error for r in results)
        assert len(decision_cache) == 0
        assert decision_cache.stats["failures"] == 1

    @pytest.mark.asyncio
    async def test_next_call_after_failure_recomputes(self, decision_cache):
        compute = CountingCompute(error=RuntimeError("rpc down"))
        with pytest.raises(RuntimeError):
            await decision_cache.get_or_compute("k", compute)

        compute.error = None
        value = await decision_cache.get_or_compute("k", compute)

        assert value == "decision"
        assert compute.calls == 2

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_compute(self, decision_cache):
        compute = CountingCompute()
        compute.gate.clear()

        caller = asyncio.ensure_future(decision_cache.get_or_compute("k", compute))
        await asyncio.sleep(0)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller

        compute.gate.set()
        await asyncio.sleep(0.01)

        assert len(decision_cache) == 1
        assert await decision_cache.get_or_compute("k", compute) == "decision"
        assert compute.calls == 1


class TestFreshness:

    @pytest.mark.asyncio
    async def test_fresh_just_before_ttl_recomputed_just_after(self, decision_cache, clock):
        compute = CountingCompute()
        options = CacheOptions(ttl_ms=60_000)

        await decision_cache.get_or_compute("k", compute, options)
        clock.advance(59.999)
        await decision_cache.get_or_compute("k", compute, options)
        assert compute.calls == 1

        clock.advance(0.002)
        await decision_cache.get_or_compute("k", compute, options)
        assert compute.calls == 2

    @pytest.mark.asyncio
    async def test_entry_expires_exactly_at_ttl(self, decision_cache, clock):
        compute = CountingCompute()

        await decision_cache.get_or_compute("k", compute, CacheOptions(ttl_ms=1_000))
        clock.advance(1.0)
        await decision_cache.get_or_compute("k", compute, CacheOptions(ttl_ms=1_000))

        assert compute.calls == 2

    @pytest.mark.asyncio
    async def test_default_ttl_is_sixty_seconds(self, decision_cache, clock):
        compute = CountingCompute()

        await decision_cache.get_or_compute("k", compute)
        clock.advance(59.5)
        await decision_cache.get_or_compute("k", compute)
        clock.advance(1.0)
        await decision_cache.get_or_compute("k", compute)

        assert compute.calls == 2

    @pytest.mark.asyncio
    async def test_purge_expired(self, decision_cache, clock):
        await decision_cache.get_or_compute("short", CountingCompute(), CacheOptions(ttl_ms=1_000))
        await decision_cache.get_or_compute("long", CountingCompute(), CacheOptions(ttl_ms=10_000))
        clock.advance(5)

        assert decision_cache.purge_expired() == 1
        assert len(decision_cache) == 1

    def test_non_positive_ttl_rejected(self):
        with pytest.raises(ValueError):
            CacheOptions(ttl_ms=0)


class TestManagement:

    @pytest.mark.asyncio
    async def test_invalidate_tag(self, decision_cache):
        tagged = CacheOptions(tags=["record:r1", "requester:u1"])
        other = CacheOptions(tags=["record:r2"])
        await decision_cache.get_or_compute("a", CountingCompute(), tagged)
        await decision_cache.get_or_compute("b", CountingCompute(), other)

        assert decision_cache.invalidate_tag("record:r1") == 1
        assert len(decision_cache) == 1

    @pytest.mark.asyncio
    async def test_invalidate_tag_discards_inflight_result(self, decision_cache):
        compute = CountingCompute()
        compute.gate.clear()
        options = CacheOptions(tags=["record:r1"])

        caller = asyncio.ensure_future(decision_cache.get_or_compute("k", compute, options))
        await asyncio.sleep(0)
        decision_cache.invalidate_tag("record:r1")
        compute.gate.set()

        assert await caller == "decision"
        assert len(decision_cache) == 0

    @pytest.mark.asyncio
    async def test_invalidate_key(self, decision_cache):
        compute = CountingCompute()
        await decision_cache.get_or_compute("k", compute)

        assert decision_cache.invalidate("k") is True
        assert decision_cache.invalidate("k") is False
        await decision_cache.get_or_compute("k", compute)
        assert compute.calls == 2

    @pytest.mark.asyncio
    async def test_eviction_prefers_low_priority(self, clock):
        cache = AccessDecisionCache(max_entries=2, clock=clock)
        await cache.get_or_compute("high", CountingCompute(), CacheOptions(priority=CachePriority.HIGH))
        clock.advance(1)
        await cache.get_or_compute("low", CountingCompute(), CacheOptions(priority=CachePriority.LOW))
        clock.advance(1)
        await cache.get_or_compute("normal", CountingCompute(), CacheOptions(priority=CachePriority.NORMAL))

        assert len(cache) == 2
        assert cache.stats["evictions"] == 1
        assert cache.invalidate("low") is False
        assert cache.invalidate("high") is True
