"""
Unit tests for the process-local AI cache and its janitor.
"""

import asyncio

import pytest

from nesternity_api.cache.ai_cache import AICache
from nesternity_api.cache.janitor import purge_once, run_janitor
from nesternity_api.rate_limiter import InMemoryRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock) -> AICache:
    return AICache(default_ttl_seconds=60, clock=clock)


class TestKeys:
    def test_key_ignores_dict_order(self):
        a = AICache.make_key("proposal", {"client": "Acme", "budget": 5000})
        b = AICache.make_key("proposal", {"budget": 5000, "client": "Acme"})

        assert a == b
        assert a.startswith("proposal:")

    def test_key_differs_by_input_and_prefix(self):
        base = AICache.make_key("proposal", {"client": "Acme"})

        assert base != AICache.make_key("proposal", {"client": "Globex"})
        assert base != AICache.make_key("contract", {"client": "Acme"})


class TestExpiry:
    def test_hit_before_expiry(self, cache, clock):
        cache.set("k", "v")
        clock.advance(59)

        assert cache.get("k") == "v"
        assert cache.stats().hits == 1

    def test_expired_entry_removed_on_read(self, cache, clock):
        cache.set("k", "v")
        clock.advance(60)

        assert cache.get("k") is None
        stats = cache.stats()
        assert stats.size == 0
        assert stats.misses == 1
        assert stats.evictions == 1

    def test_per_entry_ttl(self, cache, clock):
        cache.set("short", 1, ttl_seconds=5)
        cache.set("long", 2)
        clock.advance(10)

        assert cache.get("short") is None
        assert cache.get("long") == 2

    def test_non_positive_ttl_rejected(self, cache):
        with pytest.raises(ValueError):
            cache.set("k", "v", ttl_seconds=0)

    def test_clear_expired(self, cache, clock):
        cache.set("a", 1, ttl_seconds=5)
        cache.set("b", 2, ttl_seconds=5)
        cache.set("c", 3, ttl_seconds=500)
        clock.advance(6)

        assert cache.clear_expired() == 2
        assert cache.stats().keys == ["c"]

    def test_clear_resets_counters(self, cache):
        cache.set("a", 1)
        cache.get("a")
        cache.get("missing")

        cache.clear()

        stats = cache.stats()
        assert (stats.size, stats.hits, stats.misses, stats.evictions) == (0, 0, 0, 0)

    def test_default_ttl_from_env(self, monkeypatch):
        monkeypatch.setenv("AI_CACHE_TTL_SECONDS", "120")

        assert AICache().default_ttl_seconds == 120

    def test_explicit_zero_default_ttl_not_replaced(self, monkeypatch, clock):
        monkeypatch.setenv("AI_CACHE_TTL_SECONDS", "120")
        cache = AICache(default_ttl_seconds=0, clock=clock)

        assert cache.default_ttl_seconds == 0
        with pytest.raises(ValueError):
            cache.set("k", "v")


class TestWithCache:
    @pytest.mark.asyncio
    async def test_sync_generator_called_once(self, cache):
        calls = []

        def generate():
            calls.append(1)
            return {"text": "Proposal draft"}

        first = await cache.with_cache("proposal", {"client": "Acme"}, generate)
        second = await cache.with_cache("proposal", {"client": "Acme"}, generate)

        assert first == second == {"text": "Proposal draft"}
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_async_generator(self, cache):
        async def generate():
            await asyncio.sleep(0)
            return "contract text"

        assert await cache.with_cache("contract", {"id": 1}, generate) == "contract text"
        assert cache.stats().size == 1

    @pytest.mark.asyncio
    async def test_failure_not_cached(self, cache):
        def boom():
            raise RuntimeError("provider unavailable")

        with pytest.raises(RuntimeError):
            await cache.with_cache("proposal", {"client": "Acme"}, boom)

        assert cache.stats().size == 0

    @pytest.mark.asyncio
    async def test_regenerates_after_expiry(self, cache, clock):
        results = iter(["first", "second"])

        await cache.with_cache("p", {"x": 1}, lambda: next(results), ttl_seconds=5)
        clock.advance(5)

        assert await cache.with_cache("p", {"x": 1}, lambda: next(results)) == "second"

    @pytest.mark.asyncio
    async def test_cached_none_is_a_hit(self, cache):
        calls = []

        def generate():
            calls.append(1)
            return None

        assert await cache.with_cache("summary", {"id": 7}, generate) is None
        assert await cache.with_cache("summary", {"id": 7}, generate) is None

        assert len(calls) == 1
        assert cache.stats().hits == 1


class TestJanitor:
    def test_purge_once(self, cache, clock):
        limiter = InMemoryRateLimiter(quota=5, window=60, clock=clock)
        limiter.check_rate_limit("client-a")
        cache.set("a", 1, ttl_seconds=5)
        clock.advance(120)

        result = purge_once(cache, [limiter])

        assert result == {"ai_cache_entries": 1, "rate_limit_windows": 1}

    @pytest.mark.asyncio
    async def test_run_janitor_stops_on_event(self, cache):
        stop = asyncio.Event()
        task = asyncio.create_task(run_janitor(cache, [], interval_seconds=3600, stop_event=stop))
        await asyncio.sleep(0)

        stop.set()
        await asyncio.wait_for(task, timeout=1)

        assert task.done()
