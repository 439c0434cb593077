"""
Tests for the in-process cache
"""

import asyncio
import re
import pytest
from unittest.mock import MagicMock

from call_ingest.services.cache_service import CacheService, cache_aside, generate_cache_key


class TestExpiry:
    """TTL behaviour"""

    def test_get_before_expiry_returns_value(self, cache, clock):
        """Test a live entry is returned"""
        cache.set("a", 1, ttl=5)
        clock.advance(4.9)
        assert cache.get("a") == 1

    def test_get_after_expiry_is_miss_and_removes_entry(self, cache, clock):
        """Test an expired entry is never returned and is deleted on read"""
        cache.set("a", 1, ttl=5)
        clock.advance(5)

        found, value = cache.lookup("a")

        assert found is False
        assert value is None
        assert len(cache) == 0
        assert cache.stats()["misses"] == 1

    def test_default_ttl_applies(self, cache, clock):
        """Test entries without a ttl use the cache default"""
        cache.set("a", 1)
        clock.advance(9)
        assert "a" in cache
        clock.advance(1)
        assert "a" not in cache

    def test_sweep_removes_unread_expired_entries(self, cache, clock):
        """Test the sweep drops expired entries nobody reads"""
        cache.set("short", 1, ttl=1)
        cache.set("long", 2, ttl=100)
        clock.advance(2)

        assert cache.sweep() == 1
        assert len(cache) == 1
        assert cache.get("long") == 2

    @pytest.mark.asyncio
    async def test_sweeper_task_lifecycle(self):
        """Test the background sweeper runs and stops cleanly"""
        cache = CacheService(max_size=10, default_ttl=0.01, sweep_interval=0.01)
        cache.set("a", 1)
        cache.start_sweeper()
        await asyncio.sleep(0.05)
        await cache.stop_sweeper()

        assert len(cache) == 0


class TestEviction:
    """LRU behaviour at capacity"""

    def test_least_recently_accessed_entry_is_evicted(self, cache, clock):
        """Test reading an old entry protects it from eviction"""
        cache.set("a", 1)
        clock.advance(1)
        cache.set("b", 2)
        clock.advance(1)
        cache.set("c", 3)
        clock.advance(1)

        # Refresh the oldest entry
        assert cache.get("a") == 1
        cache.set("d", 4)

        assert "a" in cache
        assert "b" not in cache
        assert "c" in cache
        assert "d" in cache
        assert cache.stats()["evictions"] == 1

    def test_overwrite_does_not_evict(self, cache):
        """Test rewriting an existing key at capacity keeps the others"""
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)
        cache.set("a", 10)

        assert len(cache) == 3
        assert cache.get("a") == 10
        assert cache.stats()["evictions"] == 0


class TestGetOrSet:
    """Compute-on-miss behaviour"""

    def test_factory_called_once_within_ttl(self, cache):
        """Test a second call is served from the cache"""
        factory = MagicMock(return_value={"price": "trois cent cinquante dollars"})

        first = cache.get_or_set("quote", factory)
        second = cache.get_or_set("quote", factory)

        assert first == second
        factory.assert_called_once()
        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5

    def test_factory_called_again_after_expiry(self, cache, clock):
        """Test an expired value is recomputed"""
        factory = MagicMock(side_effect=[1, 2])

        assert cache.get_or_set("k", factory, ttl=1) == 1
        clock.advance(2)
        assert cache.get_or_set("k", factory, ttl=1) == 2

    def test_failed_factory_caches_nothing(self, cache):
        """Test factory errors propagate and leave no entry"""
        def broken():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            cache.get_or_set("k", broken)

        assert "k" not in cache

    @pytest.mark.asyncio
    async def test_async_variant(self, cache):
        """Test the awaitable factory is awaited once"""
        calls = []

        async def fetch():
            calls.append(1)
            return "row"

        assert await cache.get_or_set_async("k", fetch) == "row"
        assert await cache.get_or_set_async("k", fetch) == "row"
        assert len(calls) == 1


class TestInvalidation:
    """Invalidation by key or pattern"""

    def test_exact_key(self, cache):
        """Test invalidating a single key"""
        cache.set("leads:1", 1)
        cache.set("leads:2", 2)

        assert cache.invalidate("leads:1") == 1
        assert cache.invalidate("leads:1") == 0
        assert "leads:2" in cache

    def test_wildcard_prefix(self):
        """Test a table prefix removes every key of that table only"""
        cache = CacheService(max_size=10)
        cache.set("leads:page:{}", [])
        cache.set("leads:id:*:1", {})
        cache.set("vapi_calls:page:{}", [])

        assert cache.invalidate("leads:*") == 2
        assert "vapi_calls:page:{}" in cache

    def test_compiled_regex(self):
        """Test invalidating with a compiled pattern"""
        cache = CacheService(max_size=10)
        cache.set("tool:getQuote:a", 1)
        cache.set("tool:checkServiceArea:b", 2)

        assert cache.invalidate(re.compile(r"getQuote")) == 1
        assert len(cache) == 1

    def test_clear_resets_everything(self, cache):
        """Test clear drops entries and counters"""
        cache.set("a", 1)
        cache.get("a")
        cache.clear()

        assert len(cache) == 0
        assert cache.stats()["hits"] == 0


class TestHelpers:
    """Key generation and the cache-aside wrapper"""

    def test_cache_key_is_deterministic(self):
        """Test dict ordering does not change the key"""
        first = generate_cache_key("leads", "page", {"b": 2, "a": 1})
        second = generate_cache_key("leads", "page", {"a": 1, "b": 2})

        assert first == second
        assert first.startswith("leads:page:")

    @pytest.mark.asyncio
    async def test_cache_aside_wrapper(self):
        """Test the wrapped function runs once per key"""
        cache = CacheService(max_size=10)
        seen = []

        async def fetch(table, row_id):
            seen.append((table, row_id))
            return {"id": row_id}

        cached_fetch = cache_aside(cache, lambda table, row_id: f"{table}:{row_id}", fetch, ttl=60)

        assert await cached_fetch("leads", "1") == {"id": "1"}
        assert await cached_fetch("leads", "1") == {"id": "1"}
        assert await cached_fetch("leads", "2") == {"id": "2"}
        assert seen == [("leads", "1"), ("leads", "2")]
