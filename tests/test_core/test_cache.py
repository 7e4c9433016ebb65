"""
Tests for Key-Value Cache

Tests for firesim/core/cache.py
"""

import pytest

from firesim.core.cache import TTLCache, make_cache_key


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestMakeCacheKey:
    """Tests for cache key construction."""

    def test_stable_across_dict_order(self):
        assert make_cache_key({"a": 1, "b": 2}) == make_cache_key({"b": 2, "a": 1})

    def test_distinct_parts(self):
        assert make_cache_key("v1", "aerial") != make_cache_key("v2", "aerial")

    def test_sha256_hex(self):
        assert len(make_cache_key("x")) == 64


class TestTTLCache:
    """Tests for TTLCache class."""

    def test_get_and_set(self):
        cache = TTLCache()
        cache.set("k", "value")

        assert cache.get("k") == "value"
        assert len(cache) == 1

    def test_missing_returns_default(self):
        cache = TTLCache()
        assert cache.get("missing", "fallback") == "fallback"

    def test_expiry(self):
        """Test that entries expire after the TTL."""
        clock = FakeClock()
        cache = TTLCache(ttl=60, clock=clock)
        cache.set("k", "value")

        clock.now += 59
        assert cache.get("k") == "value"

        clock.now += 2
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_lru_eviction(self):
        """Test that the least recently used entry is evicted first."""
        cache = TTLCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)

        assert cache.get("a") == 1
        assert cache.get("b") is None
        assert cache.get("c") == 3

    def test_get_or_set_calls_factory_once(self):
        cache = TTLCache()
        calls = []

        def factory():
            calls.append(1)
            return "computed"

        assert cache.get_or_set("k", factory) == "computed"
        assert cache.get_or_set("k", factory) == "computed"
        assert len(calls) == 1

    def test_get_or_set_does_not_cache_errors(self):
        cache = TTLCache()

        def failing():
            raise ValueError("boom")

        with pytest.raises(ValueError):
            cache.get_or_set("k", failing)
        assert len(cache) == 0

    def test_cleanup_expired(self):
        clock = FakeClock()
        cache = TTLCache(ttl=10, clock=clock)
        cache.set("a", 1)
        clock.now += 5
        cache.set("b", 2)
        clock.now += 6

        assert cache.cleanup_expired() == 1
        assert cache.get("b") == 2

    def test_invalidate_and_clear(self):
        cache = TTLCache()
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.invalidate("a") is True
        assert cache.invalidate("a") is False
        assert cache.clear() == 1

    def test_stats(self):
        cache = TTLCache()
        cache.set("a", 1)
        cache.get("a")
        cache.get("missing")

        stats = cache.get_stats()

        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["size"] == 1

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            TTLCache(max_size=0)
