"""
Tests for cache keys and TTL expiry.
"""

from datetime import datetime, timedelta

import pytest

from flow_assist.core.cache import TTLCache, content_hash, derive_cache_key


class FakeClock:
    def __init__(self):
        self.now = datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class TestKeys:
    """Deterministic content-derived keys."""

    def test_key_ignores_dict_order(self):
        assert derive_cache_key("t", {"a": 1, "b": [1, 2]}) == derive_cache_key("t", {"b": [1, 2], "a": 1})

    def test_key_changes_with_content(self):
        assert derive_cache_key("t", {"a": 1}) != derive_cache_key("t", {"a": 2})

    def test_key_format(self):
        key = derive_cache_key("translation", {"title": "Ü"})
        namespace, digest = key.split("_")
        assert namespace == "translation"
        assert len(digest) == 16

    @pytest.mark.parametrize("algorithm,length", [("sha256", 64), ("blake2b", 64), ("md5", 32)])
    def test_hash_algorithms(self, algorithm, length):
        assert len(content_hash(b"data", algorithm)) == length

    def test_unsupported_algorithm(self):
        with pytest.raises(ValueError):
            content_hash(b"data", "crc32")


class TestTTLCache:
    """Entries are valid for the TTL after creation."""

    def test_hit_before_expiry(self):
        clock = FakeClock()
        cache = TTLCache(timedelta(minutes=15), clock=clock)
        cache.set("k", "v")
        clock.advance(minutes=14, seconds=59)
        assert cache.get("k") == "v"

    def test_miss_after_expiry(self):
        clock = FakeClock()
        cache = TTLCache(timedelta(minutes=15), clock=clock)
        cache.set("k", "v")
        clock.advance(minutes=15)
        assert cache.get("k") is None
        assert "k" not in cache

    def test_set_purges_expired(self):
        clock = FakeClock()
        cache = TTLCache(timedelta(hours=1), clock=clock)
        cache.set("old", 1)
        clock.advance(hours=2)
        cache.set("new", 2)
        assert len(cache) == 1
        assert "new" in cache

    def test_invalidate_and_clear(self):
        cache = TTLCache(timedelta(hours=1))
        cache.set("a", 1)
        cache.set("b", 2)
        assert cache.invalidate("a")
        assert not cache.invalidate("a")
        cache.clear()
        assert len(cache) == 0
