"""
Unit tests for the response cache store.
"""

from apic.cache import CacheEntry, CacheStore


class TestCacheStore:
    """Test cases for CacheStore."""

    def test_get_missing_key(self, cache):
        assert cache.get("https://api.test/items") is None

    def test_set_stamps_current_time(self, cache, clock):
        entry = cache.set("https://api.test/items", [1, 2])

        assert entry == CacheEntry(value=[1, 2], stored_at=clock.now)
        assert cache.get("https://api.test/items") is entry

    def test_set_overwrites(self, cache, clock):
        cache.set("k", "old")
        clock.advance(10)
        cache.set("k", "new")

        assert cache.get("k").value == "new"
        assert cache.get("k").stored_at == clock.now
        assert len(cache) == 1

    def test_get_returns_stale_entries(self, cache, clock):
        """Test freshness is the caller's decision; stale entries stay put."""
        entry = cache.set("k", "v")
        clock.advance(600)

        assert cache.get("k") is entry
        assert cache.is_fresh(entry, 300) is False
        assert "k" in cache

    def test_freshness_boundary(self, cache, clock):
        entry = cache.set("k", "v")

        clock.advance(299)
        assert cache.is_fresh(entry, 300) is True
        clock.advance(1)
        assert cache.is_fresh(entry, 300) is False

    def test_zero_ttl_is_never_fresh(self, cache):
        entry = cache.set("k", "v")
        assert cache.is_fresh(entry, 0) is False

    def test_invalidate_single_key(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.invalidate("a") == 1

        assert "a" not in cache
        assert cache.get("b").value == 2

    def test_invalidate_missing_key_is_noop(self, cache):
        cache.set("a", 1)
        assert cache.invalidate("zzz") == 0
        assert len(cache) == 1

    def test_invalidate_all(self, cache):
        cache.set("a", 1)
        cache.set("b", 2)

        assert cache.invalidate() == 2

        assert len(cache) == 0
        assert cache.entries == {}

    def test_snapshot_is_a_copy(self, cache):
        cache.set("a", 1)
        snapshot = cache.snapshot()
        cache.invalidate()

        assert list(snapshot) == ["a"]
        assert list(cache) == []

    def test_default_clock(self):
        store = CacheStore()
        entry = store.set("a", 1)
        assert store.is_fresh(entry, 60) is True
