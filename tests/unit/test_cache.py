"""Tests for the summary cache."""

import threading
from unittest.mock import patch

from companion_memory.models import MemoryConfig, MemorySegment, MemoryType
from companion_memory.services.cache import SummaryCache
from tests.fixtures import make_message


class TestSummaryCache:
    """Test the SummaryCache class."""

    def test_initialization(self):
        """Test cache initialization."""
        cache = SummaryCache(ttl_seconds=60, cleanup_threshold=3)
        assert cache.ttl_seconds == 60
        assert cache.cleanup_threshold == 3
        assert cache.cache == {}
        assert cache.hits == 0
        assert cache.misses == 0

    def test_from_config(self):
        cache = SummaryCache.from_config(MemoryConfig())
        assert cache.ttl_seconds == 3600
        assert cache.cleanup_threshold == 10

    def test_key_is_deterministic(self):
        """Test that equal batches produce equal keys."""
        batch = [make_message("I like jazz"), make_message("Nice choice!", is_user=False)]
        same = [make_message("I like jazz"), make_message("Nice choice!", is_user=False)]
        assert SummaryCache.create_key(batch) == SummaryCache.create_key(same)

    def test_key_format(self):
        """Test count, total length and the no-memories marker."""
        batch = [make_message("abc"), make_message("defg", is_user=False)]
        key = SummaryCache.create_key(batch)
        count, length, digest, memories = key.split(":")
        assert count == "2"
        assert length == "7"
        assert len(digest) == 16
        assert memories == "no-memories"

    def test_key_depends_on_speaker(self):
        """Test that swapping who said something changes the key."""
        as_user = [make_message("same words")]
        as_assistant = [make_message("same words", is_user=False)]
        assert SummaryCache.create_key(as_user) != SummaryCache.create_key(as_assistant)

    def test_key_ignores_memory_order(self):
        """Test that memory ids are sorted before hashing."""
        batch = [make_message("tell me about my trip")]
        a = MemorySegment("trip to Rome", MemoryType.LONG_TERM, 0.8, id="mem_a")
        b = MemorySegment("likes pasta", MemoryType.MEDIUM_TERM, 0.5, id="mem_b")

        forward = SummaryCache.create_key(batch, [a, b])
        backward = SummaryCache.create_key(batch, [b, a])
        assert forward == backward
        assert forward != SummaryCache.create_key(batch)
        assert len(forward.split(":")[-1]) == 8

    def test_get_miss_then_hit(self):
        """Test basic get/set."""
        cache = SummaryCache()
        assert cache.get("k") is None
        cache.set("k", "summary")
        assert cache.get("k") == "summary"
        assert cache.hits == 1
        assert cache.misses == 1

    @patch("time.time")
    def test_expired_entry_is_a_miss(self, mock_time):
        """Test that entries older than the TTL are dropped on read."""
        cache = SummaryCache(ttl_seconds=60)
        mock_time.return_value = 1000
        cache.set("k", "summary")

        mock_time.return_value = 1059
        assert cache.get("k") == "summary"

        mock_time.return_value = 1061
        assert cache.get("k") is None
        assert "k" not in cache.cache
        assert cache.misses == 1

    @patch("time.time")
    def test_set_sweeps_expired_entries_past_threshold(self, mock_time):
        """Test the passive cleanup once the cache grows past the threshold."""
        cache = SummaryCache(ttl_seconds=60, cleanup_threshold=3)
        mock_time.return_value = 1000
        for i in range(4):
            cache.set(f"old{i}", "stale")

        mock_time.return_value = 2000
        cache.set("fresh", "new")

        assert list(cache.cache) == ["fresh"]

    @patch("time.time")
    def test_no_sweep_below_threshold(self, mock_time):
        cache = SummaryCache(ttl_seconds=60, cleanup_threshold=10)
        mock_time.return_value = 1000
        cache.set("old", "stale")
        mock_time.return_value = 2000
        cache.set("fresh", "new")
        assert set(cache.cache) == {"old", "fresh"}

    def test_clear(self):
        """Test clearing cache."""
        cache = SummaryCache()
        cache.set("a", "1")
        cache.get("a")
        cache.clear()
        assert cache.cache == {}
        assert cache.hits == 0

    def test_get_stats(self):
        """Test getting cache statistics."""
        cache = SummaryCache(ttl_seconds=30, cleanup_threshold=5)
        cache.set("a", "1")
        cache.get("a")
        cache.get("b")

        stats = cache.get_stats()
        assert stats["size"] == 1
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5
        assert stats["ttl_seconds"] == 30
        assert stats["cleanup_threshold"] == 5

    def test_clear_waits_for_sweep(self):
        """Test that clearing from another thread cannot interleave with a sweep."""
        cache = SummaryCache(ttl_seconds=-1, cleanup_threshold=0)
        for i in range(20):
            cache.cache[f"k{i}"] = {"summary": "s", "computed_at": 0}

        with cache._lock:
            clearer = threading.Thread(target=cache.clear)
            clearer.start()
            clearer.join(timeout=0.2)
            assert clearer.is_alive()
            assert len(cache.cache) == 20

        clearer.join(timeout=5)
        assert not clearer.is_alive()
        assert cache.cache == {}

    def test_concurrent_set_and_clear(self):
        """Test that sweeping sets and clears from two threads never fail."""
        cache = SummaryCache(ttl_seconds=-1, cleanup_threshold=0)
        errors = []

        def writer():
            try:
                for i in range(2000):
                    cache.set(f"k{i}", "summary")
            except Exception as e:
                errors.append(e)

        thread = threading.Thread(target=writer)
        thread.start()
        for _ in range(2000):
            cache.clear()
        thread.join(timeout=10)

        assert errors == []
