"""
Unit tests for siteintel/services/cache.py

All tests run against a FakeClock; nothing sleeps.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from siteintel.services.cache import MAX_KEY_LENGTH, TTLCache

# =============================================================================
# Expiry
# =============================================================================


class TestExpiry:
    def test_value_visible_until_expiry(self, cache, clock):
        cache.set("k", "v", ttl=10)
        clock.advance(10)
        result = cache.get("k")
        assert result is not None
        assert result.data == "v"
        assert result.from_cache == "memory"
        assert result.is_stale is False

    def test_miss_after_expiry_without_delete(self, cache, clock):
        cache.set("k", "v", ttl=10)
        clock.advance(10.001)
        assert cache.get("k") is None
        # Entry is retained for fallback, not removed by the read
        assert len(cache) == 1

    def test_timedelta_ttl(self, cache, clock):
        cache.set("k", "v", ttl=timedelta(minutes=10))
        clock.advance(599)
        assert cache.get("k") is not None
        clock.advance(2)
        assert cache.get("k") is None

    def test_default_ttl(self, clock):
        cache = TTLCache(clock=clock, default_ttl=timedelta(seconds=30))
        cache.set("k", "v")
        clock.advance(31)
        assert cache.get("k") is None

    def test_negative_ttl_rejected(self, cache):
        with pytest.raises(ValueError):
            cache.set("k", "v", ttl=-1)
        with pytest.raises(ValueError):
            cache.set("k", "v", ttl=timedelta(seconds=-5))

    def test_missing_key(self, cache):
        assert cache.get("nope") is None

    def test_overwrite_replaces_value_and_expiry(self, cache, clock):
        cache.set("k", "old", ttl=5)
        clock.advance(4)
        cache.set("k", "new", ttl=60)
        clock.advance(10)
        assert cache.get("k").data == "new"

    def test_overwrite_can_shorten_expiry(self, cache, clock):
        cache.set("k", "old", ttl=60)
        cache.set("k", "new", ttl=1)
        clock.advance(2)
        assert cache.get("k") is None


# =============================================================================
# Stale fallback
# =============================================================================


class TestStale:
    def test_stale_served_within_grace_window(self, cache, clock):
        cache.set("k", "v", ttl=10)
        clock.advance(15)
        assert cache.get("k") is None
        stale = cache.get_stale("k")
        assert stale.data == "v"
        assert stale.is_stale is True
        assert stale.from_cache == "stale"

    def test_stale_gone_after_grace_window(self, cache, clock):
        cache.set("k", "v", ttl=10)
        clock.advance(20.5)
        assert cache.get_stale("k") is None

    def test_get_stale_on_fresh_entry_is_not_stale(self, cache):
        cache.set("k", "v", ttl=10)
        result = cache.get_stale("k")
        assert result.is_stale is False

    def test_stale_disabled(self, cache, clock):
        cache.set("k", "v", ttl=10, stale_while_revalidate=False)
        clock.advance(11)
        assert cache.get_stale("k") is None


# =============================================================================
# Keys and clearing
# =============================================================================


class TestKeys:
    def test_key_independent_of_param_order(self, cache):
        a = cache.generate_key("bls", {"state": "37", "county": "119"})
        b = cache.generate_key("bls", {"county": "119", "state": "37"})
        assert a == b
        assert a.startswith("bls:")

    def test_distinct_params_distinct_keys(self, cache):
        a = cache.generate_key("bls", {"a": "1,b=2"})
        b = cache.generate_key("bls", {"a": "1", "b": "2"})
        assert a != b

    def test_long_keys_hashed_with_upstream_prefix(self, cache):
        key = cache.generate_key("census", {"variable": "X" * 300})
        assert len(key) <= MAX_KEY_LENGTH
        assert key.startswith("census:#")
        other = cache.generate_key("census", {"variable": "Y" * 300})
        assert key != other

    def test_key_prefix_applied(self, clock):
        cache = TTLCache(prefix="si_", clock=clock)
        assert cache.generate_key("fbi", {}) == "si_fbi:{}"
        assert cache.key_prefix("fbi") == "si_fbi:"


class TestClear:
    def test_clear_all(self, cache):
        cache.set("bls:1", 1, ttl=60)
        cache.set("fbi:1", 2, ttl=60)
        assert cache.clear() == 2
        assert len(cache) == 0

    def test_clear_by_prefix(self, cache):
        cache.set("bls:1", 1, ttl=60)
        cache.set("bls:2", 2, ttl=60)
        cache.set("fbi:1", 3, ttl=60)
        assert cache.clear("bls:") == 2
        assert cache.get("bls:1") is None
        assert cache.get("fbi:1").data == 3

    def test_delete(self, cache):
        cache.set("k", 1, ttl=60)
        assert cache.delete("k") is True
        assert cache.delete("k") is False


# =============================================================================
# Housekeeping
# =============================================================================


class TestHousekeeping:
    def test_cleanup_removes_only_entries_past_stale_window(self, cache, clock):
        cache.set("short", 1, ttl=1)
        cache.set("long", 2, ttl=100)
        clock.advance(5)
        assert cache.cleanup_expired() == 1
        assert cache.get("long").data == 2

    def test_eviction_bounds_size(self, clock):
        cache = TTLCache(max_size=2, shards=1, clock=clock)
        cache.set("a", 1, ttl=60)
        clock.advance(1)
        cache.set("b", 2, ttl=60)
        clock.advance(1)
        cache.set("c", 3, ttl=60)
        assert len(cache) == 2
        assert cache.get("a") is None
        assert cache.get_stats().evictions == 1

    def test_stats(self, cache, clock):
        cache.set("k", 1, ttl=10)
        cache.get("k")
        cache.get("missing")
        clock.advance(11)
        cache.get_stale("k")
        stats = cache.get_stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.stale_hits == 1
        assert stats.to_dict()["hit_rate"] == "50.00%"

    def test_invalid_shard_count(self):
        with pytest.raises(ValueError):
            TTLCache(shards=0)


# =============================================================================
# Concurrent access
# =============================================================================


class TestConcurrency:
    def test_readers_only_see_stored_values(self):
        cache = TTLCache(max_size=10_000, shards=4)
        rounds = 300
        start = threading.Barrier(8)
        writers_done = threading.Event()

        def writer(worker: int) -> set[tuple[int, int]]:
            written = set()
            start.wait()
            for n in range(rounds):
                value = (worker, n)
                cache.set("shared", value, ttl=60)
                cache.set(f"w{worker}:{n % 10}", value, ttl=60)
                written.add(value)
                if n % 50 == 0:
                    cache.clear(f"w{worker}:")
            return written

        def reader(worker: int) -> list:
            seen = []
            start.wait()
            n = 0
            # One full pass after the writers finish
            while True:
                finished = writers_done.is_set()
                for key in ("shared", f"w{worker}:{n % 10}"):
                    result = cache.get(key)
                    if result is not None:
                        seen.append(result.data)
                n += 1
                if finished:
                    return seen

        with ThreadPoolExecutor(max_workers=8) as pool:
            writers = [pool.submit(writer, i) for i in range(4)]
            readers = [pool.submit(reader, i) for i in range(4)]
            try:
                written = set().union(*(f.result() for f in writers))
            finally:
                writers_done.set()
            seen = [value for f in readers for value in f.result()]

        assert seen
        assert all(value in written for value in seen)
        assert cache.get("shared").data in written
        assert len(cache) <= 1 + 4 * 10
