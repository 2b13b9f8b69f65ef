"""
TTLCache - In-process response cache with per-entry expiry and stale fallback.

Features:
- TTL chosen by the caller on every write
- Expired entries kept for a grace window so callers can fall back to them
- Striped locks: keys are spread over shards, each with its own lock
- Bounded size per shard with oldest-first eviction
"""

import hashlib
import json
import threading
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")

# Canonical keys longer than this are replaced with a digest
MAX_KEY_LENGTH = 200


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    key: str
    data: T
    created_at: float
    expires_at: float
    stale_until: float

    def is_expired(self, now: float) -> bool:
        """Check if entry is past its TTL."""
        return now > self.expires_at

    def is_retained(self, now: float) -> bool:
        """Check if entry may still be served as stale data."""
        return now <= self.stale_until


@dataclass
class CacheResult(Generic[T]):
    """Result from cache lookup."""

    data: T
    from_cache: str  # 'memory' | 'stale'
    is_stale: bool


@dataclass
class _Shard:
    lock: threading.Lock = field(default_factory=threading.Lock)
    entries: dict[str, CacheEntry[Any]] = field(default_factory=dict)
    hits: int = 0
    misses: int = 0
    stale_hits: int = 0
    evictions: int = 0


def _to_seconds(ttl: timedelta | float) -> float:
    seconds = ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)
    if seconds < 0:
        raise ValueError(f"TTL must not be negative, got {seconds}s")
    return seconds


class TTLCache:
    """
    Key/value cache where every entry carries its own expiry.

    A read never sees an expired entry (``get`` reports a miss), but the
    entry is kept until its stale window closes so that ``get_stale`` can
    serve it when the upstream is unavailable.

    Usage:
        cache = TTLCache()
        key = cache.generate_key("bls", {"state": "37", "county": "119"})

        result = cache.get(key)
        if result:
            return result.data

        data = await fetch_data()
        cache.set(key, data, ttl=timedelta(minutes=10))
    """

    def __init__(
        self,
        prefix: str = "",
        max_size: int = 2048,
        shards: int = 16,
        default_ttl: timedelta = timedelta(minutes=5),
        stale_while_revalidate: bool = True,
        clock: Callable[[], float] = time.monotonic,
        debug: bool = False,
    ):
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self._prefix = prefix
        self._max_size = max_size
        self._shard_max = max(1, max_size // shards)
        self._shards = [_Shard() for _ in range(shards)]
        self._default_ttl = default_ttl
        self._stale_while_revalidate = stale_while_revalidate
        self._clock = clock
        self._debug = debug

    def generate_key(self, upstream_id: str, params: dict[str, Any] | None = None) -> str:
        """
        Build a deterministic key from an upstream id and its query parameters.

        Parameters are JSON-encoded with sorted keys, so distinct parameter
        sets never share a key. Long keys keep the upstream id in clear text
        (prefix clears still work) and hash the rest.
        """
        canonical = json.dumps(
            params or {}, sort_keys=True, separators=(",", ":"), default=str
        )
        full_key = f"{self.key_prefix(upstream_id)}{canonical}"
        if len(full_key) > MAX_KEY_LENGTH:
            digest = hashlib.sha256(canonical.encode()).hexdigest()
            return f"{self.key_prefix(upstream_id)}#{digest}"
        return full_key

    def key_prefix(self, upstream_id: str) -> str:
        """Prefix shared by every key of one upstream, for ``clear``."""
        return f"{self._prefix}{upstream_id}:"

    def _shard_for(self, key: str) -> _Shard:
        return self._shards[hash(key) % len(self._shards)]

    def get(self, key: str) -> CacheResult[Any] | None:
        """
        Get a fresh value from cache.

        Returns None if the key is absent or its entry has expired.
        """
        shard = self._shard_for(key)
        now = self._clock()
        with shard.lock:
            entry = shard.entries.get(key)
            if entry is None or entry.is_expired(now):
                shard.misses += 1
                self._log(f"MISS: {key[:50]}")
                return None
            shard.hits += 1
            self._log(f"HIT: {key[:50]}")
            return CacheResult(data=entry.data, from_cache="memory", is_stale=False)

    def get_stale(self, key: str) -> CacheResult[Any] | None:
        """Get a value even if expired, as long as its stale window is open."""
        shard = self._shard_for(key)
        now = self._clock()
        with shard.lock:
            entry = shard.entries.get(key)
            if entry is None or not entry.is_retained(now):
                return None
            if not entry.is_expired(now):
                return CacheResult(data=entry.data, from_cache="memory", is_stale=False)
            shard.stale_hits += 1
            self._log(f"STALE HIT: {key[:50]}")
            return CacheResult(data=entry.data, from_cache="stale", is_stale=True)

    def set(
        self,
        key: str,
        data: Any,
        ttl: timedelta | float | None = None,
        stale_while_revalidate: bool | None = None,
    ) -> None:
        """
        Store a value, replacing any existing entry and its expiry.

        Args:
            key: Cache key
            data: Data to cache
            ttl: Time to live as timedelta or seconds (default TTL if None)
            stale_while_revalidate: Keep the entry for one extra TTL after
                expiry for stale fallback (uses default if not specified)
        """
        seconds = _to_seconds(ttl if ttl is not None else self._default_ttl)
        use_stale = (
            stale_while_revalidate
            if stale_while_revalidate is not None
            else self._stale_while_revalidate
        )

        now = self._clock()
        expires_at = now + seconds
        entry = CacheEntry(
            key=key,
            data=data,
            created_at=now,
            expires_at=expires_at,
            stale_until=expires_at + seconds if use_stale else expires_at,
        )

        shard = self._shard_for(key)
        with shard.lock:
            self._prune_shard(shard, now)
            if len(shard.entries) >= self._shard_max and key not in shard.entries:
                self._evict_oldest(shard)
            shard.entries[key] = entry
        self._log(f"SET: {key[:50]} (TTL: {seconds}s)")

    def delete(self, key: str) -> bool:
        """Delete a specific key from cache."""
        shard = self._shard_for(key)
        with shard.lock:
            return shard.entries.pop(key, None) is not None

    def clear(self, prefix: str | None = None) -> int:
        """
        Remove every entry, or only those whose key starts with prefix.

        Returns:
            Number of entries removed
        """
        removed = 0
        for shard in self._shards:
            with shard.lock:
                if prefix is None:
                    removed += len(shard.entries)
                    shard.entries.clear()
                    continue
                doomed = [k for k in shard.entries if k.startswith(prefix)]
                for key in doomed:
                    del shard.entries[key]
                removed += len(doomed)

        if prefix is None:
            logger.info(f"Cache cleared: {removed} entries removed")
        else:
            logger.info(f"Cache cleared: {removed} entries matching '{prefix}'")
        return removed

    def cleanup_expired(self) -> int:
        """Remove entries past their stale window. Returns count removed."""
        now = self._clock()
        removed = 0
        for shard in self._shards:
            with shard.lock:
                removed += self._prune_shard(shard, now)
        if removed:
            self._log(f"CLEANUP: {removed} expired entries removed")
        return removed

    def _prune_shard(self, shard: _Shard, now: float) -> int:
        dead = [k for k, v in shard.entries.items() if not v.is_retained(now)]
        for key in dead:
            del shard.entries[key]
        return len(dead)

    def _evict_oldest(self, shard: _Shard) -> None:
        oldest_key = min(shard.entries, key=lambda k: shard.entries[k].created_at)
        del shard.entries[oldest_key]
        shard.evictions += 1
        self._log(f"EVICT: {oldest_key[:50]}")

    def __len__(self) -> int:
        return sum(len(shard.entries) for shard in self._shards)

    def get_stats(self) -> "CacheStats":
        """Get cache statistics."""
        stats = CacheStats(max_size=self._max_size)
        for shard in self._shards:
            with shard.lock:
                stats.hits += shard.hits
                stats.misses += shard.misses
                stats.stale_hits += shard.stale_hits
                stats.evictions += shard.evictions
                stats.size += len(shard.entries)
        return stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[TTLCache] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    stale_hits: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "stale_hits": self.stale_hits,
            "evictions": self.evictions,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
