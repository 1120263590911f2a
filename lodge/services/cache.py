"""
DataCache - In-memory read-through cache with per-entry TTL.

Features:
- get() takes a fetcher and only calls it on a miss or an expired entry
- Per-entry TTL with a cache-wide default
- FIFO eviction (oldest inserted entry goes first) once max_size is reached
- Invalidation by exact key or by regular expression over keys

All mapping mutations happen between awaits, so they are atomic with respect
to other coroutines on the same event loop.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Generic, TypeVar

from loguru import logger

T = TypeVar("T")

Clock = Callable[[], datetime]


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    data: T
    timestamp: datetime
    ttl: timedelta

    def is_expired(self, now: datetime) -> bool:
        """Check if entry is past its TTL."""
        return now - self.timestamp >= self.ttl


@dataclass
class CacheStats:
    """Cache statistics."""

    size: int = 0
    max_size: int = 0
    keys: list[str] = field(default_factory=list)
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    invalidations: int = 0

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
            "size": self.size,
            "max_size": self.max_size,
            "keys": list(self.keys),
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "invalidations": self.invalidations,
            "hit_rate": f"{self.hit_rate:.2%}",
        }


class DataCache:
    """
    Read-through cache with TTL and FIFO eviction.

    Usage:
        cache = DataCache(max_size=100, default_ttl=timedelta(minutes=5))

        events = await cache.get(
            CacheKeys.EVENTS,
            lambda: remote.select("events", order="event_date.asc"),
        )

        # after a write
        cache.invalidate(CacheKeys.EVENTS)
        cache.invalidate_pattern(r"^documents_paginated:")
    """

    def __init__(
        self,
        max_size: int = 100,
        default_ttl: timedelta = timedelta(minutes=5),
        debug: bool = False,
        clock: Clock = datetime.now,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")

        self._memory: dict[str, CacheEntry[Any]] = {}
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._debug = debug
        self._clock = clock
        self._counters = CacheStats()

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def default_ttl(self) -> timedelta:
        return self._default_ttl

    async def get(
        self,
        key: str,
        fetcher: Callable[[], Awaitable[T]],
        ttl: timedelta | None = None,
    ) -> T:
        """
        Return the cached value for key, fetching and storing it on a miss.

        Args:
            key: Cache key (see CacheKeys)
            fetcher: Zero-argument async callable producing the value
            ttl: Time to live for a newly stored entry (uses default if not specified)

        Returns:
            The cached data (same object while fresh) or the fetcher's result

        Raises:
            Whatever the fetcher raises; failed fetches are never cached.
        """
        entry = self._memory.get(key)
        if entry is not None:
            if not entry.is_expired(self._clock()):
                self._counters.hits += 1
                self._log(f"HIT: {key[:50]}")
                return entry.data
            del self._memory[key]
            self._log(f"EXPIRED: {key[:50]}")

        self._counters.misses += 1
        self._log(f"MISS: {key[:50]}, fetching...")

        data = await fetcher()
        self._store(key, data, self._default_ttl if ttl is None else ttl)
        return data

    def _store(self, key: str, data: Any, ttl: timedelta) -> None:
        if key not in self._memory:
            while len(self._memory) >= self._max_size:
                self._evict_oldest()

        self._memory[key] = CacheEntry(data=data, timestamp=self._clock(), ttl=ttl)
        self._log(f"SET: {key[:50]} (TTL: {ttl.total_seconds()}s)")

    def _evict_oldest(self) -> None:
        """Evict the first inserted entry (FIFO)."""
        oldest_key = next(iter(self._memory))
        del self._memory[oldest_key]
        self._counters.evictions += 1
        self._log(f"EVICT: {oldest_key[:50]}")

    def contains(self, key: str) -> bool:
        """Check whether key holds an unexpired entry. Does not fetch."""
        entry = self._memory.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def invalidate(self, key: str) -> bool:
        """Delete a specific key from cache."""
        if self._memory.pop(key, None) is None:
            return False
        self._counters.invalidations += 1
        self._log(f"INVALIDATE: {key[:50]}")
        return True

    def invalidate_pattern(self, pattern: str) -> int:
        """
        Invalidate all keys matching a regular expression.

        The pattern is searched in each key on its own.

        Returns:
            Number of entries invalidated
        """
        regex = re.compile(pattern)
        keys_to_delete = [k for k in self._memory if regex.search(k)]
        for key in keys_to_delete:
            del self._memory[key]

        if keys_to_delete:
            self._counters.invalidations += len(keys_to_delete)
            self._log(f"INVALIDATE: {len(keys_to_delete)} entries matching '{pattern}'")

        return len(keys_to_delete)

    def clear(self) -> None:
        """Clear all cache entries."""
        count = len(self._memory)
        self._memory.clear()
        self._log(f"CLEAR: {count} entries removed")

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns count of removed entries."""
        now = self._clock()
        expired_keys = [k for k, v in self._memory.items() if v.is_expired(now)]
        for key in expired_keys:
            del self._memory[key]

        if expired_keys:
            self._log(f"CLEANUP: {len(expired_keys)} expired entries removed")

        return len(expired_keys)

    def get_stats(self) -> CacheStats:
        """Get a snapshot of cache statistics."""
        return CacheStats(
            size=len(self._memory),
            max_size=self._max_size,
            keys=list(self._memory.keys()),
            hits=self._counters.hits,
            misses=self._counters.misses,
            evictions=self._counters.evictions,
            invalidations=self._counters.invalidations,
        )

    def __len__(self) -> int:
        return len(self._memory)

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[DataCache] {message}")
