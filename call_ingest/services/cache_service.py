"""
In-process cache with TTL expiry and LRU eviction

One instance is created per process by the application lifespan and
handed to every component that needs it. Nothing here survives a
restart or is shared across instances.
"""

import asyncio
import json
import re
import time
from collections import OrderedDict
from dataclasses import dataclass
from functools import wraps
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional, Pattern, Tuple, Union

from call_ingest.core.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]


@dataclass
class CacheEntry:
    """A cached value with its bookkeeping"""
    key: str
    data: Any
    created_at: float
    expires_at: float
    hit_count: int = 0
    last_access_at: float = 0.0

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class CacheService:
    """
    Key/value cache bounded by entry count

    - Every read checks expiry lazily; an expired entry is dropped and
      counted as a miss.
    - When a new key would exceed capacity, the least recently accessed
      entry is evicted.
    - A background sweeper removes expired entries that nobody reads.
    """

    def __init__(
        self,
        max_size: int = 500,
        default_ttl: float = 300.0,
        sweep_interval: float = 60.0,
        clock: Clock = time.monotonic
    ):
        self.max_size = max(1, max_size)
        self.default_ttl = default_ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        # Ordered from least to most recently accessed
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    # ==================== Reads and writes ====================

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store a value; ttl in seconds, defaults to the cache default"""
        now = self._clock()
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_size:
            self._evict_lru()

        self._entries[key] = CacheEntry(
            key=key,
            data=value,
            created_at=now,
            expires_at=now + (self.default_ttl if ttl is None else ttl),
            last_access_at=now,
        )

    def lookup(self, key: str) -> Tuple[bool, Any]:
        """Return (found, value), updating hit/miss counters"""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return False, None

        now = self._clock()
        if entry.is_expired(now):
            del self._entries[key]
            self._misses += 1
            return False, None

        entry.hit_count += 1
        entry.last_access_at = now
        self._entries.move_to_end(key)
        self._hits += 1
        return True, entry.data

    def get(self, key: str, default: Any = None) -> Any:
        """Get a cached value, or default on miss"""
        found, value = self.lookup(key)
        return value if found else default

    def get_many(self, keys: Iterable[str]) -> Dict[str, Any]:
        """Get every present key; misses are left out of the result"""
        results = {}
        for key in keys:
            found, value = self.lookup(key)
            if found:
                results[key] = value
        return results

    def get_or_set(self, key: str, factory: Callable[[], Any], ttl: Optional[float] = None) -> Any:
        """
        Return the cached value, computing and storing it on a miss

        The factory is not invoked when a live value is present. If the
        factory raises, nothing is cached and the error propagates.
        """
        found, value = self.lookup(key)
        if found:
            return value
        value = factory()
        self.set(key, value, ttl)
        return value

    async def get_or_set_async(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None
    ) -> Any:
        """Async variant of get_or_set for I/O-bound factories"""
        found, value = self.lookup(key)
        if found:
            return value
        value = await factory()
        self.set(key, value, ttl)
        return value

    # ==================== Invalidation ====================

    def invalidate(self, pattern: Union[str, Pattern[str]]) -> int:
        """
        Delete matching keys and return how many were removed

        Args:
            pattern: An exact key, a glob-style string where '*' matches
                any run of characters, or a compiled regular expression
                (matched anywhere in the key).
        """
        if isinstance(pattern, str):
            if "*" not in pattern:
                return 1 if self._entries.pop(pattern, None) is not None else 0
            regex = re.compile(".*".join(re.escape(part) for part in pattern.split("*")))
            matches = regex.fullmatch
        else:
            matches = pattern.search

        doomed = [key for key in self._entries if matches(key)]
        for key in doomed:
            del self._entries[key]
        if doomed:
            logger.debug(f"Invalidated {len(doomed)} cache entries for {pattern!r}")
        return len(doomed)

    def clear(self) -> None:
        """Drop every entry and reset statistics"""
        self._entries.clear()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def sweep(self) -> int:
        """Remove every expired entry; returns the number removed"""
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Cache sweep removed {len(expired)} expired entries")
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
            "hit_rate": round(self._hits / lookups, 4) if lookups else 0.0,
            "size": len(self._entries),
            "max_size": self.max_size,
        }

    def _evict_lru(self) -> None:
        if not self._entries:
            return
        key, _ = self._entries.popitem(last=False)
        self._evictions += 1
        logger.debug(f"Evicted least recently used cache entry {key}")

    # ==================== Sweeper lifecycle ====================

    def start_sweeper(self) -> None:
        """Start the periodic expiry sweep on the running event loop"""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_loop(), name="cache-sweeper")

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.sweep()


def generate_cache_key(*parts: Any) -> str:
    """Build a deterministic key; dicts and lists are serialized with sorted keys"""
    rendered = []
    for part in parts:
        if isinstance(part, (dict, list, tuple)):
            rendered.append(json.dumps(part, sort_keys=True, default=str, separators=(",", ":")))
        else:
            rendered.append(str(part))
    return ":".join(rendered)


def cache_aside(
    cache: CacheService,
    key_fn: Callable[..., str],
    fn: Callable[..., Awaitable[Any]],
    ttl: Optional[float] = None
) -> Callable[..., Awaitable[Any]]:
    """
    Wrap an async function with the cache-aside read pattern

    Usage:
        cached_fetch = cache_aside(cache, lambda t, i: f"{t}:{i}", fetch, ttl=60)
        row = await cached_fetch("leads", "42")
    """

    @wraps(fn)
    async def wrapper(*args, **kwargs) -> Any:
        key = key_fn(*args, **kwargs)
        return await cache.get_or_set_async(key, lambda: fn(*args, **kwargs), ttl)

    return wrapper
