"""
FireSim Key-Value Cache

Injectable in-process cache with TTL expiry and LRU eviction.

Instances are passed explicitly to the components that use them (the prompt
composer, geo lookups) rather than shared through a module-level singleton,
so each request path and each test owns its cache.
"""

import hashlib
import json
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from firesim.core.logging_config import get_logger

logger = get_logger("core.cache")


@dataclass
class CacheEntry:
    """A cached value with its insertion time."""
    value: Any
    timestamp: float
    hit_count: int = 0

    def is_expired(self, ttl: float, now: float) -> bool:
        return now - self.timestamp > ttl


@dataclass
class CacheStats:
    """Statistics for cache performance."""
    hits: int = 0
    misses: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate": f"{self.hit_rate:.2%}",
        }


def make_cache_key(*parts: Any) -> str:
    """Build a stable SHA-256 key from JSON-serialisable parts."""
    content = json.dumps(parts, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class TTLCache:
    """
    Thread-safe key-value cache with TTL and size limits.

    Features:
    - Entries expire ``ttl`` seconds after insertion
    - LRU eviction once ``max_size`` entries are held
    - Injectable clock for deterministic tests
    - Hit/miss statistics
    """

    def __init__(
        self,
        ttl: float = 3600.0,
        max_size: int = 256,
        clock: Optional[Callable[[], float]] = None
    ):
        """
        Initialize the cache.

        Args:
            ttl: Time-to-live in seconds
            max_size: Maximum number of entries
            clock: Time source returning seconds (defaults to time.monotonic)
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock or time.monotonic

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self._stats = CacheStats()

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or ``default`` if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats.misses += 1
                return default

            if entry.is_expired(self.ttl, self._clock()):
                del self._entries[key]
                self._stats.misses += 1
                self._stats.evictions += 1
                return default

            self._entries.move_to_end(key)
            entry.hit_count += 1
            self._stats.hits += 1
            return entry.value

    def set(self, key: str, value: Any) -> None:
        """Store a value, evicting the least recently used entry if full."""
        with self._lock:
            if key in self._entries:
                del self._entries[key]

            while len(self._entries) >= self.max_size:
                oldest_key, _ = self._entries.popitem(last=False)
                self._stats.evictions += 1
                logger.debug(f"Evicted cache key {oldest_key[:8]}...")

            self._entries[key] = CacheEntry(value=value, timestamp=self._clock())

    def get_or_set(self, key: str, factory: Callable[[], Any]) -> Any:
        """Return the cached value for ``key``, computing it with ``factory`` on a miss."""
        sentinel = object()
        value = self.get(key, sentinel)
        if value is sentinel:
            value = factory()
            self.set(key, value)
        return value

    def invalidate(self, key: str) -> bool:
        """Remove a single key. Returns True if it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        """Remove every entry. Returns count removed."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            return count

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns count removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, v in self._entries.items() if v.is_expired(self.ttl, now)]
            for key in expired:
                del self._entries[key]
            self._stats.evictions += len(expired)
            return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._lock:
            return {
                **self._stats.to_dict(),
                "size": len(self._entries),
                "max_size": self.max_size,
                "ttl_seconds": self.ttl,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
