"""
In-process result cache with TTL expiry and LRU eviction.

Provides a bounded, thread-safe memo for geocoding lookups, suggestion lists
and rate-limit windows, plus deterministic key generation from normalized
query parameters.
"""

import hashlib
import json
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..config.logger_module import log_debug, log_info
from .address_normalizer import normalize_query


@dataclass
class CacheEntry:
    """A cached value and the wall-clock time after which it is stale."""
    value: Any
    expires_at: float


def make_cache_key(prefix: str, **params: Any) -> str:
    """
    Generate a deterministic, collision-resistant cache key.

    String parameters are normalized (case and whitespace) and None values are
    dropped, so two semantically identical requests share one cache slot.

    Args:
        prefix: Namespace for the key (e.g. "geocode", "suggest")
        **params: Query parameters

    Returns:
        Key like "geocode:<32-char-md5>"
    """
    normalized = {}
    for name, value in params.items():
        if value is None:
            continue
        if isinstance(value, str):
            value = normalize_query(value)
        elif isinstance(value, float):
            value = round(value, 6)
        normalized[name] = value

    content = json.dumps(normalized, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.md5(content.encode("utf-8")).hexdigest()
    return f"{prefix}:{digest}"


class ResultCache:
    """
    Strict LRU + TTL cache.

    Expired entries are evicted when read. Reads and writes refresh recency;
    once capacity is exceeded the least recently used entry is dropped.
    Every operation runs under a single lock.
    """

    def __init__(self,
                 max_entries: int = 200,
                 default_ttl_seconds: float = 300.0,
                 name: str = "cache"):
        """
        Initialize the cache.

        Args:
            max_entries: Maximum number of live entries
            default_ttl_seconds: TTL used when set() is called without one
            name: Label used in log lines and stats
        """
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        if default_ttl_seconds <= 0:
            raise ValueError("default_ttl_seconds must be positive")

        self.max_entries = max_entries
        self.default_ttl = default_ttl_seconds
        self.name = name

        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

        log_info(
            f"ResultCache '{name}' initialized "
            f"(max_entries={max_entries}, ttl={default_ttl_seconds}s)"
        )

    def get(self, key: str, default: Any = None) -> Any:
        """
        Return the cached value, or default on miss or expiry.

        An expired entry is removed immediately.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return default

            if time.time() > entry.expires_at:
                del self._entries[key]
                self._misses += 1
                log_debug(f"Cache '{self.name}' expired: {key}")
                return default

            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        """
        Store a value, replacing and refreshing any existing entry.

        Args:
            key: Cache key
            value: Value to store
            ttl_seconds: Lifetime of the entry (default TTL if None)
        """
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds

        with self._lock:
            if key in self._entries:
                del self._entries[key]
            self._entries[key] = CacheEntry(value=value, expires_at=time.time() + ttl)

            while len(self._entries) > self.max_entries:
                oldest_key, _ = self._entries.popitem(last=False)
                self._evictions += 1
                log_debug(f"Cache '{self.name}' evicted LRU entry: {oldest_key}")

    def delete(self, key: str) -> bool:
        """Remove an entry; returns True if it existed."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry."""
        with self._lock:
            self._entries.clear()
        log_info(f"Cache '{self.name}' cleared")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key, _MISSING) is not _MISSING

    def stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dictionary with size, capacity and hit/miss/eviction counters
        """
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "name": self.name,
                "entries": len(self._entries),
                "max_entries": self.max_entries,
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate": (self._hits / lookups) if lookups else 0.0,
            }


_MISSING = object()
