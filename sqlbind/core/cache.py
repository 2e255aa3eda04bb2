"""Generational caching for field indexes and scan plans.

This module provides a bounded two-generation cache used to memoize the
flattened field index of record types and the scan plans built from them.

Components:
- CacheKey: Immutable composite cache key
- CacheStats: Hit/miss/rotation counters
- GenerationalCache: Two-tier cache with rotation instead of per-key LRU bookkeeping
- get_field_index_cache / get_scan_plan_cache: Process-wide singletons
"""

import logging
import threading
from typing import Any, Final, Generic, Optional, TypeVar

from mypy_extensions import mypyc_attr

from sqlbind.config import get_cache_size
from sqlbind.utils.logging import get_logger, log_with_context

__all__ = (
    "CacheKey",
    "CacheStats",
    "GenerationalCache",
    "clear_all_caches",
    "get_cache_statistics",
    "get_field_index_cache",
    "get_scan_plan_cache",
)

K = TypeVar("K")
V = TypeVar("V")

logger = get_logger("sqlbind.core.cache")

CACHE_STATS_SLOTS: Final = ("hits", "misses", "promotions", "rotations")
GENERATIONAL_CACHE_SLOTS: Final = ("_current", "_lock", "_max_size", "_name", "_previous", "_stats")


@mypyc_attr(allow_interpreted_subclasses=False)
class CacheKey:
    """Immutable cache key.

    Args:
        key_data: Tuple of hashable values that uniquely identify the cached item
    """

    __slots__ = ("_hash", "_key_data")

    def __init__(self, key_data: tuple[Any, ...]) -> None:
        self._key_data = key_data
        self._hash = hash(key_data)

    @property
    def key_data(self) -> tuple[Any, ...]:
        """Get the key data tuple."""
        return self._key_data

    def __hash__(self) -> int:
        return self._hash

    def __eq__(self, other: object) -> bool:
        if type(other) is not CacheKey:
            return False
        if self._hash != other._hash:
            return False
        return self._key_data == other._key_data

    def __repr__(self) -> str:
        return f"CacheKey({self._key_data!r})"


@mypyc_attr(allow_interpreted_subclasses=False)
class CacheStats:
    """Cache statistics tracking."""

    __slots__ = CACHE_STATS_SLOTS

    def __init__(self) -> None:
        self.hits = 0
        self.misses = 0
        self.promotions = 0
        self.rotations = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate as percentage."""
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0

    def reset(self) -> None:
        """Reset all statistics."""
        self.hits = 0
        self.misses = 0
        self.promotions = 0
        self.rotations = 0

    def __repr__(self) -> str:
        return (
            f"CacheStats(hit_rate={self.hit_rate:.1f}%, hits={self.hits}, misses={self.misses}, "
            f"promotions={self.promotions}, rotations={self.rotations})"
        )


@mypyc_attr(allow_interpreted_subclasses=False)
class GenerationalCache(Generic[K, V]):
    """Bounded two-generation cache.

    Entries live in a ``current`` and a ``previous`` generation. A lookup that
    misses ``current`` but hits ``previous`` promotes the entry into
    ``current``. When ``current`` reaches capacity it becomes ``previous`` and a
    fresh ``current`` is started, dropping the old ``previous`` wholesale.
    Every entry of the old ``current`` therefore survives at least one more
    rotation, and the resident key count stays bounded by about twice the
    capacity.

    Values must be immutable once inserted. Reads of ``current`` do not take the
    lock; promotions, inserts and rotations do.

    Args:
        max_size: Capacity of one generation.
        name: Name used in log records.
    """

    __slots__ = GENERATIONAL_CACHE_SLOTS

    def __init__(self, max_size: int, name: str = "cache") -> None:
        if max_size <= 0:
            msg = f"max_size must be positive, got {max_size}"
            raise ValueError(msg)
        self._max_size = max_size
        self._name = name
        self._current: dict[K, V] = {}
        self._previous: dict[K, V] = {}
        self._lock = threading.RLock()
        self._stats = CacheStats()

    @property
    def max_size(self) -> int:
        """Capacity of one generation."""
        return self._max_size

    def get(self, key: K) -> Optional[V]:
        """Look up ``key``, promoting a previous-generation hit.

        Args:
            key: Cache key to lookup

        Returns:
            Cached value or None if not found
        """
        value = self._current.get(key)
        if value is not None:
            self._stats.hits += 1
            return value
        with self._lock:
            value = self._current.get(key)
            if value is not None:
                self._stats.hits += 1
                return value
            value = self._previous.get(key)
            if value is None:
                self._stats.misses += 1
                return None
            self._insert(key, value)
            self._stats.hits += 1
            self._stats.promotions += 1
            return value

    def put(self, key: K, value: V) -> None:
        """Insert ``value`` into the current generation.

        Args:
            key: Cache key
            value: Value to cache; must not be None
        """
        with self._lock:
            self._insert(key, value)

    def _insert(self, key: K, value: V) -> None:
        if key not in self._current and len(self._current) >= self._max_size:
            self._rotate()
        self._current[key] = value

    def _rotate(self) -> None:
        self._previous = self._current
        self._current = {}
        self._stats.rotations += 1
        log_with_context(
            logger, logging.DEBUG, "Rotated cache generation", cache=self._name, capacity=self._max_size
        )

    def clear(self) -> None:
        """Clear all cache entries and statistics."""
        with self._lock:
            self._current = {}
            self._previous = {}
            self._stats.reset()

    def get_stats(self) -> CacheStats:
        """Get cache statistics."""
        return self._stats

    def __contains__(self, key: object) -> bool:
        return key in self._current or key in self._previous

    def __len__(self) -> int:
        """Number of resident keys across both generations."""
        with self._lock:
            return len(self._current) + sum(1 for key in self._previous if key not in self._current)

    def __repr__(self) -> str:
        return f"GenerationalCache(name={self._name!r}, max_size={self._max_size}, stats={self._stats!r})"


_field_index_cache: "Optional[GenerationalCache[Any, Any]]" = None
_scan_plan_cache: "Optional[GenerationalCache[Any, Any]]" = None
_cache_lock = threading.Lock()


def get_field_index_cache() -> "GenerationalCache[Any, Any]":
    """Get the process-wide field-index cache.

    Returns:
        Singleton cache keyed by record type
    """
    global _field_index_cache
    if _field_index_cache is None:
        with _cache_lock:
            if _field_index_cache is None:
                _field_index_cache = GenerationalCache(get_cache_size(), name="field_index")
    return _field_index_cache


def get_scan_plan_cache() -> "GenerationalCache[Any, Any]":
    """Get the process-wide scan-plan cache.

    Returns:
        Singleton cache keyed by (record type, column signature)
    """
    global _scan_plan_cache
    if _scan_plan_cache is None:
        with _cache_lock:
            if _scan_plan_cache is None:
                _scan_plan_cache = GenerationalCache(get_cache_size(), name="scan_plan")
    return _scan_plan_cache


def clear_all_caches() -> None:
    """Clear all cache instances."""
    if _field_index_cache is not None:
        _field_index_cache.clear()
    if _scan_plan_cache is not None:
        _scan_plan_cache.clear()


def get_cache_statistics() -> dict[str, CacheStats]:
    """Get statistics from all cache instances.

    Returns:
        Dictionary mapping cache name to statistics
    """
    stats = {}
    if _field_index_cache is not None:
        stats["field_index"] = _field_index_cache.get_stats()
    if _scan_plan_cache is not None:
        stats["scan_plan"] = _scan_plan_cache.get_stats()
    return stats
