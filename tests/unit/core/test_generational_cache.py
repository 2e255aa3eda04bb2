"""Tests for the generational cache and the process-wide cache singletons."""

import threading

import pytest

from sqlbind.core.cache import (
    CacheKey,
    CacheStats,
    GenerationalCache,
    clear_all_caches,
    get_cache_statistics,
    get_field_index_cache,
    get_scan_plan_cache,
)


class TestCacheKey:
    """Test the immutable cache key."""

    def test_equal_keys_hash_equal(self) -> None:
        first = CacheKey((int, "a\x1fb"))
        second = CacheKey((int, "a\x1fb"))

        assert first == second
        assert hash(first) == hash(second)
        assert first.key_data == (int, "a\x1fb")

    def test_different_keys(self) -> None:
        assert CacheKey((int, "a")) != CacheKey((str, "a"))
        assert CacheKey((int, "a")) != (int, "a")


class TestGenerationalCache:
    """Test two-generation rotation and promotion."""

    def test_get_put(self) -> None:
        cache: GenerationalCache[str, int] = GenerationalCache(4)

        cache.put("a", 1)

        assert cache.get("a") == 1
        assert cache.get("missing") is None
        assert "a" in cache
        assert "missing" not in cache

    def test_rotation_keeps_previous_generation(self) -> None:
        cache: GenerationalCache[str, int] = GenerationalCache(2)

        cache.put("a", 1)
        cache.put("b", 2)
        cache.put("c", 3)

        assert cache.get_stats().rotations == 1
        assert len(cache) == 3
        assert cache.get("a") == 1
        assert cache.get("b") == 2

    def test_promotion_from_previous(self) -> None:
        cache: GenerationalCache[str, int] = GenerationalCache(2)

        cache.put("a", 1)
        cache.put("b", 2)
        cache.put("c", 3)

        assert cache.get("a") == 1
        assert cache.get_stats().promotions == 1

        # "a" was promoted into current; "b" only lives in previous and is dropped on the next rotation
        cache.put("d", 4)

        assert cache.get("a") == 1
        assert cache.get("d") == 4
        assert cache.get("b") is None

    def test_bounded_resident_keys(self) -> None:
        cache: GenerationalCache[int, int] = GenerationalCache(8)

        for i in range(1000):
            cache.put(i, i)

        assert len(cache) <= 16
        assert cache.get(999) == 999

    def test_overwrite_existing_key_does_not_rotate(self) -> None:
        cache: GenerationalCache[str, int] = GenerationalCache(2)

        cache.put("a", 1)
        cache.put("b", 2)
        cache.put("b", 3)

        assert cache.get_stats().rotations == 0
        assert cache.get("b") == 3

    def test_stats(self) -> None:
        cache: GenerationalCache[str, int] = GenerationalCache(2)
        cache.put("a", 1)

        cache.get("a")
        cache.get("x")

        stats = cache.get_stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 50.0

    def test_clear(self) -> None:
        cache: GenerationalCache[str, int] = GenerationalCache(2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.put("c", 3)

        cache.clear()

        assert len(cache) == 0
        assert cache.get("a") is None
        assert cache.get_stats().rotations == 0

    @pytest.mark.parametrize("size", [0, -1])
    def test_invalid_size(self, size: int) -> None:
        with pytest.raises(ValueError, match="max_size must be positive"):
            GenerationalCache(size)

    def test_concurrent_access(self) -> None:
        cache: GenerationalCache[int, int] = GenerationalCache(16)
        errors: list[Exception] = []

        def worker(offset: int) -> None:
            try:
                for i in range(500):
                    key = (offset * 7 + i) % 64
                    value = cache.get(key)
                    if value is None:
                        cache.put(key, key * 2)
                    else:
                        assert value == key * 2
            except Exception as exc:  # pragma: no cover
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(cache) <= 32


def test_cache_stats_repr_and_reset() -> None:
    stats = CacheStats()
    stats.hits = 3
    stats.misses = 1

    assert "hit_rate=75.0%" in repr(stats)

    stats.reset()
    assert stats.hits == 0
    assert stats.hit_rate == 0.0


def test_singletons_are_shared() -> None:
    assert get_field_index_cache() is get_field_index_cache()
    assert get_scan_plan_cache() is get_scan_plan_cache()
    assert get_field_index_cache() is not get_scan_plan_cache()


def test_clear_all_caches_and_statistics() -> None:
    get_field_index_cache().put(int, {})
    get_scan_plan_cache().put(CacheKey((int, "a")), object())

    clear_all_caches()

    assert len(get_field_index_cache()) == 0
    assert len(get_scan_plan_cache()) == 0
    assert set(get_cache_statistics()) == {"field_index", "scan_plan"}
