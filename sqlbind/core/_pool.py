"""Thread-local object pool primitives for performance-sensitive hot paths."""

import threading
from typing import TYPE_CHECKING, Generic, TypeVar

from mypy_extensions import mypyc_attr

if TYPE_CHECKING:
    from collections.abc import Callable

__all__ = ("ObjectPool", "ThreadLocalPool")


T = TypeVar("T")


@mypyc_attr(allow_interpreted_subclasses=False)
class ObjectPool(Generic[T]):
    """Reusable object pool with reset-instead-of-recreate semantics."""

    __slots__ = ("_factory", "_max_size", "_pool", "_resetter")

    def __init__(self, factory: "Callable[[], T]", resetter: "Callable[[T], None]", max_size: int = 100) -> None:
        self._pool: list[T] = []
        self._max_size = max_size
        self._factory = factory
        self._resetter = resetter

    def acquire(self) -> T:
        if self._pool:
            return self._pool.pop()
        return self._factory()

    def release(self, obj: T) -> None:
        self._resetter(obj)
        if len(self._pool) < self._max_size:
            self._pool.append(obj)


@mypyc_attr(allow_interpreted_subclasses=False)
class ThreadLocalPool(Generic[T]):
    """One :class:`ObjectPool` per thread, created lazily with shared settings."""

    __slots__ = ("_factory", "_local", "_max_size", "_resetter")

    def __init__(self, factory: "Callable[[], T]", resetter: "Callable[[T], None]", max_size: int = 100) -> None:
        self._factory = factory
        self._resetter = resetter
        self._max_size = max_size
        self._local = threading.local()

    def get(self) -> "ObjectPool[T]":
        pool = getattr(self._local, "pool", None)
        if pool is None:
            pool = ObjectPool(factory=self._factory, resetter=self._resetter, max_size=self._max_size)
            self._local.pool = pool
        return pool

    def acquire(self) -> T:
        return self.get().acquire()

    def release(self, obj: T) -> None:
        self.get().release(obj)
