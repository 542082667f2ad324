"""Reusable object pools, optionally keyed by size."""

from __future__ import annotations

import threading
from typing import Callable, Generic, TypeVar

from .logs import new_logger

T = TypeVar("T")

_log = new_logger("types")


class MemoryPool(Generic[T]):
    """A thread-safe free list that creates new objects on demand."""

    def __init__(self, new_func: Callable[[], T]) -> None:
        self._new_func = new_func
        self._items: list[T] = []
        self._lock = threading.Lock()

    def get(self) -> T:
        """Return a pooled object, or a fresh one if the pool is empty."""
        with self._lock:
            if self._items:
                return self._items.pop()
        return self._new_func()

    def put(self, item: T) -> None:
        """Return an object to the pool for later reuse."""
        with self._lock:
            self._items.append(item)


class MemoryPoolManager(Generic[T]):
    """Keeps one MemoryPool per size, created lazily."""

    def __init__(self, new_func: Callable[[int], Callable[[], T]]) -> None:
        self._new_func = new_func
        self._pools: dict[int, MemoryPool[T]] = {}
        self._lock = threading.Lock()

    def pool(self, size: int) -> MemoryPool[T]:
        """Return the pool for the given size, creating it if needed."""
        with self._lock:
            existing = self._pools.get(size)
            if existing is None:
                existing = MemoryPool(self._new_func(size))
                self._pools[size] = existing
            return existing