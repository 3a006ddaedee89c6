"""Reusable buffers and hash states shared by part workers."""

import threading
from collections import deque
from contextlib import contextmanager
from typing import Callable, Generic, Iterator, TypeVar

T = TypeVar("T")


class ResourcePool(Generic[T]):
    """Thread-safe pool of reusable objects.

    ``acquire`` hands out a previously released instance when one is idle and
    builds a new one with ``factory`` otherwise, so it never blocks. Instances
    are not guaranteed to be fresh: ``reset`` (when given) runs on every
    acquisition before the caller sees the object.
    """

    def __init__(self, factory: Callable[[], T], reset: Callable[[T], None] | None = None):
        """
        Initialize an empty pool.

        Args:
            factory: Builds a new instance when the pool is empty
            reset: Clears a reused instance before it is handed out
        """
        self._factory = factory
        self._reset = reset
        self._idle: deque[T] = deque()
        # Counters only; the idle deque needs no lock for append/pop.
        self._stats_lock = threading.Lock()
        self.in_use = 0
        self.peak_in_use = 0
        self.created = 0

    def _get(self) -> T:
        try:
            item = self._idle.pop()
        except IndexError:
            item = self._factory()
            with self._stats_lock:
                self.created += 1
        with self._stats_lock:
            self.in_use += 1
            self.peak_in_use = max(self.peak_in_use, self.in_use)
        return item

    def _put(self, item: T) -> None:
        with self._stats_lock:
            self.in_use -= 1
        self._idle.append(item)

    @contextmanager
    def acquire(self) -> Iterator[T]:
        """Borrow an instance, returning it to the pool on every exit path."""
        item = self._get()
        try:
            if self._reset is not None:
                self._reset(item)
            yield item
        finally:
            self._put(item)


class HashState:
    """A reusable hash accumulator.

    hashlib objects cannot be rewound, so ``reset`` swaps in a new one from
    the factory. Once ``digest`` has been taken the state is finished and
    ``update`` refuses more data until ``reset`` is called.
    """

    def __init__(self, factory: Callable):
        self._factory = factory
        self._hash = factory()
        self._finished = False

    def reset(self) -> None:
        self._hash = self._factory()
        self._finished = False

    def update(self, data) -> None:
        if self._finished:
            raise RuntimeError("hash state must be reset before it is reused")
        self._hash.update(data)

    def digest(self) -> bytes:
        self._finished = True
        return bytes(self._hash.digest())


def reset_hash_state(state: HashState) -> None:
    state.reset()
