"""
Bounded in-memory FIFO buffer for telemetry records.

A collector appends records as they are instrumented and periodically swaps
the whole buffer out for delivery. A failed batch goes back to the front so
it is delivered ahead of anything that arrived while it was in flight.

The buffer never grows past ``capacity``. Overflow only happens when the
owning collector could not flush at the capacity boundary (offline, no
running event loop, or the capacity flush itself failed); in that case the
oldest records are evicted and counted in ``dropped_count``.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator
from typing import Generic, TypeVar

from signalbox.errors import ConfigurationError

T = TypeVar("T")


class BoundedBuffer(Generic[T]):
    """FIFO buffer with a hard capacity and oldest-first eviction."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ConfigurationError(f"Buffer capacity must be >= 1, got {capacity}")
        self._capacity = capacity
        self._items: deque[T] = deque()
        self._dropped_count = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def dropped_count(self) -> int:
        """Records evicted because the buffer overflowed."""
        return self._dropped_count

    @property
    def is_full(self) -> bool:
        return len(self._items) >= self._capacity

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def append(self, item: T) -> bool:
        """
        Append a record.

        Returns:
            True when the buffer is at capacity after the append, i.e. the
            caller should flush now.
        """
        if len(self._items) >= self._capacity:
            self._items.popleft()
            self._dropped_count += 1
        self._items.append(item)
        return self.is_full

    def swap_out(self) -> list[T]:
        """Take every buffered record, leaving the buffer empty."""
        batch = list(self._items)
        self._items = deque()
        return batch

    def requeue_front(self, batch: Iterable[T]) -> int:
        """
        Put a failed batch back ahead of the current contents.

        Returns:
            Number of records evicted to stay within capacity.
        """
        merged = deque(batch)
        merged.extend(self._items)
        evicted = max(0, len(merged) - self._capacity)
        for _ in range(evicted):
            merged.popleft()
        self._items = merged
        self._dropped_count += evicted
        return evicted

    def clear(self) -> None:
        self._items.clear()
