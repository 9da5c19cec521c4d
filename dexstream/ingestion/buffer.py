"""
In-memory event buffer with atomic swap and front re-queue.

All methods are synchronous: on a single event loop no other task can run
between the snapshot and the reset inside swap(), so events appended while
a flush is writing land in the fresh list.
"""

import asyncio
from typing import Generic, Iterable, List, TypeVar

T = TypeVar("T")


class EventBuffer(Generic[T]):
    """
    Append-only queue drained by flushes.

    Growth is unbounded: if storage keeps failing, every batch is re-queued
    and the buffer keeps growing.
    """

    def __init__(self, name: str):
        self.name = name
        self._items: List[T] = []
        self.lock = asyncio.Lock()

    def append(self, item: T) -> int:
        """Append an item and return the new length."""
        self._items.append(item)
        return len(self._items)

    def swap(self) -> List[T]:
        """Take the current contents and reset the buffer to empty."""
        items, self._items = self._items, []
        return items

    def requeue_front(self, items: Iterable[T]) -> None:
        """Put a failed batch back ahead of anything appended since the swap."""
        self._items = list(items) + self._items

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"EventBuffer(name={self.name!r}, size={len(self._items)})"
