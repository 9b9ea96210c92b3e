from __future__ import annotations

from typing import Generic, Iterable, Iterator, Optional, TypeVar

T = TypeVar("T")


class ActionQueue(Generic[T]):
    """Unbounded FIFO container: append at tail, peek/remove at head."""

    def __init__(self, items: Optional[Iterable[T]] = None):
        self._items: list[T] = list(items) if items is not None else []

    @property
    def head(self) -> Optional[T]:
        return self._items[0] if self._items else None

    @property
    def size(self) -> int:
        return len(self._items)

    def enqueue(self, item: T) -> T:
        self._items.append(item)
        return item

    def dequeue(self) -> Optional[T]:
        """Remove and return the head; ``None`` when empty."""
        if not self._items:
            return None
        return self._items.pop(0)

    def restore(self, items: Iterable[T]) -> None:
        """Place previously persisted items ahead of the current contents."""
        self._items[:0] = list(items)

    def clear(self) -> None:
        self._items.clear()

    def snapshot(self) -> list[T]:
        """Copy of the current contents, oldest first."""
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.snapshot())
