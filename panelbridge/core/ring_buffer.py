"""Fixed-capacity in-memory stores for log pushes and command history."""

import threading
from collections import deque
from typing import Callable, Deque, Generic, List, Optional, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """Insertion-ordered buffer that evicts its oldest entry when full.

    Reads come back newest-first, which is the order the panel displays.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._items: Deque[T] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, item: T) -> None:
        # deque(maxlen) drops the oldest entry in the same operation
        with self._lock:
            self._items.append(item)

    def recent(
        self,
        limit: Optional[int] = None,
        predicate: Optional[Callable[[T], bool]] = None,
    ) -> List[T]:
        """Return up to ``limit`` entries, newest first, optionally filtered."""
        if limit is not None and limit <= 0:
            return []
        with self._lock:
            snapshot = list(self._items)

        out: List[T] = []
        for item in reversed(snapshot):
            if predicate is not None and not predicate(item):
                continue
            out.append(item)
            if limit is not None and len(out) >= limit:
                break
        return out

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __repr__(self) -> str:
        return f"RingBuffer(size={len(self)}, capacity={self._capacity})"

