"""Connection timeouts kept in a lazily pruned priority queue.

Timers are never removed from the middle of the heap.  A timer that is
cleared or has expired stays until it reaches the top, so a deleted node is
dropped at the latest when its own deadline passes.
"""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from typing import Any, Callable, Optional


def _now_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class TimerNode:
    """A deadline, in milliseconds, attached to one request."""

    def __init__(self, request: Any, timeout: int) -> None:
        self.deleted = False
        self.request: Optional[Any] = request
        self.expired_time = _now_ms() + timeout

    def update(self, timeout: int) -> None:
        """Move the deadline to ``timeout`` milliseconds from now."""
        self.expired_time = _now_ms() + timeout

    def is_valid(self) -> bool:
        """Tell whether the deadline is still ahead; mark deleted if not."""
        if _now_ms() < self.expired_time:
            return True
        self.set_deleted()
        return False

    def clear_request(self) -> None:
        """Detach the request so that expiry no longer affects it."""
        self.request = None
        self.set_deleted()

    def set_deleted(self) -> None:
        self.deleted = True

    def __repr__(self) -> str:
        return (
            f"TimerNode(expired_time={self.expired_time}, "
            f"deleted={self.deleted}, attached={self.request is not None})"
        )


class TimerManager:
    """Owns the timers of all connections and expires them."""

    def __init__(self, on_expire: Optional[Callable[[Any], None]] = None) -> None:
        self._on_expire = on_expire
        self._lock = threading.Lock()
        self._heap: list[tuple[int, int, TimerNode]] = []
        self._counter = itertools.count()

    def add_timer(self, request: Any, timeout: int) -> TimerNode:
        """Start a timer for ``request`` and link it to the request."""
        node = TimerNode(request, timeout)
        with self._lock:
            heapq.heappush(self._heap, (node.expired_time, next(self._counter), node))
        request.link_timer(node)
        return node

    def handle_expired(self) -> list:
        """Drop deleted and expired timers from the front of the queue.

        Requests whose timers ran out while still attached are handed to
        ``on_expire`` and returned.
        """
        expired = []
        with self._lock:
            while self._heap:
                node = self._heap[0][2]
                if node.deleted or not node.is_valid():
                    heapq.heappop(self._heap)
                    if node.request is not None:
                        expired.append(node.request)
                        node.request = None
                else:
                    break
        if self._on_expire is not None:
            for request in expired:
                self._on_expire(request)
        return expired

    def __len__(self) -> int:
        with self._lock:
            return len(self._heap)