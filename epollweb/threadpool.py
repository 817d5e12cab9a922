"""A fixed-size worker pool fed through a bounded task queue."""

from __future__ import annotations

import enum
import logging
import threading
from collections import deque
from typing import Any, Callable, Deque, Optional, Tuple

logger = logging.getLogger(__name__)

MAX_THREADS = 1024
MAX_QUEUE = 65535

DEFAULT_THREAD_COUNT = 4
DEFAULT_QUEUE_SIZE = 1024


class ShutdownMode(enum.IntEnum):
    """How workers stop when the pool shuts down."""

    IMMEDIATE = 1
    GRACEFUL = 2


class ThreadPoolError(Exception):
    """Base class for errors reported by the pool."""


class QueueFullError(ThreadPoolError):
    """The task queue holds as many tasks as it can."""


class PoolShutdownError(ThreadPoolError):
    """The pool is shutting down or has shut down."""


_Task = Tuple[Callable[[Any], Any], Any]


class ThreadPool:
    """Runs ``function(argument)`` tasks on a fixed set of worker threads.

    Out-of-range sizes fall back to the defaults of four threads and a
    queue of 1024 tasks.
    """

    def __init__(
        self,
        thread_count: int = DEFAULT_THREAD_COUNT,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        if (
            thread_count <= 0
            or thread_count > MAX_THREADS
            or queue_size <= 0
            or queue_size > MAX_QUEUE
        ):
            thread_count = DEFAULT_THREAD_COUNT
            queue_size = DEFAULT_QUEUE_SIZE
        self.thread_count = thread_count
        self.queue_size = queue_size
        self._queue: Deque[_Task] = deque()
        self._cond = threading.Condition()
        self._mode: Optional[ShutdownMode] = None
        self._started = 0
        self._threads: list[threading.Thread] = []
        for index in range(thread_count):
            worker = threading.Thread(
                target=self._work, name=f"pool-worker-{index}", daemon=True
            )
            worker.start()
            self._threads.append(worker)
            with self._cond:
                self._started += 1

    @property
    def pending(self) -> int:
        """Number of tasks waiting in the queue."""
        with self._cond:
            return len(self._queue)

    @property
    def closed(self) -> bool:
        """Whether shutdown has begun."""
        with self._cond:
            return self._mode is not None

    def submit(self, function: Callable[[Any], Any], argument: Any = None) -> None:
        """Queue ``function(argument)`` for a worker to run."""
        if function is None:
            raise ThreadPoolError("no function given")
        with self._cond:
            if len(self._queue) == self.queue_size:
                raise QueueFullError("task queue is full")
            if self._mode is not None:
                raise PoolShutdownError("pool is shut down")
            self._queue.append((function, argument))
            self._cond.notify()

    def shutdown(self, mode: ShutdownMode = ShutdownMode.GRACEFUL) -> None:
        """Stop the workers and wait for them to finish.

        A graceful shutdown runs every queued task first; an immediate one
        leaves queued tasks unrun.
        """
        with self._cond:
            if self._mode is not None:
                raise PoolShutdownError("pool is already shut down")
            self._mode = ShutdownMode(mode)
            self._cond.notify_all()
        for worker in self._threads:
            if worker is not threading.current_thread():
                worker.join()

    def __enter__(self) -> "ThreadPool":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self.closed:
            self.shutdown(ShutdownMode.GRACEFUL)

    def _work(self) -> None:
        while True:
            with self._cond:
                while not self._queue and self._mode is None:
                    self._cond.wait()
                if self._mode is ShutdownMode.IMMEDIATE or (
                    self._mode is ShutdownMode.GRACEFUL and not self._queue
                ):
                    self._started -= 1
                    return
                function, argument = self._queue.popleft()
            try:
                function(argument)
            except Exception:
                logger.exception("task raised an exception")