"""
Small lock-protected primitives shared between worker threads.
"""

import queue
import threading
from typing import Any, Iterable


class ThreadSafeCounter:
    """An integer that several threads may bump at once."""

    def __init__(self, initial_value: int = 0):
        self._value = initial_value
        self._lock = threading.Lock()

    def increment(self, amount: int = 1) -> int:
        """Add ``amount`` and return the new total."""
        with self._lock:
            self._value += amount
            return self._value

    def get_value(self) -> int:
        with self._lock:
            return self._value

    def __repr__(self) -> str:
        return f"ThreadSafeCounter({self.get_value()})"


class ThreadSafeQueue:
    """
    Unbounded FIFO of pending work.

    Thin wrapper over ``queue.Queue`` that also counts how many items went
    in and came out, for progress logging.
    """

    def __init__(self):
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self.enqueued = ThreadSafeCounter()
        self.dequeued = ThreadSafeCounter()

    def put_all(self, items: Iterable[Any]) -> None:
        """Enqueue ``items`` keeping their order."""
        for item in items:
            self._queue.put(item)
            self.enqueued.increment()

    def get_nowait(self) -> Any:
        """
        Raises:
            queue.Empty: Nothing is pending
        """
        item = self._queue.get_nowait()
        self.dequeued.increment()
        return item

    def qsize(self) -> int:
        return self._queue.qsize()
