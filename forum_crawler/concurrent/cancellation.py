"""
Cooperative cancellation for the crawl run.

A single token is shared by the dispatcher, every worker, every listing
walker and every fan-out loop. Loop heads check it; nothing is interrupted
mid-flight.
"""

import os
import signal
import threading
from typing import Callable, Optional

from forum_crawler.utils.logging import get_logger


logger = get_logger(__name__)

FORCED_EXIT_CODE = 130


class CancellationToken:
    """Shared shutdown flag with escalation on a repeated request."""

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._requests = 0
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "shutdown requested") -> int:
        """
        Request shutdown.

        Returns:
            How many times shutdown has been requested, including this call
        """
        with self._lock:
            self._requests += 1
            if self._reason is None:
                self._reason = reason
            count = self._requests
        self._event.set()
        return count

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or the timeout expires."""
        return self._event.wait(timeout)


class InterruptHandler:
    """
    Translate SIGINT/SIGTERM into token cancellation.

    The first signal starts a graceful drain. A second signal while the
    drain is active calls ``force_exit`` (by default ``os._exit``), which
    abandons in-flight work.
    """

    def __init__(
        self,
        token: CancellationToken,
        on_first: Optional[Callable[[], None]] = None,
        force_exit: Callable[[int], None] = os._exit
    ):
        self.token = token
        self.on_first = on_first
        self.force_exit = force_exit
        self._previous = {}

    def install(self) -> None:
        """Install handlers; only valid from the main thread."""
        for signum in (signal.SIGINT, signal.SIGTERM):
            self._previous[signum] = signal.signal(signum, self.handle)

    def uninstall(self) -> None:
        for signum, previous in self._previous.items():
            signal.signal(signum, previous)
        self._previous.clear()

    def handle(self, signum, frame) -> None:
        count = self.token.cancel(f"signal {signum}")
        if count == 1:
            logger.warning("Shutdown signal received, finishing in-flight chunks then exiting")
            if self.on_first:
                self.on_first()
        else:
            logger.error("Second shutdown signal received, forcing immediate exit")
            self.force_exit(FORCED_EXIT_CODE)

    def __enter__(self) -> "InterruptHandler":
        self.install()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.uninstall()
