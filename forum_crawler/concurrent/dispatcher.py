"""
Target queue and worker pool lifecycle.

Workers pull their next target with ``assign_next``; the dispatcher hands
each target to exactly one worker, in the order the targets were given,
and resolves completion once every pool slot has exited.
"""

import threading
from queue import Empty
from typing import Callable, Dict, List, Optional, Union

from forum_crawler.utils.errors import CrawlerError
from forum_crawler.utils.logging import get_business_logger
from .cancellation import CancellationToken
from .models import DONE, Done, StatusEvent, Target, WorkerState
from .thread_safe import ThreadSafeCounter, ThreadSafeQueue


logger = get_business_logger("dispatcher")


class Dispatcher:
    """Owns the FIFO of pending targets and tracks which slot holds which target."""

    def __init__(
        self,
        targets: List[Target],
        pool_size: int,
        token: CancellationToken,
        post_status: Callable[[StatusEvent], None]
    ):
        if pool_size < 1:
            raise CrawlerError("Pool size must be at least 1", {"pool_size": pool_size})

        self.pool_size = pool_size
        self.token = token
        self.post_status = post_status
        self.total_targets = len(targets)

        self._queue = ThreadSafeQueue()
        self._queue.put_all(targets)

        self._lock = threading.Lock()
        self._held: Dict[int, Target] = {}
        self._exited: Dict[int, int] = {}
        self._lost_targets: List[Target] = []
        self._completed = ThreadSafeCounter()

        self._workers: List[threading.Thread] = []
        self._completion = threading.Event()
        self._resolutions = 0

    @property
    def worker_ids(self) -> List[int]:
        return list(range(1, self.pool_size + 1))

    def assign_next(self, worker_id: int) -> Union[Target, Done]:
        """
        Hand the next pending target to ``worker_id``.

        Returns DONE when the queue is exhausted or shutdown was requested;
        the slot is then reported as finished.
        """
        with self._lock:
            self._held.pop(worker_id, None)
            target = None
            if not self.token.cancelled:
                try:
                    target = self._queue.get_nowait()
                except Empty:
                    target = None
            if target is not None:
                self._held[worker_id] = target

        if target is None:
            message = "Shutdown requested." if self.token.cancelled else "All tasks complete."
            self.post_status(StatusEvent(
                worker_id=worker_id,
                state=WorkerState.FINISHED,
                message=message
            ))
            return DONE

        logger.debug(f"Assigned {target.source_name} to worker {worker_id}")
        self.post_status(StatusEvent(
            worker_id=worker_id,
            state=WorkerState.STARTING,
            source_name=target.source_name,
            message=f"Scraping {target.source_name}"
        ))
        return target

    def complete_target(self, worker_id: int) -> None:
        """Record that ``worker_id`` is done with the target it holds."""
        with self._lock:
            target = self._held.pop(worker_id, None)
        if target is None:
            return
        self._completed.increment()
        self.post_status(StatusEvent(worker_id=worker_id, stats_delta={"targets_completed": 1}))

    def worker_exited(self, worker_id: int, exit_code: int, error_message: Optional[str] = None) -> None:
        """
        Record a worker's exit.

        A non-zero exit marks the slot as errored. The slot is not refilled
        and a target it still held counts as processed.
        """
        with self._lock:
            if worker_id in self._exited:
                return
            self._exited[worker_id] = exit_code
            held = self._held.pop(worker_id, None)
            if held is not None:
                self._lost_targets.append(held)
            all_exited = len(self._exited) >= self.pool_size

        if exit_code != 0:
            message = error_message or f"Exited with error code {exit_code}"
            logger.error(f"Worker {worker_id} exited with code {exit_code}: {message}")
            self.post_status(StatusEvent(
                worker_id=worker_id,
                state=WorkerState.ERROR,
                message=message,
                exit_code=exit_code,
                stats_delta={"targets_completed": 1} if held is not None else {}
            ))
            if held is not None:
                self._completed.increment()
        else:
            self.post_status(StatusEvent(worker_id=worker_id, exit_code=exit_code))

        if all_exited:
            self._resolve()

    def _resolve(self) -> None:
        with self._lock:
            if self._completion.is_set():
                return
            self._resolutions += 1
            self._completion.set()
        logger.info(
            f"All {self.pool_size} workers exited, "
            f"{self._completed.get_value()}/{self.total_targets} targets processed"
        )

    def start_workers(self, worker_factory: Callable[[int], threading.Thread]) -> List[threading.Thread]:
        """Create and start one worker per pool slot."""
        with self._lock:
            if self._workers:
                raise CrawlerError("Workers already started")
            self._workers = [worker_factory(worker_id) for worker_id in self.worker_ids]

        logger.info(f"Starting {len(self._workers)} workers, {self._queue.enqueued.get_value()} targets queued")
        for worker in self._workers:
            worker.start()
        return list(self._workers)

    def wait_for_completion(self, timeout: Optional[float] = None) -> bool:
        return self._completion.wait(timeout)

    def join_workers(self, timeout: Optional[float] = None) -> List[threading.Thread]:
        """Join worker threads; returns those still alive afterwards."""
        for worker in self._workers:
            worker.join(timeout)
        alive = [w for w in self._workers if w.is_alive()]
        if alive:
            logger.warning(f"{len(alive)} workers still running after join")
        return alive

    @property
    def is_complete(self) -> bool:
        return self._completion.is_set()

    @property
    def resolution_count(self) -> int:
        return self._resolutions

    @property
    def completed_count(self) -> int:
        return self._completed.get_value()

    @property
    def assigned_count(self) -> int:
        return self._queue.dequeued.get_value()

    @property
    def pending_count(self) -> int:
        return self._queue.qsize()

    @property
    def lost_targets(self) -> List[Target]:
        with self._lock:
            return list(self._lost_targets)
