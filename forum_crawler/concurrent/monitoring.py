"""
Status aggregation and the live console dashboard.

Workers never touch the shared counters directly: they post StatusEvents
to the StatusAggregator, whose single consumer thread applies them. The
DashboardRenderer reads snapshots at a fixed cadence.
"""

import queue
import sys
import threading
from typing import Dict, List, Optional, TextIO

from forum_crawler.utils.logging import get_logger
from .models import AggregateSnapshot, CrawlRunResult, StatusEvent, WorkerState, WorkerStatus


logger = get_logger(__name__)

_STOP = object()


class StatusAggregator:
    """Single point where worker status events are applied."""

    def __init__(self, worker_ids: List[int], total_targets: int):
        self.total_targets = total_targets
        self._workers: Dict[int, WorkerStatus] = {
            worker_id: WorkerStatus(worker_id=worker_id) for worker_id in worker_ids
        }
        self._completed_targets = 0
        self._total_relevant = 0
        self._events_applied = 0

        self._events: "queue.Queue" = queue.Queue()
        # Guards reads against a half-applied event; only the consumer writes
        self._state_lock = threading.Lock()
        self._consumer: Optional[threading.Thread] = None

    def post(self, event: StatusEvent) -> None:
        """Enqueue an event; safe from any thread."""
        self._events.put(event)

    def start(self) -> None:
        if self._consumer is not None:
            return
        self._consumer = threading.Thread(target=self._consume, name="StatusAggregator", daemon=True)
        self._consumer.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Apply everything posted so far, then stop the consumer."""
        if self._consumer is None:
            self.drain()
            return
        self._events.put(_STOP)
        self._consumer.join(timeout)
        if self._consumer.is_alive():
            logger.warning("Status aggregator did not stop within timeout")
        self._consumer = None

    def drain(self) -> int:
        """Apply pending events on the calling thread; only when no consumer runs."""
        applied = 0
        while True:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                return applied
            if event is not _STOP:
                self.apply(event)
                applied += 1

    def _consume(self) -> None:
        while True:
            event = self._events.get()
            if event is _STOP:
                return
            try:
                self.apply(event)
            except Exception as e:
                logger.error(f"Failed to apply status event {event}: {e}")

    def apply(self, event: StatusEvent) -> None:
        with self._state_lock:
            status = self._workers.get(event.worker_id)
            if status is None:
                status = WorkerStatus(worker_id=event.worker_id)
                self._workers[event.worker_id] = status

            if event.state is not None:
                # A terminal slot stays terminal
                if not status.state.is_terminal or event.state.is_terminal:
                    if event.state == WorkerState.STARTING:
                        status.relevant_count = 0
                    status.state = event.state

            if event.source_name is not None:
                status.source_name = event.source_name
            if event.message is not None:
                status.message = event.message
            if event.exit_code is not None:
                status.exit_code = event.exit_code

            new_relevant = max(0, event.stats_delta.get("new_relevant_found", 0))
            status.relevant_count += new_relevant
            self._total_relevant += new_relevant

            completed = max(0, event.stats_delta.get("targets_completed", 0))
            status.targets_processed += completed
            self._completed_targets += completed

            status.last_activity = event.timestamp
            self._events_applied += 1

    def snapshot(self) -> AggregateSnapshot:
        with self._state_lock:
            return AggregateSnapshot(
                total_targets=self.total_targets,
                completed_targets=self._completed_targets,
                total_relevant_found=self._total_relevant,
                workers=[self._workers[k].copy() for k in sorted(self._workers)]
            )

    @property
    def events_applied(self) -> int:
        with self._state_lock:
            return self._events_applied


class Color:
    RESET = "\x1b[0m"
    RED = "\x1b[31m"
    GREEN = "\x1b[32m"
    YELLOW = "\x1b[33m"
    CYAN = "\x1b[36m"


CLEAR_SCREEN = "\x1b[2J\x1b[H"


class ConsoleDashboard:
    """Renders snapshots as a full-screen text table."""

    def __init__(self, stream: Optional[TextIO] = None, use_color: bool = True, clear: bool = True):
        self.stream = stream or sys.stdout
        self.use_color = use_color
        self.clear = clear
        self.shutting_down = False

    def _c(self, code: str, text: str) -> str:
        if not self.use_color:
            return text
        return f"{code}{text}{Color.RESET}"

    def _state_color(self, state: WorkerState) -> str:
        if state == WorkerState.FINISHED:
            return Color.GREEN
        if state == WorkerState.ERROR:
            return Color.RED
        return Color.YELLOW

    def format(self, snapshot: AggregateSnapshot) -> str:
        lines = [
            self._c(Color.CYAN, "--- Multithreaded Scraper Dashboard ---"),
            f"Progress: {snapshot.completed_targets} / {snapshot.total_targets} targets processed"
            f" | Total Relevant Found: {self._c(Color.GREEN, str(snapshot.total_relevant_found))}",
            ""
        ]

        for worker in snapshot.workers:
            worker_id = f"[Worker {worker.worker_id}]".ljust(11)
            source = f"({worker.source_name})".ljust(20)
            state = f"[{worker.state.value.upper()}]".ljust(12)
            lines.append(
                f"{worker_id} {source} {self._c(self._state_color(worker.state), state)} {worker.message}"
            )

        lines.append("")
        if self.shutting_down:
            lines.append("(Shutting down, press Ctrl+C again to force exit)")
        else:
            lines.append("(Press Ctrl+C to stop)")
        return "\n".join(lines)

    def render(self, snapshot: AggregateSnapshot) -> None:
        text = self.format(snapshot)
        if self.clear:
            text = CLEAR_SCREEN + text
        self.stream.write(text + "\n")
        self.stream.flush()


class LogDashboard:
    """Headless sink: logs progress only when it changes."""

    def __init__(self):
        self.shutting_down = False
        self._last = None

    def render(self, snapshot: AggregateSnapshot) -> None:
        current = (snapshot.completed_targets, snapshot.total_relevant_found)
        if current == self._last:
            return
        self._last = current
        logger.info(
            f"Progress: {snapshot.completed_targets}/{snapshot.total_targets} targets processed, "
            f"{snapshot.total_relevant_found} relevant found"
        )


class DashboardRenderer:
    """Background loop rendering the aggregator's snapshot every ``interval`` seconds."""

    def __init__(self, aggregator: StatusAggregator, sink, interval: float = 0.25):
        self.aggregator = aggregator
        self.sink = sink
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.frames_rendered = 0

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="DashboardRenderer", daemon=True)
        self._thread.start()

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            self.render_once()
            self._stop_event.wait(self.interval)

    def render_once(self) -> None:
        try:
            self.sink.render(self.aggregator.snapshot())
            self.frames_rendered += 1
        except Exception as e:
            logger.error(f"Dashboard render failed: {e}")

    def stop(self, final_render: bool = True) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=2 * self.interval + 1)
            self._thread = None
        if final_render:
            self.render_once()


def format_summary(result: CrawlRunResult) -> str:
    """Plain-text summary printed once the run is over."""
    lines = [
        f"\n{'=' * 60}",
        "CRAWL SUMMARY",
        f"{'=' * 60}",
        f"Targets processed: {result.completed_targets}/{result.total_targets}",
        f"Relevant threads found: {result.total_relevant_found}",
        f"Execution time: {result.get_execution_time():.1f}s",
    ]
    if result.interrupted:
        lines.append("Run was interrupted before all targets were processed")

    for target in result.target_results:
        line = (
            f"  {target.source_name}: {target.pages_processed} pages, "
            f"{target.threads_seen} threads, {target.relevant_found} relevant"
        )
        if target.error_message:
            line += f" ({target.error_message})"
        lines.append(line)

    failed = result.failed_workers()
    if failed:
        lines.append(f"Workers with errors: {len(failed)}")
        for worker in failed:
            lines.append(f"  Worker {worker.worker_id}: {worker.message}")

    lines.append(f"{'=' * 60}")
    return "\n".join(lines)
