"""
Main concurrent crawler controller.
Wires the dispatcher, worker pool, status aggregator and dashboard for one run.
"""

import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from forum_crawler.crawlers.base import FetchSession
from forum_crawler.crawlers.extraction import HtmlExtractor
from forum_crawler.utils.errors import CrawlerError
from forum_crawler.utils.logging import get_logger
from .cancellation import CancellationToken
from .dispatcher import Dispatcher
from .models import ConcurrentConfig, CrawlRunResult, Target
from .monitoring import DashboardRenderer, LogDashboard, StatusAggregator
from .thread_scraper import DiagnosticsWriter
from .worker import WorkerThread


logger = get_logger(__name__)

WAIT_POLL_SECONDS = 0.1


class ConcurrentCrawlerController:
    """Runs a list of targets across a fixed pool of workers."""

    def __init__(
        self,
        config: ConcurrentConfig,
        repository,
        session_factory: Callable[[], FetchSession],
        token: Optional[CancellationToken] = None,
        dashboard=None
    ):
        """
        Initialize concurrent crawler controller.

        Args:
            config: Concurrent crawler configuration
            repository: ThreadRepository (or anything with ``upsert_ignore_duplicate``)
            session_factory: Creates one fetch session per worker
            token: Shared cancellation token; a fresh one is created if omitted
            dashboard: Render sink with ``render(snapshot)``; logs progress if omitted
        """
        config.validate()
        self.config = config
        self.repository = repository
        self.session_factory = session_factory
        self.token = token or CancellationToken()
        self.dashboard = dashboard or LogDashboard()
        self.extractor = HtmlExtractor()
        self.diagnostics = DiagnosticsWriter(config.debug_dir)

        self._dispatcher: Optional[Dispatcher] = None
        self._aggregator: Optional[StatusAggregator] = None
        self._workers: List[WorkerThread] = []
        self._started = False
        self._lock = threading.Lock()

    def _create_worker(self, worker_id: int) -> WorkerThread:
        return WorkerThread(
            worker_id=worker_id,
            dispatcher=self._dispatcher,
            session_factory=self.session_factory,
            repository=self.repository,
            config=self.config,
            token=self.token,
            extractor=self.extractor,
            diagnostics=self.diagnostics
        )

    def run(self, targets: List[Target]) -> CrawlRunResult:
        """
        Crawl every target and block until all pool slots have exited.

        Raises:
            CrawlerError: If the controller has already been run
        """
        with self._lock:
            if self._started:
                raise CrawlerError("Controller can only run once")
            self._started = True

        started_at = datetime.now()
        logger.info(f"Starting crawl of {len(targets)} targets with {self.config.max_workers} workers")

        self._aggregator = StatusAggregator(
            worker_ids=list(range(1, self.config.max_workers + 1)),
            total_targets=len(targets)
        )
        self._dispatcher = Dispatcher(
            targets,
            self.config.max_workers,
            self.token,
            self._aggregator.post
        )
        renderer = DashboardRenderer(self._aggregator, self.dashboard, self.config.refresh_interval)

        self._aggregator.start()
        renderer.start()
        try:
            self._workers = self._dispatcher.start_workers(self._create_worker)

            # Short waits keep the main thread responsive to signals
            while not self._dispatcher.wait_for_completion(WAIT_POLL_SECONDS):
                pass

            self._dispatcher.join_workers()
        finally:
            self._aggregator.stop()
            renderer.stop(final_render=True)

        result = self._build_result(started_at)
        logger.info(
            f"Crawl finished: {result.completed_targets}/{result.total_targets} targets, "
            f"{result.total_relevant_found} relevant, {result.get_execution_time():.1f}s"
        )
        return result

    def _build_result(self, started_at: datetime) -> CrawlRunResult:
        snapshot = self._aggregator.snapshot()
        target_results = [r for w in self._workers for r in w.target_results]

        errors = [
            f"Worker {w.worker_id}: {w.error_message}" for w in self._workers if w.error_message
        ]
        errors.extend(
            f"{r.source_name}: {r.error_message}" for r in target_results if r.error_message
        )

        return CrawlRunResult(
            total_targets=snapshot.total_targets,
            completed_targets=snapshot.completed_targets,
            total_relevant_found=snapshot.total_relevant_found,
            worker_stats=snapshot.workers,
            started_at=started_at,
            completed_at=datetime.now(),
            target_results=target_results,
            interrupted=self.token.cancelled,
            errors=errors
        )

    def stop_crawling(self, reason: str = "stop requested") -> None:
        """Request a graceful drain: in-flight chunks finish, no new work starts."""
        logger.info(f"Stopping crawl: {reason}")
        self.token.cancel(reason)
        if hasattr(self.dashboard, "shutting_down"):
            self.dashboard.shutting_down = True

    def get_status(self) -> Dict[str, Any]:
        if self._aggregator is None or self._dispatcher is None:
            return {"started": self._started}

        snapshot = self._aggregator.snapshot()
        return {
            "started": self._started,
            "complete": self._dispatcher.is_complete,
            "cancelled": self.token.cancelled,
            "total_targets": snapshot.total_targets,
            "completed_targets": snapshot.completed_targets,
            "pending_targets": self._dispatcher.pending_count,
            "total_relevant_found": snapshot.total_relevant_found,
            "progress_percentage": snapshot.get_progress_percentage(),
            "workers": {
                w.worker_id: {"state": w.state.value, "source": w.source_name, "message": w.message}
                for w in snapshot.workers
            }
        }

    @property
    def dispatcher(self) -> Optional[Dispatcher]:
        return self._dispatcher

    @property
    def aggregator(self) -> Optional[StatusAggregator]:
        return self._aggregator
