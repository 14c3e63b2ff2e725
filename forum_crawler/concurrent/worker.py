"""
Worker thread: one fetch session for its lifetime, one target at a time.
"""

import threading
import traceback
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Dict, List, Optional

from forum_crawler.crawlers.base import FetchSession
from forum_crawler.crawlers.extraction import HtmlExtractor
from forum_crawler.utils.errors import handle_error
from forum_crawler.utils.logging import get_logger
from .cancellation import CancellationToken
from .dispatcher import Dispatcher
from .listing_walker import ListingWalker
from .models import DONE, ConcurrentConfig, StatusEvent, TargetResult, WorkerState
from .thread_scraper import DiagnosticsWriter, ThreadScraper


logger = get_logger(__name__)


class WorkerThread(threading.Thread):
    """Pulls targets from the dispatcher until it is told there are none left."""

    def __init__(
        self,
        worker_id: int,
        dispatcher: Dispatcher,
        session_factory: Callable[[], FetchSession],
        repository,
        config: ConcurrentConfig,
        token: CancellationToken,
        extractor: Optional[HtmlExtractor] = None,
        diagnostics: Optional[DiagnosticsWriter] = None
    ):
        """
        Initialize worker thread.

        Args:
            worker_id: Pool slot, starting at 1
            dispatcher: Source of targets and sink for status events
            session_factory: Creates this worker's fetch session; called on the worker thread
            repository: Store for relevant threads
            config: Concurrent crawler configuration
            token: Shared cancellation token
            extractor: HTML extractor (shared, stateless)
            diagnostics: Writer for debug artifacts
        """
        super().__init__(name=f"CrawlerWorker-{worker_id}", daemon=True)

        self.worker_id = worker_id
        self.dispatcher = dispatcher
        self.session_factory = session_factory
        self.repository = repository
        self.config = config
        self.token = token
        self.extractor = extractor or HtmlExtractor()
        self.diagnostics = diagnostics or DiagnosticsWriter(config.debug_dir)

        self.exit_code: Optional[int] = None
        self.error_message: Optional[str] = None
        self.target_results: List[TargetResult] = []
        self.logger = get_logger(f"{__name__}.{worker_id}")

    def report(
        self,
        state: Optional[WorkerState],
        message: str,
        stats_delta: Optional[Dict[str, int]] = None
    ) -> None:
        self.dispatcher.post_status(StatusEvent(
            worker_id=self.worker_id,
            state=state,
            message=message,
            stats_delta=stats_delta or {}
        ))

    def run(self) -> None:
        self.logger.info(f"Worker {self.worker_id} starting")
        session: Optional[FetchSession] = None
        executor: Optional[ThreadPoolExecutor] = None
        exit_code = 0

        try:
            session = self.session_factory()
            executor = ThreadPoolExecutor(
                max_workers=self.config.fanout_limit,
                thread_name_prefix=f"CrawlerWorker-{self.worker_id}-fanout"
            )
            scraper = ThreadScraper(
                session,
                self.repository,
                extractor=self.extractor,
                diagnostics=self.diagnostics,
                timeout_ms=self.config.thread_timeout_ms
            )
            walker = ListingWalker(
                session,
                scraper,
                executor,
                self.token,
                report=self.report,
                extractor=self.extractor,
                fanout_limit=self.config.fanout_limit,
                page_timeout_ms=self.config.page_timeout_ms,
                max_pages=self.config.max_pages,
                worker_id=self.worker_id
            )

            while True:
                target = self.dispatcher.assign_next(self.worker_id)
                if target is DONE:
                    break

                self.logger.info(f"Worker {self.worker_id} scraping {target.source_name}")
                result = walker.walk(target)
                result.completed_at = datetime.now()
                self.target_results.append(result)
                self.dispatcher.complete_target(self.worker_id)

                self.logger.info(
                    f"Worker {self.worker_id} finished {target.source_name}: "
                    f"{result.pages_processed} pages, {result.threads_seen} threads, "
                    f"{result.relevant_found} relevant"
                )

        except Exception as e:
            exit_code = 1
            self.error_message = f"Critical error: {e}"
            self._write_critical_error(traceback.format_exc())
            handle_error(e, self.logger, {"worker_id": self.worker_id}, reraise=False)

        finally:
            if executor is not None:
                executor.shutdown(wait=True)
            if session is not None:
                try:
                    session.close()
                except Exception as e:
                    self.logger.warning(f"Worker {self.worker_id} failed to close session: {e}")

            self.exit_code = exit_code
            self.dispatcher.worker_exited(self.worker_id, exit_code, self.error_message)
            self.logger.info(f"Worker {self.worker_id} stopped with exit code {exit_code}")

    def _write_critical_error(self, trace: str) -> None:
        try:
            path = self.diagnostics.critical_error(self.worker_id, trace)
            self.logger.error(f"Worker {self.worker_id} traceback saved to {path}")
        except OSError as e:
            self.logger.error(f"Worker {self.worker_id} could not save traceback: {e}")
