"""
Per-target pagination with chunked fan-out over thread pages.
"""

from concurrent.futures import Executor, as_completed
from typing import Callable, Dict, List, Optional
from urllib.parse import urljoin

from forum_crawler.crawlers.base import FetchSession
from forum_crawler.crawlers.extraction import HtmlExtractor
from forum_crawler.utils.errors import SessionError
from forum_crawler.utils.logging import get_logger
from .cancellation import CancellationToken
from .models import Target, TargetResult, ThreadRef, WorkerState
from .thread_scraper import ThreadScraper


logger = get_logger(__name__)

# report(state, message, stats_delta)
StatusReporter = Callable[[Optional[WorkerState], str, Optional[Dict[str, int]]], None]


def _no_report(state, message, stats_delta=None) -> None:
    pass


class ListingWalker:
    """
    Walks one target's listing pages until there is no next page.

    Page fetch failures end the walk for this target only. SessionError is
    not caught here: a dead session is fatal to the worker.
    """

    def __init__(
        self,
        session: FetchSession,
        scraper: ThreadScraper,
        executor: Executor,
        token: CancellationToken,
        report: StatusReporter = _no_report,
        extractor: Optional[HtmlExtractor] = None,
        fanout_limit: int = 3,
        page_timeout_ms: int = 60000,
        max_pages: int = 0,
        worker_id: int = 0
    ):
        self.session = session
        self.scraper = scraper
        self.executor = executor
        self.token = token
        self.report = report
        self.extractor = extractor or HtmlExtractor()
        self.fanout_limit = fanout_limit
        self.page_timeout_ms = page_timeout_ms
        self.max_pages = max_pages
        self.worker_id = worker_id

    def extract_thread_links(self, markup, target: Target) -> List[ThreadRef]:
        """Thread links on a listing page, resolved against the target's start URL."""
        links = []
        for node in self.extractor.select(markup, target.thread_link_selector):
            title = node.text.strip()
            href = node.get("href")
            if title and href:
                links.append(ThreadRef(title=title, url=urljoin(target.start_url, href)))
        return links

    def next_page_url(self, markup, target: Target) -> Optional[str]:
        if not target.next_page_selector:
            return None
        href = self.extractor.first_attribute(markup, target.next_page_selector, "href")
        if not href:
            return None
        return urljoin(target.start_url, href)

    def walk(self, target: Target) -> TargetResult:
        result = TargetResult(source_name=target.source_name, worker_id=self.worker_id)
        current_url: Optional[str] = target.start_url
        page_num = 1

        while current_url and not self.token.cancelled:
            try:
                self.report(WorkerState.SCRAPING, f"Navigating to Page {page_num}", None)
                html = self.session.fetch(current_url, self.page_timeout_ms)
                soup = self.extractor.parse(html)

                links = self.extract_thread_links(soup, target)
                if links:
                    self.report(WorkerState.PROCESSING, f"Page {page_num}: Found {len(links)} threads.", None)
                    self._fan_out(links, target, page_num, result)

                result.pages_processed += 1

                next_url = self.next_page_url(soup, target)
                page_limit_reached = self.max_pages and page_num >= self.max_pages
                if next_url and not self.token.cancelled and not page_limit_reached:
                    current_url = next_url
                    page_num += 1
                else:
                    current_url = None

            except SessionError:
                raise
            except Exception as e:
                logger.error(f"[Worker {self.worker_id}] Failed on page {current_url}: {e}")
                result.error_message = f"Page {page_num} failed: {e}"
                self.report(None, result.error_message, None)
                current_url = None

        result.interrupted = self.token.cancelled
        return result

    def _fan_out(self, links: List[ThreadRef], target: Target, page_num: int, result: TargetResult) -> None:
        """Scrape ``links`` in chunks of ``fanout_limit``; each chunk fully settles before the next."""
        done = 0
        for start in range(0, len(links), self.fanout_limit):
            if self.token.cancelled:
                break

            chunk = links[start:start + self.fanout_limit]
            futures = [self.executor.submit(self.scraper.scrape, thread, target) for thread in chunk]

            relevant = 0
            last_title = "N/A"
            # Completion order: the reported title is whichever scrape finished last
            for future in as_completed(futures):
                try:
                    scrape_result = future.result()
                except Exception as e:
                    logger.error(f"[Worker {self.worker_id}] Unexpected scrape failure: {e}")
                    continue
                if scrape_result.is_relevant:
                    relevant += 1
                last_title = scrape_result.display_title

            done += len(chunk)
            result.threads_seen += len(chunk)
            result.relevant_found += relevant
            self.report(
                WorkerState.PROCESSING,
                f"Page {page_num} [{done}/{len(links)}] {last_title}",
                {"new_relevant_found": relevant} if relevant else None
            )
