"""
Scrapes one thread page: fetch, extract post text, test relevance, store.
"""

import re
from pathlib import Path
from typing import Iterable, Optional, Tuple

from forum_crawler.crawlers.base import FetchSession
from forum_crawler.crawlers.extraction import HtmlExtractor
from forum_crawler.data.models import PersistedRecord
from forum_crawler.utils.logging import get_logger
from .models import ScrapeResult, Target, ThreadRef


logger = get_logger(__name__)

ERROR_TITLE_PREFIX = "[ERROR] "


def is_relevant(text: str, keywords: Iterable[str]) -> bool:
    """True iff any keyword is a case-insensitive substring of ``text``."""
    lowered = text.lower()
    return any(keyword.lower() in lowered for keyword in keywords)


def _safe_filename(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "_", name).strip("_") or "target"


class DiagnosticsWriter:
    """Writes debug artifacts for pages the crawler could not make sense of."""

    def __init__(self, debug_dir: str = "debug"):
        self.debug_dir = Path(debug_dir)

    def no_content_found(
        self,
        target: Target,
        thread: ThreadRef,
        html: str,
        session: FetchSession,
        timeout_ms: int
    ) -> Tuple[Path, Optional[Path]]:
        """
        Save the raw markup and, when the session can render, a screenshot.

        Returns:
            (html_path, screenshot_path or None)
        """
        self.debug_dir.mkdir(parents=True, exist_ok=True)
        stem = f"{_safe_filename(target.source_name)}_no_content_found"

        html_path = self.debug_dir / f"{stem}.html"
        html_path.write_text(html, encoding="utf-8")

        screenshot_path = None
        if session.can_render:
            candidate = self.debug_dir / f"{stem}.png"
            if session.screenshot(thread.url, str(candidate), timeout_ms):
                screenshot_path = candidate

        return html_path, screenshot_path

    def critical_error(self, worker_id: int, trace: str) -> Path:
        """Save the traceback of a session-fatal worker error."""
        self.debug_dir.mkdir(parents=True, exist_ok=True)
        path = self.debug_dir / f"worker_{worker_id}_critical_error.txt"
        path.write_text(trace, encoding="utf-8")
        return path


class ThreadScraper:
    """
    Turns one ThreadRef into a ScrapeResult.

    Never raises: every failure becomes ``ScrapeResult(False, "[ERROR] " + title)``.
    """

    def __init__(
        self,
        session: FetchSession,
        repository,
        extractor: Optional[HtmlExtractor] = None,
        diagnostics: Optional[DiagnosticsWriter] = None,
        timeout_ms: int = 45000
    ):
        self.session = session
        self.repository = repository
        self.extractor = extractor or HtmlExtractor()
        self.diagnostics = diagnostics or DiagnosticsWriter()
        self.timeout_ms = timeout_ms

    def extract_post_text(self, html: str, selectors: Iterable[str]) -> str:
        """Text of the first selector, in order, that yields non-empty text."""
        soup = self.extractor.parse(html)
        for selector in selectors:
            text = self.extractor.first_text(soup, selector)
            if text:
                return text
        return ""

    def scrape(self, thread: ThreadRef, target: Target) -> ScrapeResult:
        try:
            html = self.session.fetch(thread.url, self.timeout_ms)
            text = self.extract_post_text(html, target.post_content_selectors)

            if not text:
                html_path, _ = self.diagnostics.no_content_found(
                    target, thread, html, self.session, self.timeout_ms
                )
                logger.warning(f"No post content found for {thread.url}, saved {html_path}")
                return ScrapeResult(False, thread.title, target.source_name)

            relevant = is_relevant(text, target.keywords)
            if relevant:
                self.repository.upsert_ignore_duplicate(PersistedRecord(
                    source_forum=target.source_name,
                    thread_title=thread.title,
                    thread_url=thread.url,
                    post_text=text.strip()
                ))

            return ScrapeResult(relevant, thread.title, target.source_name)

        except Exception as e:
            logger.debug(f"Thread scrape failed for {thread.url}: {e}")
            return ScrapeResult(False, f"{ERROR_TITLE_PREFIX}{thread.title}", target.source_name)
