"""
In-memory collaborators shared by the crawler tests.
"""

import threading
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from forum_crawler.concurrent.models import Target
from forum_crawler.crawlers.base import FetchSession
from forum_crawler.utils.errors import FetchError


class FakeFetchSession(FetchSession):
    """Serves pages from a dict and records concurrency."""

    def __init__(
        self,
        pages: Dict[str, str],
        failures: Optional[Dict[str, Exception]] = None,
        delay: Union[float, Callable[[str], float]] = 0.0,
        can_render: bool = False
    ):
        self.pages = dict(pages)
        self.failures = dict(failures or {})
        self.delay = delay
        self.can_render = can_render
        self.calls: List[str] = []
        self.events: List[Tuple[str, str]] = []
        self.screenshots: List[str] = []
        self.closed = False
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def fetch(self, url: str, timeout_ms: int) -> str:
        with self._lock:
            self.calls.append(url)
            self.events.append(("start", url))
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delay(url) if callable(self.delay) else self.delay
            if delay:
                time.sleep(delay)
            if url in self.failures:
                raise self.failures[url]
            if url not in self.pages:
                raise FetchError(f"HTTP 404 for {url}", {"url": url})
            return self.pages[url]
        finally:
            with self._lock:
                self.in_flight -= 1
                self.events.append(("end", url))

    def screenshot(self, url: str, path: str, timeout_ms: int) -> bool:
        Path(path).write_bytes(b"\x89PNG fake")
        self.screenshots.append(path)
        return True

    def close(self) -> None:
        self.closed = True


class MemoryRepository:
    """Thread-safe stand-in for ThreadRepository."""

    def __init__(self, fail_with: Optional[Exception] = None):
        self.records = {}
        self.attempts = 0
        self.fail_with = fail_with
        self._lock = threading.Lock()

    def upsert_ignore_duplicate(self, record) -> bool:
        with self._lock:
            self.attempts += 1
            if self.fail_with is not None:
                raise self.fail_with
            if record.thread_url in self.records:
                return False
            self.records[record.thread_url] = record
            return True


BASE_URL = "https://forum.test"


def listing_html(threads: Sequence[Tuple[str, str]], next_href: Optional[str] = None) -> str:
    items = "\n".join(f'<li><a class="thread" href="{href}">{title}</a></li>' for title, href in threads)
    next_link = f'<a class="next" href="{next_href}">Next</a>' if next_href else ""
    return f"<html><body><ul>{items}</ul>{next_link}</body></html>"


def thread_html(body: str, css_class: str = "post") -> str:
    return f'<html><body><div class="{css_class}">{body}</div></body></html>'


def make_target(
    name: str = "Test Forum",
    start_path: str = "/board",
    keywords: Sequence[str] = ("turbo",),
    selectors: Sequence[str] = (".post",),
    next_selector: str = "a.next"
) -> Target:
    return Target(
        source_name=name,
        start_url=f"{BASE_URL}{start_path}",
        thread_link_selector="a.thread",
        next_page_selector=next_selector,
        post_content_selectors=tuple(selectors),
        keywords=tuple(keywords)
    )


def build_forum(
    pages: Sequence[Sequence[Tuple[str, str]]],
    start_path: str = "/board",
    prefix: str = ""
) -> Dict[str, str]:
    """
    Build a paginated forum.

    Args:
        pages: One list per listing page of (title, post body) pairs
        start_path: Path of the first listing page
        prefix: Distinguishes thread URLs of different forums

    Returns:
        url -> html for every listing and thread page
    """
    site = {}
    thread_no = 0
    for index, threads in enumerate(pages):
        page_url = f"{BASE_URL}{start_path}" if index == 0 else f"{BASE_URL}{start_path}?page={index + 1}"
        links = []
        for title, body in threads:
            thread_no += 1
            href = f"/t/{prefix}{thread_no}"
            links.append((title, href))
            site[f"{BASE_URL}{href}"] = thread_html(body)
        next_href = f"{start_path}?page={index + 2}" if index + 1 < len(pages) else None
        site[page_url] = listing_html(links, next_href)
    return site
