"""
Playwright-based fetch session: one browser and one browser context per worker.

Playwright objects are bound to the event loop that created them, while a
worker calls ``fetch`` from several fan-out threads at once. The session
therefore runs its own event loop on a private thread and every call is
submitted to that loop; each fetch gets its own tab, which is always closed.
"""

import asyncio
import concurrent.futures
import random
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from playwright.async_api import async_playwright, Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from forum_crawler.crawlers.base import FetchSession
from forum_crawler.crawlers.http_client import DEFAULT_USER_AGENTS
from forum_crawler.utils.logging import get_business_logger
from forum_crawler.utils.errors import FetchError, SessionError


logger = get_business_logger('crawler_playwright')

# Extra time granted to the loop beyond the navigation timeout itself
CALL_GRACE_SECONDS = 10.0


class PlaywrightFetchSession(FetchSession):
    """Fetch session backed by a headless Chromium context."""

    can_render = True

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.headless = self.config.get('headless', True)
        self.browser_type = self.config.get('browser_type', 'chromium')
        self.viewport_width = self.config.get('viewport_width', 1920)
        self.viewport_height = self.config.get('viewport_height', 1080)
        self.wait_until = self.config.get('wait_until', 'networkidle')
        self.startup_timeout = self.config.get('startup_timeout', 60.0)
        self.user_agents = self.config.get('user_agents') or DEFAULT_USER_AGENTS

        self._playwright = None
        self._browser = None
        self._context = None
        self._closed = False
        self._close_lock = threading.Lock()

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="PlaywrightLoop",
            daemon=True
        )
        self._thread.start()

        try:
            self._call(self._start(), timeout=self.startup_timeout)
        except Exception as e:
            self.close()
            raise SessionError(
                "Failed to initialize Playwright browser",
                {"error": str(e), "browser_type": self.browser_type}
            ) from e

        logger.info("Playwright browser initialized successfully")

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def _call(self, coro, timeout: float):
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise

    async def _start(self) -> None:
        browser_args = [
            '--disable-blink-features=AutomationControlled',
            '--disable-dev-shm-usage',
            '--no-sandbox',
            '--disable-setuid-sandbox',
            '--no-first-run',
            '--disable-default-apps'
        ]

        self._playwright = await async_playwright().start()
        launcher = getattr(self._playwright, self.browser_type)
        if self.browser_type == 'chromium':
            self._browser = await launcher.launch(headless=self.headless, args=browser_args)
        else:
            self._browser = await launcher.launch(headless=self.headless)

        self._context = await self._browser.new_context(
            user_agent=random.choice(self.user_agents),
            viewport={'width': self.viewport_width, 'height': self.viewport_height}
        )

    async def _fetch(self, url: str, timeout_ms: int) -> str:
        page = await self._context.new_page()
        try:
            response = await page.goto(url, wait_until=self.wait_until, timeout=timeout_ms)
            if response is not None and not response.ok:
                raise FetchError(
                    f"HTTP {response.status} for {url}",
                    {"url": url, "status_code": response.status}
                )
            return await page.content()
        finally:
            await page.close()

    async def _screenshot(self, url: str, path: str, timeout_ms: int) -> None:
        page = await self._context.new_page()
        try:
            await page.goto(url, wait_until=self.wait_until, timeout=timeout_ms)
            await page.screenshot(path=path, full_page=True)
        finally:
            await page.close()

    def _run_page_call(self, coro, url: str, timeout_ms: int):
        if self._closed:
            coro.close()
            raise SessionError("Playwright session is closed", {"url": url})

        try:
            return self._call(coro, timeout=timeout_ms / 1000.0 + CALL_GRACE_SECONDS)
        except FetchError:
            raise
        except (PlaywrightTimeoutError, concurrent.futures.TimeoutError) as e:
            raise FetchError(f"Timed out loading {url}", {"url": url, "timeout_ms": timeout_ms}) from e
        except PlaywrightError as e:
            if self._browser is not None and not self._browser.is_connected():
                raise SessionError("Browser disconnected", {"url": url, "error": str(e)}) from e
            raise FetchError(f"Navigation failed for {url}: {e}", {"url": url}) from e

    def fetch(self, url: str, timeout_ms: int) -> str:
        return self._run_page_call(self._fetch(url, timeout_ms), url, timeout_ms)

    def screenshot(self, url: str, path: str, timeout_ms: int) -> bool:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._run_page_call(self._screenshot(url, path, timeout_ms), url, timeout_ms)
        return True

    async def _shutdown(self) -> None:
        try:
            if self._context is not None:
                await self._context.close()
            if self._browser is not None:
                await self._browser.close()
        finally:
            if self._playwright is not None:
                await self._playwright.stop()

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return
            self._closed = True

        try:
            if self._playwright is not None:
                self._call(self._shutdown(), timeout=self.startup_timeout)
        except Exception as e:
            logger.warning(f"Error while closing Playwright browser: {e}")
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=10.0)
            if not self._thread.is_alive():
                self._loop.close()
            logger.info("Playwright browser closed")
