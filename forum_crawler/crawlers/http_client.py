"""
HTTP fetch session with retry logic and user agent rotation.
"""

import random
import threading
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from forum_crawler.crawlers.base import FetchSession
from forum_crawler.utils.logging import get_business_logger
from forum_crawler.utils.errors import FetchError, SessionError


logger = get_business_logger('crawler_http')


DEFAULT_USER_AGENTS = [
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15',
]


class UserAgentRotator:
    """Rotates user agents between requests."""

    def __init__(self, user_agents: Optional[List[str]] = None):
        self.user_agents = list(user_agents or DEFAULT_USER_AGENTS)
        self.current_index = 0
        self._lock = threading.Lock()

    def get_random_user_agent(self) -> str:
        return random.choice(self.user_agents)

    def get_next_user_agent(self) -> str:
        """Get the next user agent in rotation."""
        with self._lock:
            user_agent = self.user_agents[self.current_index]
            self.current_index = (self.current_index + 1) % len(self.user_agents)
            return user_agent


class HttpFetchSession(FetchSession):
    """
    Plain HTTP fetch session backed by one ``requests.Session``.

    Transient statuses (429, 5xx) are retried by urllib3 with exponential
    backoff; anything that is still not a 2xx afterwards is a FetchError.
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config or {}
        self.retry_attempts = self.config.get('retry_attempts', 2)
        self.backoff_factor = self.config.get('backoff_factor', 0.5)
        self.retry_on_status = self.config.get('retry_on_status', [429, 500, 502, 503, 504])
        self.pool_size = self.config.get('pool_size', 10)
        self.user_agent_rotator = UserAgentRotator(self.config.get('user_agents'))
        self._closed = False

        try:
            self.session = self._create_session()
        except Exception as e:
            raise SessionError("Failed to create HTTP session", {"error": str(e)}) from e

        logger.debug("HTTP fetch session created")

    def _create_session(self) -> requests.Session:
        session = requests.Session()

        retry_strategy = Retry(
            total=self.retry_attempts,
            backoff_factor=self.backoff_factor,
            status_forcelist=self.retry_on_status,
            allowed_methods=["HEAD", "GET", "OPTIONS"],
            raise_on_status=False
        )
        adapter = HTTPAdapter(
            max_retries=retry_strategy,
            pool_connections=self.pool_size,
            pool_maxsize=self.pool_size
        )
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.headers.update({
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.9',
            'Connection': 'keep-alive',
        })
        return session

    def fetch(self, url: str, timeout_ms: int) -> str:
        if self._closed:
            raise SessionError("HTTP session is closed", {"url": url})

        headers = {'User-Agent': self.user_agent_rotator.get_next_user_agent()}

        try:
            response = self.session.get(url, headers=headers, timeout=timeout_ms / 1000.0)
        except requests.Timeout as e:
            raise FetchError(f"Timed out fetching {url}", {"url": url, "timeout_ms": timeout_ms}) from e
        except requests.RequestException as e:
            raise FetchError(f"Request failed for {url}: {e}", {"url": url}) from e

        if not response.ok:
            raise FetchError(
                f"HTTP {response.status_code} for {url}",
                {"url": url, "status_code": response.status_code}
            )

        return response.text

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.session.close()
        logger.debug("HTTP fetch session closed")
