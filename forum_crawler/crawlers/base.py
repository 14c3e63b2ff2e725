"""
Abstract fetch session interface and the registry of session backends.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from forum_crawler.utils.logging import get_business_logger
from forum_crawler.utils.errors import CrawlerError, SessionError


logger = get_business_logger('crawler_general')


class FetchSession(ABC):
    """
    One fetch-capable resource (an HTTP session or a browser context).

    A session is owned by exactly one worker but is called concurrently
    from that worker's fan-out threads, so implementations must be safe
    for concurrent ``fetch`` calls.
    """

    #: True when the session can render pages and take screenshots
    can_render: bool = False

    @abstractmethod
    def fetch(self, url: str, timeout_ms: int) -> str:
        """
        Fetch a URL and return its markup.

        Raises:
            FetchError: The URL could not be fetched (timeout, non-2xx, navigation error)
            SessionError: The session itself is no longer usable
        """

    def screenshot(self, url: str, path: str, timeout_ms: int) -> bool:
        """
        Save a visual snapshot of ``url`` to ``path``.

        Returns:
            False when the session cannot render pages
        """
        return False

    @abstractmethod
    def close(self) -> None:
        """Release the underlying resource. Must be idempotent."""

    def __enter__(self) -> "FetchSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class FetcherRegistry:
    """Registry of fetch session backends by name."""

    def __init__(self):
        self._backends: Dict[str, type] = {}
        self._default_configs: Dict[str, Dict[str, Any]] = {}

    def register(self, name: str, session_class: type, default_config: Optional[Dict[str, Any]] = None) -> None:
        """
        Register a session backend.

        Raises:
            CrawlerError: If the class is not a FetchSession
        """
        if not isinstance(session_class, type) or not issubclass(session_class, FetchSession):
            raise CrawlerError(
                "Session class must extend FetchSession",
                {"name": name, "class": repr(session_class)}
            )

        self._backends[name] = session_class
        self._default_configs[name] = dict(default_config or {})
        logger.debug(f"Registered fetch backend: {name}")

    def create_session(self, name: str, config: Optional[Dict[str, Any]] = None) -> FetchSession:
        """
        Create a new session for ``name``, merging ``config`` over the defaults.

        Raises:
            CrawlerError: Unknown backend
            SessionError: The backend could not start a session
        """
        if name not in self._backends:
            raise CrawlerError(
                f"Unknown fetch backend: {name}",
                {"available": self.list_backends()}
            )

        merged = dict(self._default_configs[name])
        merged.update(config or {})

        try:
            return self._backends[name](merged)
        except SessionError:
            raise
        except Exception as e:
            raise SessionError(
                f"Failed to create {name} session",
                {"error": str(e)}
            ) from e

    def list_backends(self) -> List[str]:
        return sorted(self._backends)

    def __contains__(self, name: str) -> bool:
        return name in self._backends
