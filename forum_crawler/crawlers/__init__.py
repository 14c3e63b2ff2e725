"""
Fetch sessions and HTML extraction used by the crawler.
"""

from .base import FetchSession, FetcherRegistry
from .extraction import HtmlExtractor, SelectedNode
from .http_client import HttpFetchSession, UserAgentRotator
from .playwright_session import PlaywrightFetchSession


# Default registry with the two available backends
default_registry = FetcherRegistry()

default_registry.register('http', HttpFetchSession, {
    'retry_attempts': 2,
    'backoff_factor': 0.5,
    'pool_size': 10,
})

default_registry.register('playwright', PlaywrightFetchSession, {
    'headless': True,
    'browser_type': 'chromium',
    'viewport_width': 1920,
    'viewport_height': 1080,
    'wait_until': 'networkidle',
})

__all__ = [
    'FetchSession',
    'FetcherRegistry',
    'HtmlExtractor',
    'SelectedNode',
    'HttpFetchSession',
    'PlaywrightFetchSession',
    'UserAgentRotator',
    'default_registry',
]
