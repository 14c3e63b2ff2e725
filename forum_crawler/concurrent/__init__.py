"""
Concurrent crawl engine: dispatcher, workers, listing walker and thread scraper.

Import the orchestration classes from their modules
(``forum_crawler.concurrent.controller`` and friends); only the
dependency-free building blocks are re-exported here.
"""

from .models import (
    WorkerState,
    ConcurrentConfig,
    Target,
    ThreadRef,
    ScrapeResult,
    DONE,
    WorkerStatus,
    StatusEvent,
    AggregateSnapshot,
    TargetResult,
    CrawlRunResult
)
from .thread_safe import ThreadSafeCounter, ThreadSafeQueue
from .cancellation import CancellationToken, InterruptHandler, FORCED_EXIT_CODE

__all__ = [
    'WorkerState',
    'ConcurrentConfig',
    'Target',
    'ThreadRef',
    'ScrapeResult',
    'DONE',
    'WorkerStatus',
    'StatusEvent',
    'AggregateSnapshot',
    'TargetResult',
    'CrawlRunResult',
    'ThreadSafeCounter',
    'ThreadSafeQueue',
    'CancellationToken',
    'InterruptHandler',
    'FORCED_EXIT_CODE'
]
