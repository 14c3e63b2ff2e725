"""
Data models for the concurrent forum crawler.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Any, Optional, List, Tuple
from datetime import datetime
from enum import Enum

from forum_crawler.utils.errors import ValidationError


class WorkerState(Enum):
    """Worker lifecycle state."""
    IDLE = "idle"
    STARTING = "starting"
    SCRAPING = "scraping"
    PROCESSING = "processing"
    FINISHED = "finished"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (WorkerState.FINISHED, WorkerState.ERROR)


@dataclass
class ConcurrentConfig:
    """Configuration for the worker pool and per-page fan-out."""
    max_workers: int = 4
    fanout_limit: int = 3
    page_timeout_ms: int = 60000
    thread_timeout_ms: int = 45000
    refresh_interval: float = 0.25
    max_pages: int = 0  # 0 = follow next-page links until none is left
    debug_dir: str = "debug"

    def __post_init__(self):
        """Validate configuration after initialization."""
        self.validate()

    def validate(self) -> None:
        """
        Validate configuration parameters.

        Raises:
            ValidationError: If configuration is invalid
        """
        errors = []

        if not (1 <= self.max_workers <= 50):
            errors.append("max_workers must be between 1 and 50")

        if not (1 <= self.fanout_limit <= 20):
            errors.append("fanout_limit must be between 1 and 20")

        if not (1000 <= self.page_timeout_ms <= 300000):
            errors.append("page_timeout_ms must be between 1000 and 300000")

        if not (1000 <= self.thread_timeout_ms <= 300000):
            errors.append("thread_timeout_ms must be between 1000 and 300000")

        if not (0.01 <= self.refresh_interval <= 10.0):
            errors.append("refresh_interval must be between 0.01 and 10.0")

        if self.max_pages < 0:
            errors.append("max_pages must be 0 (unlimited) or positive")

        if errors:
            raise ValidationError(
                "Concurrent configuration validation failed",
                {"errors": errors}
            )


@dataclass(frozen=True)
class Target:
    """One forum to crawl, with its own selectors and keyword list."""
    source_name: str
    start_url: str
    thread_link_selector: str
    next_page_selector: str
    post_content_selectors: Tuple[str, ...]
    keywords: Tuple[str, ...]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Target":
        """
        Build a target from a targets.json entry.

        Accepts either ``postContentSelectors`` (ordered list) or a single
        ``postContentSelector`` string.
        """
        selectors = data.get("postContentSelectors")
        if selectors is None:
            selectors = [data["postContentSelector"]]
        elif isinstance(selectors, str):
            selectors = [selectors]

        return cls(
            source_name=data["sourceName"],
            start_url=data["startUrl"],
            thread_link_selector=data["threadLinkSelector"],
            next_page_selector=data.get("nextPageSelector", ""),
            post_content_selectors=tuple(selectors),
            keywords=tuple(data["keywords"])
        )


@dataclass(frozen=True)
class ThreadRef:
    """A thread link found on a listing page."""
    title: str
    url: str


@dataclass(frozen=True)
class ScrapeResult:
    """Outcome of scraping one thread."""
    is_relevant: bool
    title: str
    source_name: str = ""

    @property
    def display_title(self) -> str:
        return self.title[:45]


class Done:
    """Sentinel handed to a worker when the target queue is exhausted."""

    def __repr__(self) -> str:
        return "DONE"


DONE = Done()


@dataclass
class WorkerStatus:
    """Live status of one pool slot, as shown on the dashboard."""
    worker_id: int
    source_name: str = "Idle"
    state: WorkerState = WorkerState.IDLE
    message: str = "Waiting for a task..."
    relevant_count: int = 0
    targets_processed: int = 0
    exit_code: Optional[int] = None
    last_activity: datetime = field(default_factory=datetime.now)

    def copy(self) -> "WorkerStatus":
        return replace(self)


@dataclass(frozen=True)
class StatusEvent:
    """
    Status update pushed by a worker (or by the dispatcher on its behalf).

    ``None`` fields leave the current value untouched. ``stats_delta`` keys:
    ``new_relevant_found`` and ``targets_completed``.
    """
    worker_id: int
    state: Optional[WorkerState] = None
    message: Optional[str] = None
    source_name: Optional[str] = None
    stats_delta: Dict[str, int] = field(default_factory=dict)
    exit_code: Optional[int] = None
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class AggregateSnapshot:
    """Point-in-time view of the whole run."""
    total_targets: int
    completed_targets: int
    total_relevant_found: int
    workers: List[WorkerStatus]
    timestamp: datetime = field(default_factory=datetime.now)

    def get_progress_percentage(self) -> float:
        if self.total_targets == 0:
            return 100.0
        return (self.completed_targets / self.total_targets) * 100.0

    def all_workers_terminal(self) -> bool:
        return all(w.state.is_terminal for w in self.workers)


@dataclass
class TargetResult:
    """Result of walking one target's listing pages."""
    source_name: str
    worker_id: int
    pages_processed: int = 0
    threads_seen: int = 0
    relevant_found: int = 0
    error_message: Optional[str] = None
    interrupted: bool = False
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: Optional[datetime] = None

    def get_execution_time(self) -> Optional[float]:
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None


@dataclass
class CrawlRunResult:
    """Overall result of a crawl run."""
    total_targets: int
    completed_targets: int
    total_relevant_found: int
    worker_stats: List[WorkerStatus]
    started_at: datetime
    completed_at: Optional[datetime] = None
    target_results: List[TargetResult] = field(default_factory=list)
    interrupted: bool = False
    errors: List[str] = field(default_factory=list)

    def get_execution_time(self) -> float:
        end = self.completed_at or datetime.now()
        return (end - self.started_at).total_seconds()

    def failed_workers(self) -> List[WorkerStatus]:
        return [w for w in self.worker_stats if w.state == WorkerState.ERROR]

    def has_errors(self) -> bool:
        return bool(self.failed_workers())
