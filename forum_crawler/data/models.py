"""
Persisted record model.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from forum_crawler.utils.errors import ValidationError


@dataclass
class PersistedRecord:
    """A relevant thread, stored at most once per thread_url."""
    source_forum: str
    thread_title: str
    thread_url: str
    post_text: str
    discovered_at: datetime = field(default_factory=datetime.now)
    id: Optional[int] = None

    def __post_init__(self):
        if not self.thread_url:
            raise ValidationError("thread_url is required", {"thread_title": self.thread_title})
