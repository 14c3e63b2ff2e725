"""
Thread-safe repository for relevant threads.

Deduplication lives in the store: ``thread_url`` is UNIQUE and inserts use
``INSERT OR IGNORE`` (SQLite) or ``ON CONFLICT DO NOTHING`` (PostgreSQL),
so concurrent duplicate writes resolve to one row without raising.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from forum_crawler.data.models import PersistedRecord
from forum_crawler.data.database import DatabaseManager
from forum_crawler.data.sqlite_database import SQLiteDatabaseManager
from forum_crawler.concurrent.thread_safe import ThreadSafeCounter
from forum_crawler.utils.errors import DatabaseError
from forum_crawler.utils.logging import get_business_logger


logger = get_business_logger("repository")


class ThreadRepository:
    """Store port for scraped threads."""

    def __init__(self, db_manager: Union[DatabaseManager, SQLiteDatabaseManager]):
        """
        Initialize repository with database manager.

        Args:
            db_manager: Database manager instance (PostgreSQL or SQLite)
        """
        self.db_manager = db_manager
        self.is_sqlite = isinstance(db_manager, SQLiteDatabaseManager)

        self._inserted = ThreadSafeCounter(0)
        self._duplicates = ThreadSafeCounter(0)
        self._failed = ThreadSafeCounter(0)

    def _get_placeholder(self) -> str:
        return "?" if self.is_sqlite else "%s"

    def _insert_query(self) -> str:
        p = self._get_placeholder()
        columns = "(source_forum, thread_title, thread_url, post_text, discovered_at)"
        values = f"VALUES ({p}, {p}, {p}, {p}, {p})"
        if self.is_sqlite:
            return f"INSERT OR IGNORE INTO scraped_threads {columns} {values}"
        return f"INSERT INTO scraped_threads {columns} {values} ON CONFLICT (thread_url) DO NOTHING"

    def upsert_ignore_duplicate(self, record: PersistedRecord) -> bool:
        """
        Insert a record unless its thread_url is already stored.

        Args:
            record: Record to store

        Returns:
            True if a new row was written, False if the URL was already present

        Raises:
            DatabaseError: For failures other than a duplicate key
        """
        # sqlite3's implicit datetime adapter is deprecated, store ISO text
        discovered_at = (
            record.discovered_at.isoformat(sep=" ") if self.is_sqlite else record.discovered_at
        )
        params = (
            record.source_forum,
            record.thread_title,
            record.thread_url,
            record.post_text,
            discovered_at
        )

        try:
            affected = self.db_manager.execute_update(self._insert_query(), params)
        except DatabaseError as e:
            self._failed.increment()
            logger.error(f"Failed to store thread {record.thread_url}: {e}")
            raise DatabaseError(
                "Failed to store scraped thread",
                {"thread_url": record.thread_url, **e.details}
            )

        if affected > 0:
            self._inserted.increment()
            logger.debug(f"Stored thread {record.thread_url}")
            return True

        self._duplicates.increment()
        logger.debug(f"Thread already stored, ignoring: {record.thread_url}")
        return False

    def get_thread(self, thread_url: str) -> Optional[PersistedRecord]:
        """Fetch one stored thread by URL."""
        p = self._get_placeholder()
        rows = self.db_manager.execute_query(
            f"SELECT id, source_forum, thread_title, thread_url, post_text, discovered_at "
            f"FROM scraped_threads WHERE thread_url = {p}",
            (thread_url,)
        )
        return self._row_to_record(rows[0]) if rows else None

    def count_threads(self, source_forum: Optional[str] = None) -> int:
        """Count stored threads, optionally for one forum."""
        if source_forum is None:
            rows = self.db_manager.execute_query("SELECT COUNT(*) FROM scraped_threads")
        else:
            p = self._get_placeholder()
            rows = self.db_manager.execute_query(
                f"SELECT COUNT(*) FROM scraped_threads WHERE source_forum = {p}",
                (source_forum,)
            )
        return rows[0][0]

    def list_threads(self, source_forum: Optional[str] = None, limit: int = 100) -> List[PersistedRecord]:
        """List the most recently discovered threads."""
        p = self._get_placeholder()
        query = (
            "SELECT id, source_forum, thread_title, thread_url, post_text, discovered_at "
            "FROM scraped_threads"
        )
        params: tuple = ()
        if source_forum is not None:
            query += f" WHERE source_forum = {p}"
            params = (source_forum,)
        query += f" ORDER BY discovered_at DESC, id DESC LIMIT {p}"
        params += (limit,)

        rows = self.db_manager.execute_query(query, params)
        return [self._row_to_record(row) for row in rows or []]

    @staticmethod
    def _row_to_record(row) -> PersistedRecord:
        discovered_at = row[5]
        if isinstance(discovered_at, str):
            try:
                discovered_at = datetime.fromisoformat(discovered_at)
            except ValueError:
                discovered_at = datetime.now()

        return PersistedRecord(
            id=row[0],
            source_forum=row[1],
            thread_title=row[2],
            thread_url=row[3],
            post_text=row[4],
            discovered_at=discovered_at
        )

    def get_stats(self) -> Dict[str, Any]:
        """Write statistics for this run."""
        return {
            "inserted": self._inserted.get_value(),
            "duplicates_ignored": self._duplicates.get_value(),
            "failed": self._failed.get_value(),
        }

    def close(self) -> None:
        self.db_manager.close()
