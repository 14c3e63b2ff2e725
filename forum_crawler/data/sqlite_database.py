"""
SQLite store for scraped threads.

Every operation opens its own connection, so one manager can be shared by
all worker threads. Concurrent writers wait on the file lock for up to
``busy_timeout`` seconds instead of failing with "database is locked".
"""

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from forum_crawler.data.schema import SQLITE_SCHEMA, TABLE_NAME
from forum_crawler.utils.errors import DatabaseError
from forum_crawler.utils.logging import get_business_logger


logger = get_business_logger("database")


class SQLiteDatabaseManager:
    """Thread-safe access to one SQLite database file."""

    placeholder = "?"

    def __init__(self, database_path: str = "data/forum_crawler.db", busy_timeout: float = 30.0):
        self.database_path = Path(database_path)
        self.busy_timeout = busy_timeout
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

    def initialize(self) -> None:
        """Create the schema if it does not exist yet."""
        try:
            with self.transaction() as cursor:
                for statement in SQLITE_SCHEMA:
                    cursor.execute(statement)
        except DatabaseError as e:
            raise DatabaseError(
                "Failed to initialize SQLite database",
                {"database_path": str(self.database_path), **e.details}
            )
        logger.info(f"SQLite database ready at {self.database_path}")

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        """
        Cursor on a fresh connection, committed on success.

        Raises:
            DatabaseError: Wraps any sqlite3 error, after rolling back
        """
        conn = None
        try:
            conn = sqlite3.connect(
                str(self.database_path),
                timeout=self.busy_timeout,
                check_same_thread=False
            )
            conn.row_factory = sqlite3.Row
            cursor = conn.cursor()
            yield cursor
            conn.commit()
        except sqlite3.Error as e:
            if conn is not None:
                conn.rollback()
            raise DatabaseError("SQLite operation failed", {"error": str(e)})
        finally:
            if conn is not None:
                conn.close()

    def execute_query(self, query: str, params: Optional[tuple] = None) -> List[sqlite3.Row]:
        """Run a read statement and return all rows."""
        with self.transaction() as cursor:
            cursor.execute(query, params or ())
            return cursor.fetchall()

    def execute_update(self, query: str, params: Optional[tuple] = None) -> int:
        """Run a write statement and return the number of affected rows."""
        with self.transaction() as cursor:
            cursor.execute(query, params or ())
            return cursor.rowcount

    def get_connection_stats(self) -> Dict[str, Any]:
        try:
            count = self.execute_query(f"SELECT COUNT(*) FROM {TABLE_NAME}")[0][0]
            page_count = self.execute_query("PRAGMA page_count")[0][0]
            page_size = self.execute_query("PRAGMA page_size")[0][0]
        except DatabaseError as e:
            return {"status": "error", "error": str(e)}

        return {
            "status": "active",
            "database_path": str(self.database_path),
            "database_size_bytes": page_count * page_size,
            "scraped_threads_count": count
        }

    def health_check(self) -> bool:
        try:
            return bool(self.execute_query("SELECT 1"))
        except DatabaseError as e:
            logger.error(f"SQLite health check failed: {e}")
            return False

    def close(self) -> None:
        # Connections are per operation; nothing is held open
        pass
