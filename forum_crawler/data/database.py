"""
PostgreSQL store for scraped threads, backed by a psycopg2 connection pool.
"""

import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

import psycopg2
from psycopg2 import pool

from config import DatabaseConfig
from forum_crawler.data.schema import POSTGRES_SCHEMA, TABLE_NAME
from forum_crawler.utils.errors import DatabaseError
from forum_crawler.utils.logging import get_business_logger


logger = get_business_logger("database")


class DatabaseManager:
    """
    Pooled PostgreSQL access shared by all worker threads.

    ``ThreadedConnectionPool`` hands each thread its own connection; the
    pool is sized by ``DatabaseConfig.pool_size``.
    """

    placeholder = "%s"
    connection_wait_timeout = 30.0

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._pool: Optional[pool.ThreadedConnectionPool] = None
        self._slots = threading.BoundedSemaphore(config.pool_size)

    def initialize(self) -> None:
        """Open the pool and create the schema."""
        try:
            self._pool = pool.ThreadedConnectionPool(
                minconn=1,
                maxconn=self.config.pool_size,
                host=self.config.host,
                port=self.config.port,
                database=self.config.database,
                user=self.config.username,
                password=self.config.password
            )
        except psycopg2.Error as e:
            raise DatabaseError(
                "Failed to connect to PostgreSQL",
                {"host": self.config.host, "database": self.config.database, "error": str(e)}
            )

        try:
            with self.transaction() as cursor:
                for statement in POSTGRES_SCHEMA:
                    cursor.execute(statement)
        except DatabaseError as e:
            raise DatabaseError("Failed to create PostgreSQL schema", e.details)

        logger.info(f"PostgreSQL pool ready ({self.config.host}/{self.config.database})")

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """
        Cursor on a pooled connection, committed on success.

        ``ThreadedConnectionPool`` raises instead of waiting when every
        connection is out, so callers queue on ``_slots`` first.

        Raises:
            DatabaseError: Pool not initialized, no connection freed up
                within ``connection_wait_timeout``, or any psycopg2 error
        """
        if self._pool is None:
            raise DatabaseError("PostgreSQL pool not initialized")

        if not self._slots.acquire(timeout=self.connection_wait_timeout):
            raise DatabaseError(
                "Timed out waiting for a PostgreSQL connection",
                {"pool_size": self.config.pool_size, "timeout": self.connection_wait_timeout}
            )
        try:
            try:
                conn = self._pool.getconn()
            except pool.PoolError as e:
                raise DatabaseError(
                    "PostgreSQL connection pool exhausted",
                    {"pool_size": self.config.pool_size, "error": str(e)}
                ) from e

            try:
                with conn.cursor() as cursor:
                    yield cursor
                conn.commit()
            except psycopg2.Error as e:
                conn.rollback()
                raise DatabaseError("PostgreSQL operation failed", {"error": str(e)})
            except Exception:
                conn.rollback()
                raise
            finally:
                self._pool.putconn(conn)
        finally:
            self._slots.release()

    def execute_query(self, query: str, params: Optional[tuple] = None) -> List[tuple]:
        with self.transaction() as cursor:
            cursor.execute(query, params)
            return cursor.fetchall()

    def execute_update(self, query: str, params: Optional[tuple] = None) -> int:
        with self.transaction() as cursor:
            cursor.execute(query, params)
            return cursor.rowcount

    def get_connection_stats(self) -> Dict[str, Any]:
        if self._pool is None:
            return {"status": "not_initialized"}

        stats: Dict[str, Any] = {
            "status": "active",
            "host": self.config.host,
            "database": self.config.database,
            "maxconn": self._pool.maxconn,
        }
        try:
            stats["scraped_threads_count"] = self.execute_query(f"SELECT COUNT(*) FROM {TABLE_NAME}")[0][0]
        except DatabaseError as e:
            stats.update(status="error", error=str(e))
        return stats

    def health_check(self) -> bool:
        try:
            return bool(self.execute_query("SELECT 1"))
        except DatabaseError as e:
            logger.error(f"PostgreSQL health check failed: {e}")
            return False

    def close(self) -> None:
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None
            logger.info("PostgreSQL pool closed")
