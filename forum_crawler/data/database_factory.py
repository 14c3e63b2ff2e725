"""
Picks the store implementation named by the configuration.
"""

from typing import Union

from config import DatabaseConfig
from forum_crawler.data.database import DatabaseManager
from forum_crawler.data.sqlite_database import SQLiteDatabaseManager
from forum_crawler.utils.errors import DatabaseError


StoreManager = Union[DatabaseManager, SQLiteDatabaseManager]

SUPPORTED_DB_TYPES = ("sqlite", "postgresql")


class DatabaseFactory:

    @staticmethod
    def create_database_manager(config: DatabaseConfig) -> StoreManager:
        """
        Build an uninitialized manager for ``config.db_type``.

        Raises:
            DatabaseError: Unknown database type
        """
        db_type = config.db_type.lower()
        if db_type == "sqlite":
            return SQLiteDatabaseManager(config.sqlite_path)
        if db_type == "postgresql":
            return DatabaseManager(config)
        raise DatabaseError(
            f"Unsupported database type: {config.db_type}",
            {"supported_types": list(SUPPORTED_DB_TYPES)}
        )
