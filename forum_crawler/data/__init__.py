"""
Persistence for relevant threads.
"""

from .models import PersistedRecord
from .repository import ThreadRepository
from .database import DatabaseManager
from .sqlite_database import SQLiteDatabaseManager
from .database_factory import DatabaseFactory

__all__ = [
    'PersistedRecord',
    'ThreadRepository',
    'DatabaseManager',
    'SQLiteDatabaseManager',
    'DatabaseFactory'
]
