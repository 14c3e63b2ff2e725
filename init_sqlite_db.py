#!/usr/bin/env python3
"""
Set up, verify or reset the SQLite database for the forum crawler.
"""

import sys
import argparse
from pathlib import Path

from forum_crawler.data.sqlite_database import SQLiteDatabaseManager
from forum_crawler.data.repository import ThreadRepository
from forum_crawler.utils.errors import DatabaseError
from forum_crawler.utils.logging import setup_logging
from config import get_config


def setup(db_manager: SQLiteDatabaseManager) -> int:
    """Create the database file and the scraped_threads table."""
    print(f"Initializing SQLite database at {db_manager.database_path}...")
    db_manager.initialize()
    return verify(db_manager)


def verify(db_manager: SQLiteDatabaseManager) -> int:
    if not Path(db_manager.database_path).exists():
        print("Database file not found, run 'setup' first")
        return 1

    if not db_manager.health_check():
        print("Database health check failed!")
        return 1

    rows = db_manager.execute_query(
        "SELECT name FROM sqlite_master WHERE type='table' AND name='scraped_threads'"
    )
    if not rows:
        print("Table 'scraped_threads' is missing, run 'setup' first")
        return 1

    print("Database verified: table 'scraped_threads' is present")
    return 0


def status(db_manager: SQLiteDatabaseManager) -> int:
    if verify(db_manager) != 0:
        return 1

    stats = db_manager.get_connection_stats()
    print(f"Database location: {stats['database_path']}")
    print(f"Database size: {stats['database_size_bytes']} bytes")
    print(f"Scraped threads: {stats['scraped_threads_count']} records")

    repository = ThreadRepository(db_manager)
    for record in repository.list_threads(limit=5):
        print(f"  [{record.source_forum}] {record.thread_title[:60]}")
    return 0


def reset(db_manager: SQLiteDatabaseManager) -> int:
    """Drop and recreate the scraped_threads table."""
    print("Dropping table 'scraped_threads'...")
    db_manager.execute_update("DROP TABLE IF EXISTS scraped_threads")
    return setup(db_manager)


def main():
    parser = argparse.ArgumentParser(description="Forum crawler SQLite database management")
    parser.add_argument(
        'action',
        nargs='?',
        default='setup',
        choices=['setup', 'verify', 'status', 'reset'],
        help='Operation to run (default: setup)'
    )
    parser.add_argument('--path', type=str, help='SQLite database path (default: from config)')
    args = parser.parse_args()

    setup_logging(log_level="INFO", log_file="logs/database_init.log", retention_days=7)

    db_path = args.path or get_config().database.sqlite_path
    db_manager = SQLiteDatabaseManager(db_path)

    actions = {'setup': setup, 'verify': verify, 'status': status, 'reset': reset}
    try:
        sys.exit(actions[args.action](db_manager))
    except DatabaseError as e:
        print(f"Database operation failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
