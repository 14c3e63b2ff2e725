"""
DDL for the scraped_threads table, per SQL dialect.

``thread_url`` is UNIQUE in both dialects; the repository's duplicate
handling depends on it.
"""

SQLITE_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS scraped_threads (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        source_forum TEXT,
        thread_title TEXT,
        thread_url TEXT NOT NULL UNIQUE,
        post_text TEXT,
        discovered_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_scraped_threads_source ON scraped_threads(source_forum)",
    "CREATE INDEX IF NOT EXISTS idx_scraped_threads_discovered ON scraped_threads(discovered_at)",
]

POSTGRES_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS scraped_threads (
        id SERIAL PRIMARY KEY,
        source_forum VARCHAR(255),
        thread_title TEXT,
        thread_url VARCHAR(2048) NOT NULL UNIQUE,
        post_text TEXT,
        discovered_at TIMESTAMPTZ DEFAULT NOW()
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_scraped_threads_source ON scraped_threads(source_forum)",
    "CREATE INDEX IF NOT EXISTS idx_scraped_threads_discovered ON scraped_threads(discovered_at)",
]

TABLE_NAME = "scraped_threads"
