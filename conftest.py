"""
Shared fixtures and hypothesis profiles for the forum crawler tests.
"""

import logging
import os

import pytest
from hypothesis import Verbosity, settings


settings.register_profile("fast", max_examples=20, deadline=5000, verbosity=Verbosity.quiet)
settings.register_profile("thorough", max_examples=200, deadline=30000, verbosity=Verbosity.normal)
settings.load_profile(os.environ.get("HYPOTHESIS_PROFILE", "fast"))


@pytest.fixture
def temp_db_path(tmp_path):
    """Path of a not-yet-created SQLite file, unique per test."""
    return str(tmp_path / "threads.db")


@pytest.fixture
def sqlite_manager(temp_db_path):
    """Initialized SQLite manager on a temporary file."""
    from forum_crawler.data.sqlite_database import SQLiteDatabaseManager

    manager = SQLiteDatabaseManager(temp_db_path)
    manager.initialize()
    yield manager
    manager.close()


@pytest.fixture
def repository(sqlite_manager):
    from forum_crawler.data.repository import ThreadRepository

    return ThreadRepository(sqlite_manager)


def pytest_configure(config):
    for name in ("forum_crawler", "business", "hypothesis"):
        logging.getLogger(name).setLevel(logging.WARNING)


def pytest_collection_modifyitems(config, items):
    """Tag hypothesis tests as property, integration modules as integration, the rest as unit."""
    for item in items:
        test_function = getattr(item, "obj", None)
        if getattr(test_function, "is_hypothesis_test", False):
            item.add_marker(pytest.mark.property)

        if "integration" in item.path.name:
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)
