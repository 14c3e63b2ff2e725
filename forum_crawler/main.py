"""
Command-line entry point for the forum keyword crawler.
"""

import sys
import argparse
from typing import Callable, List, Optional

from forum_crawler.concurrent.cancellation import CancellationToken, InterruptHandler
from forum_crawler.concurrent.controller import ConcurrentCrawlerController
from forum_crawler.concurrent.monitoring import ConsoleDashboard, LogDashboard, format_summary
from forum_crawler.crawlers import default_registry
from forum_crawler.crawlers.base import FetchSession
from forum_crawler.data.database_factory import DatabaseFactory
from forum_crawler.data.repository import ThreadRepository
from forum_crawler.utils.errors import ConfigurationError, DatabaseError, ValidationError
from forum_crawler.utils.logging import (
    get_logger,
    get_structured_logger,
    log_business_operation,
    quiet_console_handlers,
    restore_console_handlers,
    setup_logging
)
from config import ConfigManager, SystemConfig, load_targets


logger = get_logger(__name__)

EXIT_OK = 0
EXIT_STARTUP_ERROR = 1
EXIT_WORKER_ERRORS = 2


def create_cli_parser() -> argparse.ArgumentParser:
    """Create command-line interface parser."""
    parser = argparse.ArgumentParser(
        description='Forum Crawler - concurrent keyword search across forum threads',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              # Crawl every target in targets.json
  %(prog)s --targets forums.json        # Use another targets file
  %(prog)s --workers 1                  # Single-threaded run
  %(prog)s --backend http --no-dashboard
  %(prog)s --init-db                    # Create the database schema and exit
  %(prog)s --db-status                  # Show stored thread counts and exit
        """
    )

    parser.add_argument(
        '--config', '-c',
        type=str,
        default='config.json',
        help='Path to configuration file (default: config.json)'
    )

    parser.add_argument(
        '--targets', '-t',
        type=str,
        help='Path to targets file (default: from config, targets.json)'
    )

    parser.add_argument(
        '--workers', '-w',
        type=int,
        help='Number of concurrent workers (default: 4)'
    )

    parser.add_argument(
        '--fanout',
        type=int,
        help='Thread pages fetched concurrently per worker (default: 3)'
    )

    parser.add_argument(
        '--max-pages',
        type=int,
        help='Stop each target after this many listing pages (0 = no limit)'
    )

    parser.add_argument(
        '--backend',
        type=str,
        choices=['playwright', 'http'],
        help='Fetch backend (default: playwright)'
    )

    parser.add_argument(
        '--no-dashboard',
        action='store_true',
        help='Log progress instead of drawing the live dashboard'
    )

    # Database operations
    operation_group = parser.add_mutually_exclusive_group()

    operation_group.add_argument(
        '--init-db',
        action='store_true',
        help='Create the database schema and exit'
    )

    operation_group.add_argument(
        '--db-status',
        action='store_true',
        help='Show stored thread counts and exit'
    )

    # Logging options
    parser.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Override log level from configuration'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output (equivalent to --log-level DEBUG)'
    )

    return parser


def apply_cli_overrides(config: SystemConfig, args: argparse.Namespace) -> SystemConfig:
    """Apply command-line options on top of the loaded configuration."""
    if args.targets:
        config.targets_file = args.targets
    if args.workers is not None:
        config.concurrency.max_workers = args.workers
    if args.fanout is not None:
        config.concurrency.fanout_limit = args.fanout
    if args.max_pages is not None:
        config.concurrency.max_pages = args.max_pages
    if args.backend:
        config.crawler.backend = args.backend
    if args.no_dashboard:
        config.dashboard.enabled = False

    if args.verbose:
        config.log_level = 'DEBUG'
    elif args.log_level:
        config.log_level = args.log_level

    return config


@log_business_operation('database', 'initialize_database')
def initialize_repository(config: SystemConfig) -> ThreadRepository:
    """Create the store, its schema, and the repository on top of it."""
    db_manager = DatabaseFactory.create_database_manager(config.database)
    db_manager.initialize()
    return ThreadRepository(db_manager)


def build_session_factory(config: SystemConfig) -> Callable[[], FetchSession]:
    backend = config.crawler.backend
    options = config.crawler.session_options()

    if backend not in default_registry:
        raise ConfigurationError(f"Unknown fetch backend: {backend}")

    def create_session() -> FetchSession:
        return default_registry.create_session(backend, options)

    return create_session


def show_db_status(repository: ThreadRepository) -> None:
    stats = repository.db_manager.get_connection_stats()
    print(f"Database: {stats}")
    print(f"Stored threads: {repository.count_threads()}")
    for record in repository.list_threads(limit=10):
        print(f"  [{record.source_forum}] {record.thread_title[:60]} - {record.thread_url}")


def run_crawl(config: SystemConfig, repository: ThreadRepository) -> int:
    targets = load_targets(config.targets_file)
    concurrent_config = config.to_concurrent_config()
    session_factory = build_session_factory(config)

    token = CancellationToken()
    if config.dashboard.enabled:
        dashboard = ConsoleDashboard(use_color=config.dashboard.use_color)
    else:
        dashboard = LogDashboard()

    def on_first_interrupt() -> None:
        dashboard.shutting_down = True

    controller = ConcurrentCrawlerController(
        concurrent_config,
        repository,
        session_factory,
        token=token,
        dashboard=dashboard
    )

    print(f"--> Starting up: {len(targets)} targets, {concurrent_config.max_workers} workers")

    quieted = quiet_console_handlers() if config.dashboard.enabled else {}
    try:
        with InterruptHandler(token, on_first=on_first_interrupt):
            result = controller.run(targets)
    finally:
        restore_console_handlers(quieted)

    print(format_summary(result))
    print("\n--> All targets have been processed. Main process finished.")

    get_structured_logger(__name__).info(
        "crawl_finished",
        targets=result.total_targets,
        completed=result.completed_targets,
        relevant=result.total_relevant_found,
        interrupted=result.interrupted,
        store=repository.get_stats()
    )

    return EXIT_WORKER_ERRORS if result.has_errors() else EXIT_OK


def run(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run the requested operation and return the exit code."""
    parser = create_cli_parser()
    args = parser.parse_args(argv)

    repository = None
    try:
        config = apply_cli_overrides(ConfigManager(args.config).load_config(), args)
        setup_logging(config.log_level, config.log_file, config.log_retention_days)

        repository = initialize_repository(config)

        if args.init_db:
            print(f"Database initialized: {repository.db_manager.get_connection_stats()}")
            return EXIT_OK

        if args.db_status:
            show_db_status(repository)
            return EXIT_OK

        return run_crawl(config, repository)

    except (ConfigurationError, ValidationError, DatabaseError) as e:
        logger.error(f"Startup failed: {e}")
        print(f"\n--- MAIN PROCESS FAILED --- {e}", file=sys.stderr)
        return EXIT_STARTUP_ERROR
    finally:
        if repository is not None:
            repository.close()


def main():
    """Main entry point with command-line interface."""
    sys.exit(run())


if __name__ == "__main__":
    main()
