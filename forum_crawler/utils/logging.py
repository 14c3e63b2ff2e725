"""
Logging for the crawler.

Root logging goes to the console and, optionally, to a daily-rotated file.
Each business area (dispatcher, repository, fetch backends, ...) also gets
its own file under ``logs/``. Expired files are purged by a background
``schedule`` job or on demand through ``manage_logs.py``.
"""

import functools
import logging
import logging.handlers
import sys
import threading
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import schedule
import structlog


PROJECT_ROOT = Path(__file__).parent.parent.parent
LOGS_DIR = PROJECT_ROOT / "logs"

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - %(message)s"

# Business areas whose file name differs from the area name
BUSINESS_LOG_FILES = {
    "crawler_general": "crawler.log",
}

_cleanup_scheduler_started = False
_cleanup_lock = threading.Lock()


def _daily_file_handler(path: Path, retention_days: int, delay: bool = False) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.handlers.TimedRotatingFileHandler(
        path,
        when="midnight",
        backupCount=retention_days,
        encoding="utf-8",
        delay=delay
    )
    handler.suffix = "%Y-%m-%d"
    handler.setFormatter(logging.Formatter(FILE_FORMAT))
    return handler


def _console_handler(level: int = logging.NOTSET) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    retention_days: int = 7
) -> None:
    """
    Configure root logging and structlog.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_file: Optional path of the main log file (rotated at midnight)
        retention_days: Rotated files and business logs older than this are removed
    """
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper()))
    root.handlers.clear()
    root.addHandler(_console_handler())

    if log_file:
        log_path = Path(log_file)
        root.addHandler(_daily_file_handler(log_path, retention_days))
        _start_log_cleanup_scheduler(log_path.parent, retention_days)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_structured_logger(name: str):
    """structlog logger for key/value events such as the end-of-run record."""
    return structlog.get_logger(name)


def get_business_logger(business_name: str, log_level: str = "INFO") -> logging.Logger:
    """
    Logger writing to ``logs/<business_name>.log``; ERROR and above also reach the console.

    The file is only created once something is logged.
    """
    logger = logging.getLogger(f"business.{business_name}")
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, log_level.upper()))
    file_name = BUSINESS_LOG_FILES.get(business_name, f"{business_name}.log")
    logger.addHandler(_daily_file_handler(LOGS_DIR / file_name, retention_days=7, delay=True))
    logger.addHandler(_console_handler(logging.ERROR))
    return logger


def quiet_console_handlers(level: int = logging.ERROR) -> Dict[logging.Handler, int]:
    """
    Raise every console handler to ``level`` while the dashboard owns the terminal.

    Returns:
        Previous handler levels, for restore_console_handlers
    """
    previous: Dict[logging.Handler, int] = {}
    loggers = [logging.getLogger()] + [
        logging.getLogger(name) for name in list(logging.root.manager.loggerDict)
    ]
    for logger in loggers:
        for handler in getattr(logger, "handlers", []):
            # StreamHandler subclasses (files, pytest capture) are left alone
            if type(handler) is logging.StreamHandler and handler not in previous:
                previous[handler] = handler.level
                handler.setLevel(max(handler.level, level))
    return previous


def restore_console_handlers(previous: Dict[logging.Handler, int]) -> None:
    for handler, level in previous.items():
        handler.setLevel(level)


def _start_log_cleanup_scheduler(logs_dir: Path, retention_days: int) -> None:
    global _cleanup_scheduler_started

    with _cleanup_lock:
        if _cleanup_scheduler_started:
            return
        _cleanup_scheduler_started = True

    def cleanup_job():
        try:
            cleanup_old_logs(logs_dir, retention_days)
        except OSError as e:
            logging.getLogger(__name__).warning(f"Log cleanup failed: {e}")

    schedule.every().day.at("02:00").do(cleanup_job)

    def run_pending_forever():
        while True:
            schedule.run_pending()
            time.sleep(60)

    threading.Thread(target=run_pending_forever, name="LogCleanup", daemon=True).start()


def _log_files(logs_dir: Path) -> Iterator[Path]:
    if not logs_dir.exists():
        return
    for path in sorted(logs_dir.glob("*.log*")):
        if path.is_file():
            yield path


def cleanup_old_logs(logs_dir: Optional[Path] = None, retention_days: int = 7) -> int:
    """
    Delete log files not modified within ``retention_days``.

    Returns:
        Number of files removed
    """
    logs_dir = logs_dir or LOGS_DIR
    cutoff = datetime.now() - timedelta(days=retention_days)

    removed = 0
    for path in _log_files(logs_dir):
        if datetime.fromtimestamp(path.stat().st_mtime) < cutoff:
            path.unlink()
            removed += 1

    if removed:
        logging.getLogger(__name__).info(f"Removed {removed} expired log files from {logs_dir}")
    return removed


def get_log_statistics(logs_dir: Optional[Path] = None) -> Dict[str, Any]:
    """File count, total size, oldest/newest file and per-business breakdown."""
    logs_dir = logs_dir or LOGS_DIR
    stats: Dict[str, Any] = {
        "total_files": 0,
        "total_size_mb": 0.0,
        "files_by_business": {},
        "oldest_log": None,
        "newest_log": None
    }

    dated = []
    for path in _log_files(logs_dir):
        info = path.stat()
        size_mb = info.st_size / (1024 * 1024)
        dated.append((info.st_mtime, path.name))

        stats["total_files"] += 1
        stats["total_size_mb"] += size_mb

        business = path.name.split(".log")[0]
        entry = stats["files_by_business"].setdefault(business, {"count": 0, "size_mb": 0.0})
        entry["count"] += 1
        entry["size_mb"] += size_mb

    if dated:
        dated.sort()
        stats["oldest_log"] = dated[0][1]
        stats["newest_log"] = dated[-1][1]
    stats["total_size_mb"] = round(stats["total_size_mb"], 2)
    return stats


def log_business_operation(business_name: str, operation_name: Optional[str] = None):
    """Decorator logging start, duration and failure of an operation to a business log."""
    def decorator(func):
        op_name = operation_name or func.__name__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_business_logger(business_name)
            logger.info(f"Starting {op_name}")
            started = time.time()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(f"{op_name} failed after {time.time() - started:.2f}s: {e}")
                raise
            logger.info(f"Finished {op_name} in {time.time() - started:.2f}s")
            return result

        return wrapper
    return decorator
