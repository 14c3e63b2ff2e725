"""
Custom exception classes and error handling utilities.
"""

from typing import Optional, Dict, Any
import traceback


class ForumCrawlerError(Exception):
    """Base exception for all forum crawler errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class CrawlerError(ForumCrawlerError):
    """Exception raised during crawling operations."""
    pass


class FetchError(CrawlerError):
    """Exception raised when a single URL cannot be fetched (timeout, non-2xx, navigation error)."""
    pass


class SessionError(CrawlerError):
    """Exception raised when a fetch session cannot be created or has died."""
    pass


class ExtractionError(CrawlerError):
    """Exception raised when a selector cannot be evaluated against markup."""
    pass


class DatabaseError(ForumCrawlerError):
    """Exception raised during database operations."""
    pass


class ConfigurationError(ForumCrawlerError):
    """Exception raised for configuration-related issues."""
    pass


class ValidationError(ForumCrawlerError):
    """Exception raised for data validation failures."""
    pass


def handle_error(
    error: Exception,
    logger,
    context: Optional[Dict[str, Any]] = None,
    reraise: bool = True
) -> None:
    """
    Handle and log errors with context information.

    Args:
        error: The exception that occurred
        logger: Logger instance to use for logging
        context: Additional context information
        reraise: Whether to reraise the exception after logging
    """
    error_context = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "traceback": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
        **(context or {})
    }

    if isinstance(error, ForumCrawlerError):
        error_context.update(error.details)

    logger.error("Error occurred: %s", error_context["error_message"], extra={"context": error_context})

    if reraise:
        raise error
