"""
Forum keyword crawler.

Crawls paginated forum listings with a bounded pool of workers, fans out
to thread pages under a concurrency window, keeps threads whose post text
mentions a configured keyword and stores them once per thread URL.
"""

__version__ = "1.0.0"
