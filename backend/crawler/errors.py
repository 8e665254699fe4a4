"""Exceptions raised by the crawler package."""

from __future__ import annotations


class CrawlerError(Exception):
    """Base class for every crawler failure."""


class PageFetchError(CrawlerError):
    """A page could not be fetched after all retry attempts."""

    def __init__(self, page: int, cause: BaseException) -> None:
        self.page = page
        self.cause = cause
        super().__init__(f"Page {page} request failed: {cause}")


class CrawlAbortedError(CrawlerError):
    """Too many consecutive page failures; the run cannot continue."""

    def __init__(self, failures: int) -> None:
        self.failures = failures
        super().__init__(
            f"Crawl aborted after {failures} consecutive page failures"
        )
