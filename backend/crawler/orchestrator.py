"""Crawl orchestration: drive the page loop for one crawl run.

``FeedCrawler.crawl`` is an async generator.  Each iteration fetches one
page, extracts its items, drops URLs already seen in this run, and yields
the novel batch (empty batches are not yielded).  Progress snapshots are
pushed to an optional callback as the run advances.

Stop conditions
---------------
- The page ceiling (``max_pages``) is reached.
- ``empty_page_threshold`` consecutive pages extract zero items.  This is
  the normal end of the feed and completes the run.
- ``empty_page_threshold`` consecutive pages fail to fetch.  The run fails
  with :class:`~backend.crawler.errors.CrawlAbortedError`.
- The ``should_stop`` probe returns ``True`` (consumer went away).  The run
  ends quietly with no terminal snapshot.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from backend.config import settings
from backend.crawler.dedup import Deduplicator
from backend.crawler.errors import CrawlAbortedError, PageFetchError
from backend.crawler.extractor import extract_items
from backend.crawler.fetcher import PageFetcher
from backend.crawler.models import CrawlProgress, CrawlStatus, FeedItem, PageInfo

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[CrawlProgress], None]
StopProbe = Callable[[], Awaitable[bool]]


class CrawlState(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class FeedCrawler:
    """Sequential crawler for one run.  Not restartable; build a new one per run."""

    def __init__(
        self,
        fetcher: PageFetcher,
        *,
        max_pages: Optional[int] = None,
        page_delay: Optional[float] = None,
        empty_page_threshold: Optional[int] = None,
    ) -> None:
        self._fetcher = fetcher
        self.max_pages = settings.crawl_max_pages if max_pages is None else max_pages
        self.page_delay = settings.crawl_page_delay if page_delay is None else page_delay
        self.empty_page_threshold = (
            settings.crawl_empty_page_threshold
            if empty_page_threshold is None
            else empty_page_threshold
        )
        if self.max_pages < 1:
            raise ValueError("max_pages must be >= 1")
        if self.empty_page_threshold < 1:
            raise ValueError("empty_page_threshold must be >= 1")

        self.state = CrawlState.NOT_STARTED
        self._dedup = Deduplicator()
        self._current_page = 0

    @property
    def items_found(self) -> int:
        """Distinct items yielded so far."""
        return len(self._dedup)

    async def aclose(self) -> None:
        await self._fetcher.aclose()

    def _snapshot(self, status: CrawlStatus, message: str) -> CrawlProgress:
        return CrawlProgress(
            current_page=self._current_page,
            total_pages=self.max_pages,
            items_found=self.items_found,
            status=status,
            message=message,
        )

    async def crawl(
        self,
        on_progress: Optional[ProgressCallback] = None,
        should_stop: Optional[StopProbe] = None,
    ) -> AsyncIterator[List[FeedItem]]:
        """Yield batches of novel items, page by page.

        Raises:
            CrawlAbortedError: Consecutive page failures reached the threshold.
            RuntimeError: The crawler has already been run.
        """
        if self.state is not CrawlState.NOT_STARTED:
            raise RuntimeError(f"Crawler cannot be restarted (state={self.state.value})")
        self.state = CrawlState.RUNNING

        def _emit(progress: CrawlProgress) -> None:
            if on_progress is not None:
                on_progress(progress)

        cursor = PageInfo()
        empty_pages = 0
        failed_pages = 0

        try:
            for page in range(1, self.max_pages + 1):
                if should_stop is not None and await should_stop():
                    logger.info("Crawl stopped by consumer before page %d", page)
                    self.state = CrawlState.CANCELLED
                    return

                self._current_page = page
                _emit(self._snapshot(CrawlStatus.RUNNING, f"Processing page {page}..."))

                try:
                    payload = await self._fetcher.fetch(page, cursor)
                except PageFetchError as exc:
                    failed_pages += 1
                    logger.warning("Page %d failed: %s", page, exc)
                    _emit(self._snapshot(
                        CrawlStatus.RUNNING,
                        f"Page {page} failed, moving on to the next page...",
                    ))
                    if failed_pages >= self.empty_page_threshold:
                        raise CrawlAbortedError(failed_pages) from exc
                else:
                    failed_pages = 0
                    cursor = PageInfo.from_payload(payload)
                    page_items = extract_items(payload)

                    if not page_items:
                        empty_pages += 1
                        logger.info("Page %d: no items (%d in a row)", page, empty_pages)
                        if empty_pages >= self.empty_page_threshold:
                            logger.info(
                                "Stopping after %d consecutive empty pages", empty_pages
                            )
                            break
                    else:
                        empty_pages = 0

                    novel = self._dedup.filter(page_items)
                    if novel:
                        logger.info("Page %d: %d new item(s)", page, len(novel))
                        yield novel

                if page < self.max_pages:
                    await asyncio.sleep(self.page_delay)

        except (GeneratorExit, asyncio.CancelledError):
            self.state = CrawlState.CANCELLED
            raise
        except Exception as exc:
            self.state = CrawlState.FAILED
            logger.error("Crawl failed on page %d: %s", self._current_page, exc)
            _emit(self._snapshot(CrawlStatus.ERROR, str(exc) or type(exc).__name__))
            raise

        self.state = CrawlState.COMPLETED
        _emit(self._snapshot(
            CrawlStatus.COMPLETED,
            f"Crawl complete: {self.items_found} item(s) collected",
        ))
