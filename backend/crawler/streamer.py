"""Result streamer: turn one crawl run into wire messages.

The crawl runs in a background task that pushes messages into an
``asyncio.Queue``; the consumer side drains the queue and forwards each
message while watching for downstream disconnection.  A ``None`` sentinel
marks the end of the run.

Message shapes
--------------
Every message is a JSON object ``{"type": ..., "data": ...}``::

    {"type": "progress", "data": {"currentPage": 1, "totalPages": 15, "itemsFound": 0, "status": "running", "message": "..."}}
    {"type": "item",     "data": {"title": "...", "url": "...", "service": "..."}}
    {"type": "complete", "data": {"totalItems": 42, "message": "..."}}
    {"type": "error",    "data": {"message": "..."}}

Exactly one ``complete`` or ``error`` message ends a run, and nothing
follows it.  A run abandoned because the consumer went away ends with no
terminal message.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from backend.config import settings
from backend.crawler.models import CrawlProgress, CrawlStatus
from backend.crawler.orchestrator import CrawlState, FeedCrawler

logger = logging.getLogger(__name__)

DisconnectProbe = Callable[[], Awaitable[bool]]

Message = dict[str, Any]


def make_message(kind: str, data: Any) -> Message:
    return {"type": kind, "data": data}


def format_sse(message: Message) -> str:
    """Encode *message* as a single SSE frame (``data: ...\\n\\n``)."""
    return f"data: {json.dumps(message, ensure_ascii=False)}\n\n"


def format_ndjson(message: Message) -> str:
    """Encode *message* as one newline-terminated JSON line."""
    return json.dumps(message, ensure_ascii=False) + "\n"


@dataclass
class _RunFlags:
    closed: bool = False


async def _produce(
    crawler: FeedCrawler,
    queue: "asyncio.Queue[Message | None]",
    flags: _RunFlags,
) -> None:
    """Run *crawler* to completion, pushing every message into *queue*."""
    put = queue.put_nowait

    async def _should_stop() -> bool:
        return flags.closed

    put(make_message("progress", CrawlProgress(
        current_page=0,
        total_pages=crawler.max_pages,
        items_found=0,
        status=CrawlStatus.RUNNING,
        message="Crawl starting...",
    ).to_dict()))

    total = 0
    try:
        async for batch in crawler.crawl(
            on_progress=lambda p: put(make_message("progress", p.to_dict())),
            should_stop=_should_stop,
        ):
            for item in batch:
                total += 1
                put(make_message("item", item.to_dict()))

        if crawler.state is CrawlState.COMPLETED:
            put(make_message("complete", {
                "totalItems": total,
                "message": f"Collected {total} item(s) (duplicates removed)",
            }))
    except Exception as exc:  # noqa: BLE001
        logger.error("Crawl stream failed: %s", exc)
        put(make_message("error", {
            "message": str(exc) or "An unknown error occurred while crawling.",
        }))
    finally:
        try:
            await crawler.aclose()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to close crawler: %r", exc)
        finally:
            put(None)


async def stream_messages(
    crawler: FeedCrawler,
    is_disconnected: Optional[DisconnectProbe] = None,
    poll_interval: Optional[float] = None,
) -> AsyncIterator[Message]:
    """Yield wire messages for one crawl run.

    *is_disconnected* is polled while waiting for the next message and
    before each send; once it reports ``True`` the crawl task is cancelled
    and the generator ends without raising.  The generator also ends once
    the crawl task has finished and every queued message has been sent.
    """
    poll = settings.stream_poll_interval if poll_interval is None else poll_interval
    queue: asyncio.Queue[Message | None] = asyncio.Queue()
    flags = _RunFlags()
    task = asyncio.create_task(_produce(crawler, queue, flags))

    async def _gone() -> bool:
        if is_disconnected is not None and await is_disconnected():
            logger.info("Client disconnected; stopping crawl stream")
            return True
        return False

    try:
        while True:
            try:
                message = await asyncio.wait_for(queue.get(), timeout=poll)
            except asyncio.TimeoutError:
                # The producer died without posting the sentinel.
                if task.done() and queue.empty():
                    break
                if await _gone():
                    break
                continue
            if message is None or await _gone():
                break
            yield message
    finally:
        flags.closed = True
        if not task.done():
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


async def stream_sse(
    crawler: FeedCrawler,
    is_disconnected: Optional[DisconnectProbe] = None,
) -> AsyncIterator[str]:
    """SSE-framed variant of :func:`stream_messages` for HTTP responses."""
    async with contextlib.aclosing(stream_messages(crawler, is_disconnected)) as messages:
        async for message in messages:
            yield format_sse(message)
