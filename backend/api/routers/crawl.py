"""Feed crawl endpoints with Server-Sent Events (SSE) streaming.

Routes
------
POST /crawl/stream   Body: {"sessionId": "...", "maxPages": 15, "delay": 1000}
GET  /crawl/stream   ?sessionId=...&maxPages=15&delay=1000  (EventSource clients)
POST /crawl/page     Body: {"sessionId": "...", "page": 1, "nextCursor": "...", ...}

The stream endpoints run one crawl and forward every message as an SSE
``data:`` line (see :mod:`backend.crawler.streamer` for the shapes).  The
page endpoint fetches a single page and returns its items together with
the cursor needed for the next call, so a client can paginate by hand.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from backend.config import settings
from backend.crawler.errors import PageFetchError
from backend.crawler.extractor import extract_items
from backend.crawler.fetcher import PageFetcher
from backend.crawler.models import PageInfo
from backend.crawler.orchestrator import FeedCrawler
from backend.crawler.streamer import stream_sse

logger = logging.getLogger(__name__)

router = APIRouter()

_MAX_PAGES_LIMIT = 100
_MAX_DELAY_MS = 60_000


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class CrawlRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Optional at the schema level so a missing id is a 400, not a 422.
    session_id: Optional[str] = Field(None, alias="sessionId")
    max_pages: Optional[int] = Field(None, alias="maxPages", ge=1, le=_MAX_PAGES_LIMIT)
    delay: Optional[float] = Field(None, ge=0, le=_MAX_DELAY_MS)


class PageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(None, alias="sessionId")
    page: int = Field(1, ge=1)
    next_cursor: Optional[str] = Field(None, alias="nextCursor")
    ad_after_cards_count: Optional[int] = Field(None, alias="adAfterCardsCount")
    ad_next_seq: Optional[int] = Field(None, alias="adNextSeq")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _require_session_id(session_id: Optional[str]) -> str:
    session_id = (session_id or "").strip()
    if not session_id:
        raise HTTPException(status_code=400, detail="sessionId is required")
    return session_id


def _build_crawler(
    session_id: str,
    max_pages: Optional[int],
    delay_ms: Optional[float],
) -> FeedCrawler:
    return FeedCrawler(
        PageFetcher(session_id),
        max_pages=max_pages,
        page_delay=None if delay_ms is None else delay_ms / 1000,
    )


def _sse_response(request: Request, crawler: FeedCrawler) -> StreamingResponse:
    return StreamingResponse(
        stream_sse(crawler, request.is_disconnected),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",   # disable nginx proxy buffering
        },
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/stream")
async def crawl_stream(body: CrawlRequest, request: Request) -> StreamingResponse:
    """Crawl the feed and stream progress, items and a terminal event as SSE.

    - ``progress`` before each page and after a page failure.
    - ``item``     once per newly discovered (deduplicated) item.
    - ``complete`` terminal success with ``totalItems``.
    - ``error``    terminal failure with ``message``.
    """
    session_id = _require_session_id(body.session_id)
    logger.info("Starting streamed crawl (maxPages=%s)", body.max_pages)
    return _sse_response(request, _build_crawler(session_id, body.max_pages, body.delay))


@router.get("/stream")
async def crawl_stream_get(
    request: Request,
    session_id: Optional[str] = Query(None, alias="sessionId"),
    max_pages: Optional[int] = Query(None, alias="maxPages", ge=1, le=_MAX_PAGES_LIMIT),
    delay: Optional[float] = Query(None, ge=0, le=_MAX_DELAY_MS),
) -> StreamingResponse:
    """Same as ``POST /crawl/stream``; falls back to the configured session id."""
    session_id = _require_session_id(session_id or settings.feed_session_id)
    return _sse_response(request, _build_crawler(session_id, max_pages, delay))


@router.post("/page")
async def crawl_page(body: PageRequest) -> dict[str, Any]:
    """Fetch and extract a single page of the feed."""
    session_id = _require_session_id(body.session_id)
    cursor = PageInfo(
        next_cursor=body.next_cursor,
        ad_after_cards_count=body.ad_after_cards_count,
        ad_next_seq=body.ad_next_seq,
    )

    async with PageFetcher(session_id) as fetcher:
        try:
            payload = await fetcher.fetch(body.page, cursor)
        except PageFetchError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc

    cards = payload.get("cards") if isinstance(payload, dict) else None
    total_cards = len(cards) if isinstance(cards, list) else 0
    next_page = PageInfo.from_payload(payload)

    return {
        "items": [item.to_dict() for item in extract_items(payload)],
        "totalCards": total_cards,
        "hasMore": total_cards > 0,
        **next_page.to_dict(),
    }
