"""Data models for the feed crawler pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


@dataclass(frozen=True)
class FeedItem:
    """One normalised feed entry.  Identity for deduplication is ``url``."""

    title: str
    url: str
    service: str

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "url": self.url, "service": self.service}


@dataclass(frozen=True)
class PageInfo:
    """Cursor state returned by one page and forwarded verbatim to the next.

    A ``None`` field is omitted from the next request; it is never coerced
    to zero or an empty string.
    """

    next_cursor: Optional[str] = None
    ad_after_cards_count: Optional[int] = None
    ad_next_seq: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: Any) -> PageInfo:
        """Read the ``pageInfo`` block of a raw response, tolerating its absence."""
        info = payload.get("pageInfo") if isinstance(payload, dict) else None
        if not isinstance(info, dict):
            return cls()
        return cls(
            next_cursor=info.get("nextCursor"),
            ad_after_cards_count=info.get("adAfterCardsCount"),
            ad_next_seq=info.get("adNextSeq"),
        )

    def to_params(self) -> dict[str, str]:
        """Query parameters for the next request (present fields only)."""
        params: dict[str, str] = {}
        if self.next_cursor is not None:
            params["nextCursor"] = str(self.next_cursor)
        if self.ad_after_cards_count is not None:
            params["adAfterCardsCount"] = str(self.ad_after_cards_count)
        if self.ad_next_seq is not None:
            params["adNextSeq"] = str(self.ad_next_seq)
        return params

    def to_dict(self) -> dict[str, Any]:
        return {
            "nextCursor": self.next_cursor,
            "adAfterCardsCount": self.ad_after_cards_count,
            "adNextSeq": self.ad_next_seq,
        }


class CrawlStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class CrawlProgress:
    """A point-in-time snapshot of a crawl run."""

    current_page: int
    total_pages: int
    items_found: int
    status: CrawlStatus
    message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "itemsFound": self.items_found,
            "status": self.status.value,
        }
        if self.message is not None:
            data["message"] = self.message
        return data
