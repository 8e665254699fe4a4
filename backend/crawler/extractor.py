"""Item extraction: turns one raw feed page into :class:`FeedItem` objects."""

from __future__ import annotations

import logging
import re
from typing import Any, List, Optional

from backend.crawler.models import FeedItem

logger = logging.getLogger(__name__)

# Only cards with this code carry displayable content; the rest are layout
# and ad fillers.
CONTENT_CARD_CODE = "searchFeed"

# Service label forced onto internal creator (influencer) content.
INFLUENCER_SERVICE = "INFL"

_INFLUENCER_URL = re.compile(r"^https://in\.naver\.com/[^/]+/contents/internal/\d+")


def is_influencer_url(url: str) -> bool:
    """Return ``True`` if *url* points at internal creator content."""
    return _INFLUENCER_URL.match(url) is not None


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _card_to_item(card: Any) -> Optional[FeedItem]:
    """Return the item carried by *card*, or ``None`` if it has none."""
    if not isinstance(card, dict) or card.get("code") != CONTENT_CARD_CODE:
        return None

    contents = card.get("contents")
    if not isinstance(contents, dict):
        return None
    item = contents.get("item")
    bypass = contents.get("byPass")
    if not isinstance(item, dict) or not isinstance(bypass, dict):
        return None

    title = _text(item.get("title"))
    url = _text(item.get("url"))
    # The service label is passed through as the upstream sent it.
    raw_service = bypass.get("service")
    service = "" if raw_service is None else str(raw_service)
    if not title or not url or not service:
        return None

    if is_influencer_url(url):
        service = INFLUENCER_SERVICE

    return FeedItem(title=title, url=url, service=service)


def extract_items(payload: Any) -> List[FeedItem]:
    """Extract feed items from one page payload, preserving upstream order.

    Never raises: cards missing a title, URL or service label are skipped,
    and a payload without a ``cards`` list yields ``[]``.
    """
    cards = payload.get("cards") if isinstance(payload, dict) else None
    if cards is None:
        return []
    if not isinstance(cards, list):
        logger.warning("Response has no usable cards list (got %s)", type(cards).__name__)
        return []

    items: List[FeedItem] = []
    for card in cards:
        feed_item = _card_to_item(card)
        if feed_item is not None:
            items.append(feed_item)
    return items
