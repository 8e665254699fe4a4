"""Per-run URL deduplication."""

from __future__ import annotations

from typing import Iterable, List

from backend.crawler.models import FeedItem


class Deduplicator:
    """Remember every URL admitted during one crawl run.

    Not shared between runs; create a fresh instance per crawl.
    """

    def __init__(self) -> None:
        self._seen: set[str] = set()

    def __len__(self) -> int:
        return len(self._seen)

    def __contains__(self, url: object) -> bool:
        return url in self._seen

    def admit(self, item: FeedItem) -> bool:
        """Return ``True`` and record *item* if its URL has not been seen."""
        if item.url in self._seen:
            return False
        self._seen.add(item.url)
        return True

    def filter(self, items: Iterable[FeedItem]) -> List[FeedItem]:
        """Return the novel subset of *items*, in order."""
        return [item for item in items if self.admit(item)]
