"""Crawler package: home-feed page fetch, extraction, dedup and streaming."""

from backend.crawler.dedup import Deduplicator
from backend.crawler.errors import CrawlAbortedError, CrawlerError, PageFetchError
from backend.crawler.extractor import extract_items
from backend.crawler.fetcher import PageFetcher
from backend.crawler.models import CrawlProgress, CrawlStatus, FeedItem, PageInfo
from backend.crawler.orchestrator import CrawlState, FeedCrawler

__all__ = [
    "PageFetcher",
    "extract_items",
    "Deduplicator",
    "FeedCrawler",
    "CrawlState",
    "FeedItem",
    "PageInfo",
    "CrawlProgress",
    "CrawlStatus",
    "CrawlerError",
    "PageFetchError",
    "CrawlAbortedError",
]
