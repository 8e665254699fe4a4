"""Centralised settings for the feed crawler backend.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)

_MOBILE_UA = (
    "Mozilla/5.0 (Linux; Android 6.0; Nexus 5 Build/MRA58N) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/136.0.0.0 Mobile Safari/537.36"
)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Upstream feed API
    # ------------------------------------------------------------------
    feed_endpoint: str = field(
        default_factory=lambda: os.environ.get(
            "FEED_ENDPOINT",
            "https://m.naver.com/nvhaproxy_craft/v1/homefeed/mainHomefeed/1/feeds",
        )
    )
    # Only used when a caller does not supply its own session id.
    feed_session_id: str = field(
        default_factory=lambda: os.environ.get("FEED_SESSION_ID", "")
    )
    feed_user_agent: str = field(
        default_factory=lambda: os.environ.get("FEED_USER_AGENT", _MOBILE_UA)
    )
    feed_referer: str = field(
        default_factory=lambda: os.environ.get("FEED_REFERER", "https://m.naver.com/")
    )

    # ------------------------------------------------------------------
    # Page fetcher
    # ------------------------------------------------------------------
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "10.0"))
    )
    fetch_max_attempts: int = field(
        default_factory=lambda: int(os.environ.get("FETCH_MAX_ATTEMPTS", "3"))
    )
    fetch_retry_base_delay: float = field(
        default_factory=lambda: float(os.environ.get("FETCH_RETRY_BASE_DELAY", "1.0"))
    )

    # ------------------------------------------------------------------
    # Crawl loop
    # ------------------------------------------------------------------
    crawl_max_pages: int = field(
        default_factory=lambda: int(os.environ.get("CRAWL_MAX_PAGES", "15"))
    )
    crawl_page_delay: float = field(
        default_factory=lambda: float(os.environ.get("CRAWL_PAGE_DELAY", "1.0"))
    )
    crawl_empty_page_threshold: int = field(
        default_factory=lambda: int(os.environ.get("CRAWL_EMPTY_PAGE_THRESHOLD", "3"))
    )

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------
    stream_poll_interval: float = field(
        default_factory=lambda: float(os.environ.get("STREAM_POLL_INTERVAL", "0.5"))
    )

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------
    log_level: str = field(
        default_factory=lambda: os.environ.get("LOG_LEVEL", "INFO")
    )


def configure_logging(level: str | None = None) -> None:
    """Install a root handler at *level* (defaults to ``settings.log_level``).

    Safe to call more than once; ``basicConfig`` is a no-op when the root
    logger already has handlers.
    """
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# Module-level singleton: import this everywhere:
#   from backend.config import settings
settings = Settings()
