"""Async page fetcher for the upstream home-feed API.

One call to :meth:`PageFetcher.fetch` issues one GET for one logical page,
retrying transient failures with exponential backoff.  Once every attempt
has failed a :class:`~backend.crawler.errors.PageFetchError` is raised; the
orchestrator decides whether that ends the run.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from backend.config import settings
from backend.crawler.errors import PageFetchError
from backend.crawler.models import PageInfo

logger = logging.getLogger(__name__)


def _browser_headers() -> dict[str, str]:
    """Headers the upstream expects from a real mobile browser."""
    return {
        "User-Agent": settings.feed_user_agent,
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "ko-KR,ko;q=0.9,en;q=0.8",
        "Referer": settings.feed_referer,
    }


def mask_session_id(session_id: str) -> str:
    """Return a log-safe form of *session_id*."""
    if len(session_id) <= 4:
        return "***"
    return f"{session_id[:4]}***"


class PageFetcher:
    """Fetch raw feed pages for a fixed session id and endpoint.

    Owns its ``httpx.AsyncClient`` unless one is injected, in which case the
    caller is responsible for closing it.
    """

    def __init__(
        self,
        session_id: str,
        *,
        endpoint: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
    ) -> None:
        if not session_id:
            raise ValueError("session_id must be a non-empty string")
        self._session_id = session_id
        self._endpoint = endpoint or settings.feed_endpoint
        self._timeout = settings.request_timeout if timeout is None else timeout
        self._max_attempts = max(
            1, settings.fetch_max_attempts if max_attempts is None else max_attempts
        )
        self._base_delay = (
            settings.fetch_retry_base_delay if base_delay is None else base_delay
        )
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers=_browser_headers(),
            timeout=self._timeout,
            follow_redirects=True,
        )

    async def __aenter__(self) -> PageFetcher:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _params(self, page: int, cursor: PageInfo) -> dict[str, str]:
        params = {"sessionId": self._session_id, "page": str(page)}
        params.update(cursor.to_params())
        return params

    async def _request(self, page: int, cursor: PageInfo) -> Any:
        response = await asyncio.wait_for(
            self._client.get(
                self._endpoint,
                params=self._params(page, cursor),
                headers=_browser_headers(),
            ),
            timeout=self._timeout,
        )
        response.raise_for_status()
        return response.json()

    async def fetch(self, page: int, cursor: PageInfo = PageInfo()) -> Any:
        """Return the decoded JSON body for *page*.

        Raises:
            PageFetchError: If every attempt fails (network error, timeout,
                non-2xx status, or a body that is not JSON).
        """
        if page < 1:
            raise ValueError(f"page must be >= 1, got {page}")

        logger.debug(
            "GET %s page=%d session=%s cursor=%s",
            self._endpoint, page, mask_session_id(self._session_id), cursor.to_params(),
        )

        attempt = 0
        while True:
            try:
                return await self._request(page, cursor)
            except (httpx.HTTPError, asyncio.TimeoutError, ValueError) as exc:
                attempt += 1
                logger.warning(
                    "Page %d request failed (attempt %d/%d): %r",
                    page, attempt, self._max_attempts, exc,
                )
                if attempt >= self._max_attempts:
                    raise PageFetchError(page, exc) from exc
                delay = self._base_delay * (2 ** (attempt - 1))
                logger.info("Retrying page %d in %.1fs", page, delay)
                await asyncio.sleep(delay)
