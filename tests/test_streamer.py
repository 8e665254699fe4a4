"""Tests for backend.crawler.streamer: wire messages for one crawl run."""

from __future__ import annotations

import asyncio
import json
from typing import Any

from backend.crawler.errors import PageFetchError
from backend.crawler.models import PageInfo
from backend.crawler.orchestrator import FeedCrawler
from backend.crawler.streamer import (
    format_ndjson,
    format_sse,
    make_message,
    stream_messages,
    stream_sse,
)

_INFL_URL = "https://in.naver.com/someHandle/contents/internal/12345"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _card(title: str, url: str, service: str) -> dict:
    return {
        "code": "searchFeed",
        "contents": {"item": {"title": title, "url": url}, "byPass": {"service": service}},
    }


class ScriptedFetcher:
    def __init__(self, script: dict[int, Any]) -> None:
        self.script = script
        self.calls: list[int] = []
        self.closed = False

    async def fetch(self, page: int, cursor: PageInfo = PageInfo()) -> Any:
        self.calls.append(page)
        result = self.script.get(page, {"cards": []})
        if isinstance(result, BaseException):
            raise result
        return result

    async def aclose(self) -> None:
        self.closed = True


def _crawler(script: dict[int, Any], max_pages: int = 15) -> tuple[FeedCrawler, ScriptedFetcher]:
    fetcher = ScriptedFetcher(script)
    return FeedCrawler(fetcher, max_pages=max_pages, page_delay=0), fetcher  # type: ignore[arg-type]


def _collect(crawler: FeedCrawler, is_disconnected=None) -> list[dict]:
    async def _go() -> list[dict]:
        return [m async for m in stream_messages(crawler, is_disconnected)]

    return asyncio.run(_go())


def _types(messages: list[dict]) -> list[str]:
    return [m["type"] for m in messages]


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------

class TestEncoding:
    def test_sse_frame(self) -> None:
        frame = format_sse(make_message("item", {"title": "t"}))
        assert frame.startswith("data: ")
        assert frame.endswith("\n\n")
        assert json.loads(frame[len("data: "):]) == {"type": "item", "data": {"title": "t"}}

    def test_ndjson_keeps_non_ascii(self) -> None:
        line = format_ndjson(make_message("item", {"title": "네이버"}))
        assert line.endswith("\n")
        assert "네이버" in line


# ---------------------------------------------------------------------------
# Message sequence
# ---------------------------------------------------------------------------

class TestStreamMessages:
    def test_end_to_end_two_pages(self) -> None:
        """Page 1 has a normal and an influencer card, page 2 is empty."""
        script = {
            1: {"cards": [
                _card("Normal", "https://blog.naver.com/a/1", "BLOG"),
                _card("Creator", _INFL_URL, "BLOG"),
            ]},
            2: {"cards": []},
        }
        crawler, fetcher = _crawler(script, max_pages=2)
        messages = _collect(crawler)

        items = [m["data"] for m in messages if m["type"] == "item"]
        assert items == [
            {"title": "Normal", "url": "https://blog.naver.com/a/1", "service": "BLOG"},
            {"title": "Creator", "url": _INFL_URL, "service": "INFL"},
        ]
        assert messages[-1]["type"] == "complete"
        assert messages[-1]["data"]["totalItems"] == 2
        assert fetcher.closed is True

    def test_starts_with_crawl_starting_progress(self) -> None:
        crawler, _ = _crawler({}, max_pages=1)
        first = _collect(crawler)[0]
        assert first["type"] == "progress"
        assert first["data"]["currentPage"] == 0
        assert first["data"]["status"] == "running"

    def test_items_follow_their_page_progress(self) -> None:
        script = {1: {"cards": [_card("A", "https://x.com/a", "S")]},
                  2: {"cards": [_card("B", "https://x.com/b", "S")]}}
        crawler, _ = _crawler(script, max_pages=2)
        messages = _collect(crawler)

        assert _types(messages) == [
            "progress", "progress", "item", "progress", "item", "progress", "complete",
        ]

    def test_no_duplicate_urls_on_the_wire(self) -> None:
        script = {
            1: {"cards": [_card("A", "https://x.com/a", "S"), _card("B", "https://x.com/b", "S")]},
            2: {"cards": [_card("B", "https://x.com/b", "S"), _card("C", "https://x.com/c", "S")]},
            3: {"cards": [_card("A", "https://x.com/a", "S")]},
        }
        crawler, _ = _crawler(script, max_pages=3)
        urls = [m["data"]["url"] for m in _collect(crawler) if m["type"] == "item"]
        assert urls == ["https://x.com/a", "https://x.com/b", "https://x.com/c"]

    def test_fatal_failure_ends_with_single_error(self) -> None:
        fail = {p: PageFetchError(p, RuntimeError("down")) for p in range(1, 4)}
        crawler, fetcher = _crawler(fail)
        messages = _collect(crawler)

        terminal = [m for m in messages if m["type"] in ("complete", "error")]
        assert len(terminal) == 1
        assert messages[-1]["type"] == "error"
        assert "3 consecutive page failures" in messages[-1]["data"]["message"]
        assert fetcher.closed is True

    def test_single_page_failure_is_not_an_error(self) -> None:
        script = {1: PageFetchError(1, RuntimeError("flaky")),
                  2: {"cards": [_card("A", "https://x.com/a", "S")]}}
        crawler, _ = _crawler(script, max_pages=2)
        messages = _collect(crawler)

        assert "error" not in _types(messages)
        assert messages[-1] == {
            "type": "complete",
            "data": {"totalItems": 1, "message": "Collected 1 item(s) (duplicates removed)"},
        }

    def test_nothing_follows_the_terminal_message(self) -> None:
        crawler, _ = _crawler({1: {"cards": [_card("A", "https://x.com/a", "S")]}}, max_pages=3)
        messages = _collect(crawler)
        terminal_index = next(
            i for i, m in enumerate(messages) if m["type"] in ("complete", "error")
        )
        assert terminal_index == len(messages) - 1


# ---------------------------------------------------------------------------
# Disconnection
# ---------------------------------------------------------------------------

class TestDisconnect:
    def test_disconnect_stops_stream_quietly(self) -> None:
        script = {p: {"cards": [_card(f"T{p}", f"https://x.com/{p}", "S")]} for p in range(1, 16)}
        crawler, fetcher = _crawler(script)
        probes = 0

        async def _is_disconnected() -> bool:
            nonlocal probes
            probes += 1
            return probes > 2

        messages = _collect(crawler, _is_disconnected)

        assert len(messages) == 2
        assert not {"complete", "error"} & set(_types(messages))
        assert len(fetcher.calls) < 15
        assert fetcher.closed is True

    def test_sse_stream_wraps_messages(self) -> None:
        crawler, _ = _crawler({1: {"cards": [_card("A", "https://x.com/a", "S")]}}, max_pages=1)

        async def _go() -> list[str]:
            return [frame async for frame in stream_sse(crawler)]

        frames = asyncio.run(_go())
        assert all(f.startswith("data: ") and f.endswith("\n\n") for f in frames)
        assert json.loads(frames[-1][len("data: "):])["type"] == "complete"


# ---------------------------------------------------------------------------
# Shutdown
# ---------------------------------------------------------------------------

class FailingCloseFetcher(ScriptedFetcher):
    async def aclose(self) -> None:
        raise RuntimeError("close failed")


class TestShutdown:
    def test_close_failure_still_ends_the_stream(self) -> None:
        fetcher = FailingCloseFetcher({1: {"cards": [_card("A", "https://x.com/a", "S")]}})
        crawler = FeedCrawler(fetcher, max_pages=1, page_delay=0)  # type: ignore[arg-type]

        async def _go() -> list[dict]:
            return [m async for m in stream_messages(crawler, poll_interval=0.05)]

        messages = asyncio.run(asyncio.wait_for(_go(), timeout=2))
        assert messages[-1]["type"] == "complete"
        assert messages[-1]["data"]["totalItems"] == 1

    def test_stream_ends_when_producer_exits_without_sentinel(self, monkeypatch) -> None:
        async def _produce(crawler, queue, flags) -> None:
            queue.put_nowait(make_message("progress", {"currentPage": 0}))

        monkeypatch.setattr("backend.crawler.streamer._produce", _produce)
        crawler, _ = _crawler({}, max_pages=1)

        async def _go() -> list[dict]:
            return [m async for m in stream_messages(crawler, poll_interval=0.05)]

        messages = asyncio.run(asyncio.wait_for(_go(), timeout=2))
        assert _types(messages) == ["progress"]
