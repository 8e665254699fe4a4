"""Feed crawler CLI: entry-point for running crawls from a terminal.

Usage:
    python cli/main.py --help

Commands:
    crawl   → run a full crawl and print items as they are discovered
    page    → fetch a single feed page and print its items and cursor
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from backend.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import asyncio
import json
from typing import Optional

import typer

from backend.config import configure_logging, settings
from backend.crawler import FeedCrawler, PageFetcher, PageFetchError, PageInfo, extract_items
from backend.crawler.streamer import Message, format_ndjson, stream_messages

app = typer.Typer(
    name="feedcrawl",
    help="Home-feed crawler CLI.",
    no_args_is_help=True,
)


@app.callback()
def main(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level (defaults to LOG_LEVEL or INFO)."
    ),
) -> None:
    """Home-feed crawler CLI."""
    configure_logging(log_level)


def _resolve_session_id(session_id: Optional[str]) -> str:
    resolved = (session_id or settings.feed_session_id).strip()
    if not resolved:
        typer.echo("Error: --session-id is required (or set FEED_SESSION_ID).", err=True)
        raise typer.Exit(2)
    return resolved


def _echo_human(message: Message) -> None:
    kind = message["type"]
    data = message["data"]
    if kind == "progress":
        typer.echo(
            f"[crawl] page {data['currentPage']}/{data['totalPages']}  "
            f"items={data['itemsFound']}  {data.get('message', '')}"
        )
    elif kind == "item":
        typer.echo(f"  [{data['service']}] {data['title']}")
        typer.echo(f"      {data['url']}")
    elif kind == "complete":
        typer.echo(f"[crawl] Done. {data['message']}")
    elif kind == "error":
        typer.echo(f"[crawl] Failed: {data['message']}", err=True)


async def _run_crawl(crawler: FeedCrawler, as_json: bool) -> bool:
    """Print every message of one run; return ``False`` if it ended in error."""
    ok = True
    async for message in stream_messages(crawler):
        if message["type"] == "error":
            ok = False
        if as_json:
            typer.echo(format_ndjson(message), nl=False)
        else:
            _echo_human(message)
    return ok


# ---------------------------------------------------------------------------
# Crawl command
# ---------------------------------------------------------------------------
@app.command("crawl")
def crawl(
    session_id: Optional[str] = typer.Option(
        None, "--session-id", help="Upstream session id (defaults to FEED_SESSION_ID)."
    ),
    max_pages: Optional[int] = typer.Option(
        None, "--max-pages", min=1, help="Page ceiling (defaults to CRAWL_MAX_PAGES)."
    ),
    delay: Optional[float] = typer.Option(
        None, "--delay", min=0, help="Delay between pages in milliseconds."
    ),
    as_json: bool = typer.Option(
        False, "--json", help="Print raw wire messages as NDJSON."
    ),
) -> None:
    """Crawl the feed and print each new item as it is discovered."""
    crawler = FeedCrawler(
        PageFetcher(_resolve_session_id(session_id)),
        max_pages=max_pages,
        page_delay=None if delay is None else delay / 1000,
    )
    if not asyncio.run(_run_crawl(crawler, as_json)):
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Single-page command
# ---------------------------------------------------------------------------
async def _fetch_one(session_id: str, page: int, cursor: PageInfo) -> dict:
    async with PageFetcher(session_id) as fetcher:
        payload = await fetcher.fetch(page, cursor)
    return {
        "items": [item.to_dict() for item in extract_items(payload)],
        **PageInfo.from_payload(payload).to_dict(),
    }


@app.command("page")
def page(
    session_id: Optional[str] = typer.Option(
        None, "--session-id", help="Upstream session id (defaults to FEED_SESSION_ID)."
    ),
    page_number: int = typer.Option(1, "--page", min=1, help="Page number to fetch."),
    next_cursor: Optional[str] = typer.Option(None, "--next-cursor"),
    ad_after_cards_count: Optional[int] = typer.Option(None, "--ad-after-cards-count"),
    ad_next_seq: Optional[int] = typer.Option(None, "--ad-next-seq"),
) -> None:
    """Fetch one page and print its items plus the cursor for the next page."""
    cursor = PageInfo(
        next_cursor=next_cursor,
        ad_after_cards_count=ad_after_cards_count,
        ad_next_seq=ad_next_seq,
    )
    try:
        result = asyncio.run(_fetch_one(_resolve_session_id(session_id), page_number, cursor))
    except PageFetchError as exc:
        typer.echo(f"[page] {exc}", err=True)
        raise typer.Exit(1)

    typer.echo(json.dumps(result, ensure_ascii=False, indent=2))


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
