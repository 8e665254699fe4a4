"""FastAPI application factory.

Lifespan
--------
On startup the app installs the root logging handler at
``settings.log_level``.  There is no other shared state: every crawl owns
its own HTTP client for the duration of one request.

Routers
-------
All endpoint groups are mounted under their respective path prefix:

    /crawl   streamed feed crawl (SSE) and single-page fetch
    /health  liveness probe
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.config import configure_logging

from backend.api.routers import crawl as crawl_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Configure logging on startup."""
    configure_logging()
    yield


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="Feed Crawler API",
        description=(
            "Crawls the paginated home-feed API, deduplicates items and "
            "streams progress and results to the caller via Server-Sent Events."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Browser frontends call the stream endpoints cross-origin.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.include_router(crawl_router.router, prefix="/crawl", tags=["crawl"])

    @app.get("/health", tags=["health"])
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


# Module-level instance used by uvicorn:
#   uvicorn backend.api.app:app --reload
app = create_app()
