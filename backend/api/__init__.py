"""FastAPI HTTP layer for the feed crawler.

Public re-export so callers can write::

    from backend.api import app

    uvicorn backend.api:app
"""

from backend.api.app import app

__all__ = ["app"]
