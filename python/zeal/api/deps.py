"""FastAPI dependencies for route handlers.

Database sessions, the storage client, and per-user rate limits.
"""

from typing import Annotated

from fastapi import Depends, Request

from zeal.auth.middleware import Viewer, get_viewer
from zeal.config import get_settings
from zeal.db.session import get_db, get_session_factory
from zeal.services.rate_limit import RateLimiter
from zeal.services.rate_limit import get_rate_limiter as get_global_rate_limiter
from zeal.storage import StorageClientBase, get_storage_client

__all__ = [
    "get_db",
    "get_session_factory",
    "get_storage",
    "get_rate_limiter",
    "limit_uploads",
    "limit_comments",
]


def get_storage(request: Request) -> StorageClientBase:
    """The storage client set on app state, or the process-wide default."""
    storage = getattr(request.app.state, "storage", None)
    return storage if storage is not None else get_storage_client()


def get_rate_limiter(request: Request) -> RateLimiter:
    limiter = getattr(request.app.state, "rate_limiter", None)
    return limiter if limiter is not None else get_global_rate_limiter()


def limit_uploads(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> None:
    limiter.check(f"uploads:{viewer.user_id}", get_settings().rate_limit_uploads_per_minute)


def limit_comments(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> None:
    limiter.check(f"comments:{viewer.user_id}", get_settings().rate_limit_comments_per_minute)
