"""API route definitions.

Uses a factory pattern to avoid import-time settings loading.

Ordering: the uploads router registers /content/{zeal_id}/status before the
generic /content/{content_type}/{content_id} routes can claim the path.
"""

from fastapi import APIRouter

from zeal.api.routes.content import router as content_router
from zeal.api.routes.follows import router as follows_router
from zeal.api.routes.health import router as health_router
from zeal.api.routes.interactions import router as interactions_router
from zeal.api.routes.notifications import router as notifications_router
from zeal.api.routes.uploads import router as uploads_router


def create_api_router() -> APIRouter:
    """Create the API router with all routes registered."""
    api_router = APIRouter()
    api_router.include_router(health_router, tags=["health"])
    api_router.include_router(uploads_router, tags=["uploads"])
    api_router.include_router(content_router, tags=["content"])
    api_router.include_router(follows_router, tags=["social"])
    api_router.include_router(interactions_router, tags=["interactions"])
    api_router.include_router(notifications_router, tags=["notifications"])
    return api_router


__all__ = ["create_api_router"]
