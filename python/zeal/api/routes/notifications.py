"""Notification routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from zeal.api.deps import get_db
from zeal.auth.middleware import Viewer, get_viewer
from zeal.responses import success_response
from zeal.schemas.interactions import MarkReadRequest
from zeal.services import notifications as notification_service

router = APIRouter()


@router.get("/notifications")
def list_notifications(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, description="Page size (clamped to 100)")] = 20,
    unread_only: bool = False,
) -> dict:
    result = notification_service.list_notifications(
        db, viewer.user_id, page=page, limit=limit, unread_only=unread_only
    )
    return success_response(result.model_dump(mode="json"))


@router.post("/notifications/read")
def mark_read(
    body: MarkReadRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Mark the listed notifications read, or all of them when the list is empty."""
    updated = notification_service.mark_notifications_read(
        db, viewer.user_id, body.notification_ids or None
    )
    return success_response({"updated": updated})
