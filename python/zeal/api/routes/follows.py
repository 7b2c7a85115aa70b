"""Social graph routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from zeal.api.deps import get_db
from zeal.auth.middleware import Viewer, get_viewer
from zeal.responses import success_response
from zeal.services import follows as follow_service

router = APIRouter()


@router.post("/users/{user_id}/follow", status_code=201)
def follow_user(
    user_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = follow_service.follow(db, viewer.user_id, user_id)
    return success_response(result.model_dump(mode="json"))


@router.delete("/users/{user_id}/follow")
def unfollow_user(
    user_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = follow_service.unfollow(db, viewer.user_id, user_id)
    return success_response(result.model_dump(mode="json"))


@router.get("/users/{user_id}/followers")
def list_followers(
    user_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, description="Page size (clamped to 100)")] = 20,
    search: Annotated[str | None, Query(max_length=100)] = None,
) -> dict:
    """Followers of a user, newest first, each annotated with the viewer's follow status."""
    result = follow_service.get_followers(
        db, viewer.user_id, user_id, page=page, limit=limit, search=search
    )
    return success_response(result.model_dump(mode="json"))


@router.get("/users/{user_id}/following")
def list_following(
    user_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, description="Page size (clamped to 100)")] = 20,
    search: Annotated[str | None, Query(max_length=100)] = None,
) -> dict:
    result = follow_service.get_following(
        db, viewer.user_id, user_id, page=page, limit=limit, search=search
    )
    return success_response(result.model_dump(mode="json"))


@router.get("/users/{user_id}/follow-counts")
def follow_counts(
    user_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = follow_service.get_follow_counts(db, user_id)
    return success_response(result.model_dump(mode="json"))
