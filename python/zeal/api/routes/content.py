"""Content routes: posts, write posts, polls, and generic item access.

Routes are transport-only. Zeals are created through POST /content (uploads router).
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from zeal.api.deps import get_db
from zeal.auth.middleware import Viewer, get_viewer
from zeal.responses import success_response
from zeal.schemas.content import (
    CreatePollRequest,
    CreatePostRequest,
    CreateWritePostRequest,
    VotePollRequest,
)
from zeal.services import content as content_service
from zeal.services import polls as poll_service

router = APIRouter()


@router.post("/posts", status_code=201)
def create_post(
    body: CreatePostRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = content_service.create_post(
        db,
        viewer.user_id,
        caption=body.caption,
        images=body.images,
        videos=body.videos,
        mentioned_user_ids=body.mentioned_user_ids,
    )
    return success_response(result.model_dump(mode="json"))


@router.post("/write-posts", status_code=201)
def create_write_post(
    body: CreateWritePostRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = content_service.create_write_post(
        db, viewer.user_id, content=body.content, mentioned_user_ids=body.mentioned_user_ids
    )
    return success_response(result.model_dump(mode="json"))


@router.post("/polls", status_code=201)
def create_poll(
    body: CreatePollRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = content_service.create_poll(
        db,
        viewer.user_id,
        caption=body.caption,
        options=body.options,
        duration_hours=body.duration_hours,
    )
    return success_response(result.model_dump(mode="json"))


@router.post("/polls/{poll_id}/vote")
def vote_poll(
    poll_id: UUID,
    body: VotePollRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Vote on a poll, or move the viewer's existing vote."""
    result = poll_service.vote_poll(db, viewer.user_id, poll_id, body.option_id)
    return success_response(result.model_dump(mode="json"))


@router.get("/content/{content_type}/{content_id}")
def get_content(
    content_type: str,
    content_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """One content item with like count and the viewer's like/save state."""
    return success_response(
        content_service.get_content_for_viewer(db, viewer.user_id, content_type, content_id)
    )


@router.delete("/content/{content_type}/{content_id}", status_code=204)
def delete_content(
    content_type: str,
    content_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Delete the viewer's own item. Likes, saves and comments on it go stale."""
    content_service.delete_content(db, viewer.user_id, content_type, content_id)
    return Response(status_code=204)


@router.get("/users/{user_id}/content")
def list_user_content(
    user_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    content_type: Annotated[str, Query(alias="type")] = "post",
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, description="Page size (clamped to 100)")] = 20,
) -> dict:
    result = content_service.list_user_content(
        db, viewer.user_id, user_id, content_type, page=page, limit=limit
    )
    return success_response(result.model_dump(mode="json"))
