"""Like, save, comment, share and report routes.

{content_type} accepts the discriminator value (post, write_post, zeal, poll)
or the model name.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from zeal.api.deps import get_db, limit_comments
from zeal.auth.middleware import Viewer, get_viewer
from zeal.responses import success_response
from zeal.schemas.interactions import CreateCommentRequest, ReportRequest, ShareRequest
from zeal.services import comments as comment_service
from zeal.services import likes as like_service
from zeal.services import reports as report_service
from zeal.services import saves as save_service
from zeal.services import shares as share_service

router = APIRouter()


# =============================================================================
# Likes
# =============================================================================


@router.post("/content/{content_type}/{content_id}/like")
def toggle_like(
    content_type: str,
    content_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = like_service.toggle_like(db, viewer.user_id, content_type, content_id)
    return success_response(result.model_dump(mode="json"))


@router.get("/content/{content_type}/{content_id}/likes")
def like_status(
    content_type: str,
    content_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = like_service.get_like_status(db, viewer.user_id, content_type, content_id)
    return success_response(result.model_dump(mode="json"))


# =============================================================================
# Saves
# =============================================================================


@router.post("/content/{content_type}/{content_id}/save")
def toggle_save(
    content_type: str,
    content_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = save_service.toggle_save(db, viewer.user_id, content_type, content_id)
    return success_response(result.model_dump(mode="json"))


@router.get("/me/saved")
def list_saved(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    content_type: Annotated[str | None, Query(alias="type")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, description="Page size (clamped to 100)")] = 20,
) -> dict:
    """Saved items, newest first. Items whose content was deleted are dropped."""
    result = save_service.list_saved_content(
        db, viewer.user_id, page=page, limit=limit, content_type=content_type
    )
    return success_response(result.model_dump(mode="json"))


# =============================================================================
# Comments
# =============================================================================


@router.post(
    "/content/{content_type}/{content_id}/comments",
    status_code=201,
    dependencies=[Depends(limit_comments)],
)
def add_comment(
    content_type: str,
    content_id: UUID,
    body: CreateCommentRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = comment_service.add_comment(db, viewer.user_id, content_type, content_id, body.text)
    return success_response(result.model_dump(mode="json"))


@router.get("/content/{content_type}/{content_id}/comments")
def list_comments(
    content_type: str,
    content_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, description="Page size (clamped to 100)")] = 20,
) -> dict:
    result = comment_service.list_comments(db, content_type, content_id, page=page, limit=limit)
    return success_response(result.model_dump(mode="json"))


@router.delete("/comments/{comment_id}", status_code=204)
def delete_comment(
    comment_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    comment_service.delete_comment(db, viewer.user_id, comment_id)
    return Response(status_code=204)


# =============================================================================
# Shares and reports
# =============================================================================


@router.post("/content/{content_type}/{content_id}/shares", status_code=201)
def share_content(
    content_type: str,
    content_id: UUID,
    body: ShareRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = share_service.share_content(
        db, viewer.user_id, content_type, content_id, body.receiver_ids
    )
    return success_response(result.model_dump(mode="json"))


@router.get("/me/shares")
def list_received_shares(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, description="Page size (clamped to 100)")] = 20,
) -> dict:
    result = share_service.list_shares_received(db, viewer.user_id, page=page, limit=limit)
    return success_response(result.model_dump(mode="json"))


@router.post("/content/{content_type}/{content_id}/reports", status_code=201)
def report_content(
    content_type: str,
    content_id: UUID,
    body: ReportRequest,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = report_service.report_content(
        db,
        viewer.user_id,
        content_type,
        content_id,
        reason=body.reason,
        description=body.description,
    )
    return success_response(result.model_dump(mode="json"))


@router.get("/content/{content_type}/{content_id}/reports")
def list_reports(
    content_type: str,
    content_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Reports against the viewer's own item."""
    result = report_service.list_reports_for_content(db, viewer.user_id, content_type, content_id)
    return success_response([r.model_dump(mode="json") for r in result])
