"""Comment service. Polls cannot be commented on."""

import math
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from zeal.db.models import Comment, ContentType, NotificationType
from zeal.errors import ApiErrorCode, ForbiddenError, NotFoundError
from zeal.logging import get_logger
from zeal.schemas.interactions import CommentListOut, CommentOut
from zeal.schemas.social import Pagination
from zeal.services.content_refs import COMMENTABLE, require_content, resolve_content
from zeal.services.notifications import notify_best_effort

logger = get_logger(__name__)

MAX_PAGE_SIZE = 100

COMMENT_NOTIFICATIONS = {
    ContentType.post: NotificationType.post_comment,
    ContentType.write_post: NotificationType.write_comment,
    ContentType.zeal: NotificationType.zeal_comment,
}


def add_comment(
    db: Session, user_id: UUID, raw_content_type: str, content_id: UUID, text: str
) -> CommentOut:
    """Add a comment and notify the content author.

    Raises:
        InvalidRequestError(E_INVALID_CONTENT_TYPE): Unknown type or a poll.
        NotFoundError(E_CONTENT_NOT_FOUND): Content does not resolve.
    """
    content_type, item = require_content(db, raw_content_type, content_id, COMMENTABLE)

    comment = Comment.for_content(content_type, content_id, user_id=user_id, text=text.strip())
    db.add(comment)
    db.commit()

    logger.info("comment_added", comment_id=str(comment.id), content_type=content_type.value)

    notify_best_effort(
        db,
        receiver_id=item.author_id,
        sender_id=user_id,
        type=COMMENT_NOTIFICATIONS[content_type],
        message="Someone commented on your content",
        content_type=content_type,
        content_id=content_id,
        metadata={"comment_id": str(comment.id)},
    )
    return CommentOut.model_validate(comment)


def list_comments(
    db: Session,
    raw_content_type: str,
    content_id: UUID,
    *,
    page: int = 1,
    limit: int = 20,
) -> CommentListOut:
    """Live comments on an item, oldest first."""
    content_type, _ = require_content(db, raw_content_type, content_id, COMMENTABLE)
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    conditions = (
        Comment.content_type == content_type,
        Comment.content_id == content_id,
        Comment.is_deleted == False,  # noqa: E712
    )
    total = db.execute(select(func.count()).select_from(Comment).where(*conditions)).scalar_one()
    rows = db.execute(
        select(Comment)
        .where(*conditions)
        .order_by(Comment.created_at, Comment.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars()

    return CommentListOut(
        comments=[CommentOut.model_validate(c) for c in rows],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if total else 0,
        ),
    )


def delete_comment(db: Session, viewer_id: UUID, comment_id: UUID) -> None:
    """Soft-delete a comment. Allowed for the commenter and the content author.

    Raises:
        NotFoundError(E_COMMENT_NOT_FOUND): Missing or already deleted.
        ForbiddenError: Viewer is neither the commenter nor the content author.
    """
    comment = db.get(Comment, comment_id)
    if comment is None or comment.is_deleted:
        raise NotFoundError(ApiErrorCode.E_COMMENT_NOT_FOUND, "Comment not found")

    if comment.user_id != viewer_id:
        item = resolve_content(db, comment.content_type, comment.content_id)
        if item is None or item.author_id != viewer_id:
            raise ForbiddenError(ApiErrorCode.E_FORBIDDEN, "Not allowed to delete this comment")

    comment.is_deleted = True
    db.commit()
    logger.info("comment_deleted", comment_id=str(comment_id))
