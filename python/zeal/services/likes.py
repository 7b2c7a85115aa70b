"""Content like service.

Duplicate prevention relies on the (content_type, content_id, user_id)
unique constraint: the like is inserted directly and a uniqueness violation
means the user already liked the item. Both racing callers see a liked state.
"""

from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from zeal.db.models import ContentLike, ContentType, NotificationType
from zeal.errors import ApiErrorCode, InvalidRequestError
from zeal.logging import get_logger
from zeal.schemas.interactions import LikeResult
from zeal.services.content_refs import LIKEABLE, parse_content_type, require_content
from zeal.services.notifications import notify_best_effort

logger = get_logger(__name__)

LIKE_NOTIFICATIONS = {
    ContentType.post: NotificationType.post_liked,
    ContentType.write_post: NotificationType.write_liked,
    ContentType.zeal: NotificationType.zeal_liked,
    ContentType.poll: NotificationType.poll_liked,
}


def get_like_count(db: Session, content_type: ContentType, content_id: UUID) -> int:
    return db.execute(
        select(func.count())
        .select_from(ContentLike)
        .where(ContentLike.content_type == content_type, ContentLike.content_id == content_id)
    ).scalar_one()


def _has_liked(db: Session, user_id: UUID, content_type: ContentType, content_id: UUID) -> bool:
    return (
        db.execute(
            select(ContentLike.id).where(
                ContentLike.content_type == content_type,
                ContentLike.content_id == content_id,
                ContentLike.user_id == user_id,
            )
        ).first()
        is not None
    )


def like_content(db: Session, user_id: UUID, raw_content_type: str, content_id: UUID) -> LikeResult:
    """Like a content item. Liking twice reports "already_liked".

    Raises:
        InvalidRequestError(E_INVALID_CONTENT_TYPE): Unknown discriminator.
        NotFoundError(E_CONTENT_NOT_FOUND): Item does not resolve (zeals must be ready).
    """
    content_type, item = require_content(db, raw_content_type, content_id, LIKEABLE)

    db.add(ContentLike.for_content(content_type, content_id, user_id=user_id))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return LikeResult(
            action="already_liked",
            is_liked=True,
            like_count=get_like_count(db, content_type, content_id),
        )

    logger.info("content_liked", content_type=content_type.value, content_id=str(content_id))
    notify_best_effort(
        db,
        receiver_id=item.author_id,
        sender_id=user_id,
        type=LIKE_NOTIFICATIONS[content_type],
        message="Someone liked your content",
        content_type=content_type,
        content_id=content_id,
    )
    return LikeResult(
        action="liked",
        is_liked=True,
        like_count=get_like_count(db, content_type, content_id),
    )


def unlike_content(
    db: Session, user_id: UUID, raw_content_type: str, content_id: UUID
) -> LikeResult:
    """Remove a like. Works on stale references too."""
    content_type = parse_content_type(raw_content_type)
    if content_type is None or content_type not in LIKEABLE:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_CONTENT_TYPE, f"Invalid content type '{raw_content_type}'"
        )

    result = db.execute(
        delete(ContentLike).where(
            ContentLike.content_type == content_type,
            ContentLike.content_id == content_id,
            ContentLike.user_id == user_id,
        )
    )
    db.commit()

    return LikeResult(
        action="unliked" if result.rowcount else "not_liked",
        is_liked=False,
        like_count=get_like_count(db, content_type, content_id),
    )


def toggle_like(db: Session, user_id: UUID, raw_content_type: str, content_id: UUID) -> LikeResult:
    content_type = parse_content_type(raw_content_type)
    if content_type is not None and _has_liked(db, user_id, content_type, content_id):
        return unlike_content(db, user_id, raw_content_type, content_id)
    return like_content(db, user_id, raw_content_type, content_id)


def get_like_status(
    db: Session, user_id: UUID, raw_content_type: str, content_id: UUID
) -> LikeResult:
    content_type, _ = require_content(db, raw_content_type, content_id, LIKEABLE)
    liked = _has_liked(db, user_id, content_type, content_id)
    return LikeResult(
        action="liked" if liked else "not_liked",
        is_liked=liked,
        like_count=get_like_count(db, content_type, content_id),
    )
