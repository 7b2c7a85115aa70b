"""Content sharing service.

A share sends one content item to a set of receivers. Each receiver gets a
content_shared notification; sharing a Post bumps its share_count.
"""

import math
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from zeal.db.models import (
    ContentShare,
    ContentShareReceiver,
    ContentType,
    NotificationType,
    Post,
    User,
)
from zeal.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from zeal.logging import get_logger
from zeal.schemas.interactions import ShareListOut, ShareOut
from zeal.schemas.social import Pagination
from zeal.services.content_refs import SHAREABLE, require_content
from zeal.services.notifications import notify_best_effort

logger = get_logger(__name__)

MAX_PAGE_SIZE = 100


def _share_to_out(share: ContentShare) -> ShareOut:
    return ShareOut(
        id=share.id,
        content_type=share.content_type,
        content_id=share.content_id,
        sender_id=share.sender_id,
        receiver_ids=sorted((r.receiver_id for r in share.receivers), key=str),
        created_at=share.created_at,
    )


def share_content(
    db: Session,
    sender_id: UUID,
    raw_content_type: str,
    content_id: UUID,
    receiver_ids: list[UUID],
) -> ShareOut:
    """Share an item with other users.

    Receivers are de-duplicated and the sender is dropped from the list.

    Raises:
        InvalidRequestError(E_INVALID_CONTENT_TYPE): Unknown type or a poll.
        NotFoundError(E_CONTENT_NOT_FOUND): Content does not resolve.
        InvalidRequestError: No receivers left after filtering.
        NotFoundError(E_USER_NOT_FOUND): A receiver is missing or soft-deleted.
    """
    content_type, _ = require_content(db, raw_content_type, content_id, SHAREABLE)

    receivers = list(dict.fromkeys(r for r in receiver_ids if r != sender_id))
    if not receivers:
        raise InvalidRequestError(ApiErrorCode.E_INVALID_REQUEST, "No receivers to share with")

    found = set(
        db.execute(
            select(User.id).where(
                User.id.in_(receivers),
                User.is_deleted == False,  # noqa: E712
            )
        ).scalars()
    )
    if len(found) != len(receivers):
        raise NotFoundError(ApiErrorCode.E_USER_NOT_FOUND, "User not found")

    share = ContentShare.for_content(content_type, content_id, sender_id=sender_id)
    share.receivers = [ContentShareReceiver(receiver_id=r) for r in receivers]
    db.add(share)

    if content_type == ContentType.post:
        db.execute(
            update(Post)
            .where(Post.id == content_id)
            .values(share_count=Post.share_count + 1)
            .execution_options(synchronize_session=False)
        )
    db.commit()

    logger.info(
        "content_shared",
        share_id=str(share.id),
        content_type=content_type.value,
        receivers=len(receivers),
    )

    out = _share_to_out(share)
    for receiver_id in receivers:
        notify_best_effort(
            db,
            receiver_id=receiver_id,
            sender_id=sender_id,
            type=NotificationType.content_shared,
            message="Someone shared content with you",
            content_type=content_type,
            content_id=content_id,
            metadata={"share_id": str(share.id)},
        )
    return out


def list_shares_received(
    db: Session, user_id: UUID, *, page: int = 1, limit: int = 20
) -> ShareListOut:
    """Shares sent to the user, newest first."""
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    base = (
        select(ContentShare)
        .join(ContentShareReceiver, ContentShareReceiver.share_id == ContentShare.id)
        .where(ContentShareReceiver.receiver_id == user_id)
    )
    total = db.execute(select(func.count()).select_from(base.subquery())).scalar_one()
    shares = db.execute(
        base.options(selectinload(ContentShare.receivers))
        .order_by(ContentShare.created_at.desc(), ContentShare.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars()

    return ShareListOut(
        shares=[_share_to_out(s) for s in shares],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if total else 0,
        ),
    )
