"""Notification service.

Notifications are side effects of follows, likes, comments and shares.
Producers call notify_best_effort() after their own commit, so a failed
notification never rolls back the primary operation.
"""

import math
from typing import Any
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from zeal.db.models import ContentType, Notification, NotificationStatus, NotificationType
from zeal.logging import get_logger
from zeal.schemas.interactions import NotificationListOut, NotificationOut
from zeal.schemas.social import Pagination

logger = get_logger(__name__)

MAX_PAGE_SIZE = 100


def create_notification(
    db: Session,
    *,
    receiver_id: UUID,
    sender_id: UUID | None,
    type: NotificationType,
    message: str,
    content_type: ContentType | None = None,
    content_id: UUID | None = None,
    metadata: dict[str, Any] | None = None,
) -> Notification | None:
    """Create and commit a notification. Users are never notified of their own actions."""
    if sender_id is not None and sender_id == receiver_id:
        return None

    notification = Notification(
        receiver_id=receiver_id,
        sender_id=sender_id,
        type=type,
        message=message,
        content_type=content_type,
        content_id=content_id,
        extra=metadata or {},
    )
    db.add(notification)
    db.commit()
    return notification


def notify_best_effort(db: Session, **kwargs: Any) -> Notification | None:
    """create_notification() that logs and swallows failures."""
    try:
        return create_notification(db, **kwargs)
    except Exception as e:
        db.rollback()
        logger.warning(
            "notification_failed",
            notification_type=str(kwargs.get("type")),
            receiver_id=str(kwargs.get("receiver_id")),
            error=str(e),
        )
        return None


def _to_out(n: Notification) -> NotificationOut:
    return NotificationOut(
        id=n.id,
        sender_id=n.sender_id,
        type=n.type,
        content_type=n.content_type,
        content_id=n.content_id,
        message=n.message,
        status=n.status,
        metadata=n.extra or {},
        created_at=n.created_at,
    )


def list_notifications(
    db: Session,
    user_id: UUID,
    *,
    page: int = 1,
    limit: int = 20,
    unread_only: bool = False,
) -> NotificationListOut:
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    conditions = [Notification.receiver_id == user_id]
    if unread_only:
        conditions.append(Notification.status == NotificationStatus.unread)

    total = db.execute(
        select(func.count()).select_from(Notification).where(*conditions)
    ).scalar_one()
    unread_count = db.execute(
        select(func.count())
        .select_from(Notification)
        .where(
            Notification.receiver_id == user_id,
            Notification.status == NotificationStatus.unread,
        )
    ).scalar_one()
    rows = db.execute(
        select(Notification)
        .where(*conditions)
        .order_by(Notification.created_at.desc(), Notification.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars()

    return NotificationListOut(
        notifications=[_to_out(n) for n in rows],
        unread_count=unread_count,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if total else 0,
        ),
    )


def mark_notifications_read(
    db: Session, user_id: UUID, notification_ids: list[UUID] | None = None
) -> int:
    """Mark the given notifications (or all of them) read. Returns the number changed."""
    query = update(Notification).where(
        Notification.receiver_id == user_id,
        Notification.status == NotificationStatus.unread,
    )
    if notification_ids:
        query = query.where(Notification.id.in_(notification_ids))

    result = db.execute(
        query.values(status=NotificationStatus.read).execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount
