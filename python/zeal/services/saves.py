"""Saved content service.

Saves are weak references: listings silently omit items whose content was
deleted and remove those rows on the way.
"""

import math
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from zeal.db.models import ContentType, SavedContent
from zeal.errors import ApiErrorCode, InvalidRequestError
from zeal.logging import get_logger
from zeal.schemas.interactions import SavedItemOut, SavedListOut, SaveResult
from zeal.schemas.social import Pagination
from zeal.services.content import serialize_content
from zeal.services.content_refs import (
    SAVEABLE,
    parse_content_type,
    require_content,
    resolve_content,
)
from zeal.services.maintenance import DEFAULT_BATCH_SIZE, purge_stale_references

logger = get_logger(__name__)

MAX_PAGE_SIZE = 100


def _parse_saveable(raw_content_type: str) -> ContentType:
    content_type = parse_content_type(raw_content_type)
    if content_type is None or content_type not in SAVEABLE:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_CONTENT_TYPE, f"Invalid content type '{raw_content_type}'"
        )
    return content_type


def is_content_saved(
    db: Session, user_id: UUID, content_type: ContentType, content_id: UUID
) -> bool:
    return (
        db.execute(
            select(SavedContent.id).where(
                SavedContent.content_type == content_type,
                SavedContent.content_id == content_id,
                SavedContent.user_id == user_id,
            )
        ).first()
        is not None
    )


def save_content(db: Session, user_id: UUID, raw_content_type: str, content_id: UUID) -> SaveResult:
    """Save a content item. Saving twice reports "already_saved"."""
    content_type, _ = require_content(db, raw_content_type, content_id, SAVEABLE)

    db.add(SavedContent.for_content(content_type, content_id, user_id=user_id))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        return SaveResult(action="already_saved", is_saved=True)

    logger.info("content_saved", content_type=content_type.value, content_id=str(content_id))
    return SaveResult(action="saved", is_saved=True)


def unsave_content(
    db: Session, user_id: UUID, raw_content_type: str, content_id: UUID
) -> SaveResult:
    content_type = _parse_saveable(raw_content_type)
    result = db.execute(
        delete(SavedContent).where(
            SavedContent.content_type == content_type,
            SavedContent.content_id == content_id,
            SavedContent.user_id == user_id,
        )
    )
    db.commit()
    return SaveResult(action="unsaved" if result.rowcount else "not_saved", is_saved=False)


def toggle_save(db: Session, user_id: UUID, raw_content_type: str, content_id: UUID) -> SaveResult:
    content_type = parse_content_type(raw_content_type)
    if content_type is not None and is_content_saved(db, user_id, content_type, content_id):
        return unsave_content(db, user_id, raw_content_type, content_id)
    return save_content(db, user_id, raw_content_type, content_id)


def list_saved_content(
    db: Session,
    user_id: UUID,
    *,
    page: int = 1,
    limit: int = 20,
    content_type: str | None = None,
) -> SavedListOut:
    """The user's saved items, newest first.

    Items whose content no longer resolves are left out of the page and their
    saved rows deleted, so a page may hold fewer than `limit` items.
    """
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    conditions = [SavedContent.user_id == user_id]
    if content_type and content_type != "all":
        conditions.append(SavedContent.content_type == _parse_saveable(content_type))

    rows = list(
        db.execute(
            select(SavedContent)
            .where(*conditions)
            .order_by(SavedContent.created_at.desc(), SavedContent.id)
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars()
    )

    items: list[SavedItemOut] = []
    stale: list[UUID] = []
    for row in rows:
        item = resolve_content(db, row.content_type, row.content_id)
        if item is None:
            stale.append(row.id)
            continue
        items.append(
            SavedItemOut(
                content_type=row.content_type,
                content_model=row.content_model,
                content_id=row.content_id,
                saved_at=row.created_at,
                content=serialize_content(row.content_type, item),
            )
        )

    if stale:
        db.execute(delete(SavedContent).where(SavedContent.id.in_(stale)))
        db.commit()
        logger.info("stale_saved_content_removed", user_id=str(user_id), count=len(stale))

    total = db.execute(
        select(func.count()).select_from(SavedContent).where(*conditions)
    ).scalar_one()

    return SavedListOut(
        items=items,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if total else 0,
        ),
    )


def cleanup_stale_saved_content(
    db: Session, user_id: UUID | None = None, batch_size: int = DEFAULT_BATCH_SIZE
) -> int:
    """Delete saved rows pointing at deleted content, for one user or everyone."""
    conditions = (SavedContent.user_id == user_id,) if user_id is not None else ()
    removed = purge_stale_references(db, SavedContent, batch_size=batch_size, conditions=conditions)
    if removed:
        logger.info("stale_saved_content_cleaned", removed=removed)
    return removed
