"""Stale weak-reference cleanup.

Likes, saves, comments, shares and reports point at content through
(content_type, content_id) without ownership. When the content is deleted
the references go stale. Readers already skip them; this job removes them
in batches. Safe to run repeatedly.
"""

from collections import defaultdict
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from zeal.db.models import Comment, ContentLike, ContentReport, ContentShare, SavedContent
from zeal.logging import get_logger
from zeal.services.content_refs import existing_content_ids

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 100

REFERENCE_MODELS = {
    "likes": ContentLike,
    "saves": SavedContent,
    "comments": Comment,
    "shares": ContentShare,
    "reports": ContentReport,
}


def find_stale_ids(db: Session, rows: list[Any]) -> list[UUID]:
    """Return ids of reference rows whose content no longer resolves."""
    by_type: dict[Any, set[UUID]] = defaultdict(set)
    for row in rows:
        by_type[row.content_type].add(row.content_id)

    alive = {ct: existing_content_ids(db, ct, ids) for ct, ids in by_type.items()}
    return [row.id for row in rows if row.content_id not in alive[row.content_type]]


def purge_stale_references(
    db: Session,
    model: Any,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    conditions: tuple = (),
) -> int:
    """Delete stale rows of one reference model, walking it in id order.

    Returns:
        Number of rows deleted.
    """
    removed = 0
    last_id = None

    while True:
        query = select(model).where(*conditions).order_by(model.id).limit(batch_size)
        if last_id is not None:
            query = query.where(model.id > last_id)
        rows = list(db.execute(query).scalars())
        if not rows:
            break

        last_id = rows[-1].id
        stale = find_stale_ids(db, rows)
        if stale:
            db.execute(delete(model).where(model.id.in_(stale)))
            db.commit()
            removed += len(stale)

        if len(rows) < batch_size:
            break

    return removed


def cleanup_stale_references(db: Session, batch_size: int = DEFAULT_BATCH_SIZE) -> dict[str, int]:
    """Remove stale references of every kind.

    Returns:
        Rows removed per reference kind.
    """
    counts = {
        name: purge_stale_references(db, model, batch_size=batch_size)
        for name, model in REFERENCE_MODELS.items()
    }
    logger.info("stale_references_cleaned", **counts)
    return counts
