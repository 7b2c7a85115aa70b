"""Upload draft store.

Persistence helpers and lifecycle rules for UploadDraft rows.

Key invariants:
- storage_key is assigned once at creation and never rewritten
- total_chunks == ceil(file_size / chunk_size) for multipart drafts
- Completion records the full part set 1..total_chunks, sorted, no gaps
- The pending-draft cap counts drafts that are not uploaded, not terminal and not expired
"""

import math
from collections.abc import Iterable
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from zeal.db.models import DraftStatus, UploadDraft
from zeal.logging import get_logger
from zeal.storage.client import CompletedPart

logger = get_logger(__name__)

_MAX_ERROR_MSG_LEN = 1000

PENDING_STATUSES = (DraftStatus.draft, DraftStatus.uploading)
TERMINAL_STATUSES = (DraftStatus.uploaded, DraftStatus.failed)


def compute_total_chunks(file_size: int, chunk_size: int) -> int:
    if file_size <= 0 or chunk_size <= 0:
        raise ValueError("file_size and chunk_size must be positive")
    return math.ceil(file_size / chunk_size)


def part_byte_range(part_number: int, chunk_size: int, file_size: int) -> tuple[int, int]:
    """Return (offset, length) of a 1-based part."""
    offset = (part_number - 1) * chunk_size
    if part_number < 1 or offset >= file_size:
        raise ValueError(f"Part {part_number} is outside the file")
    return offset, min(chunk_size, file_size - offset)


def get_draft_for_owner(
    db: Session, owner_id: UUID, draft_id: UUID, *, for_update: bool = False
) -> UploadDraft | None:
    query = select(UploadDraft).where(
        UploadDraft.id == draft_id,
        UploadDraft.owner_id == owner_id,
    )
    if for_update:
        query = query.with_for_update()
    return db.execute(query).scalar_one_or_none()


def count_pending_drafts(db: Session, owner_id: UUID, now: datetime | None = None) -> int:
    """Count the owner's drafts that still occupy an upload slot.

    Expired drafts are inert even before the sweeper marks them failed.
    """
    now = now or datetime.now(UTC)
    return db.execute(
        select(func.count())
        .select_from(UploadDraft)
        .where(
            UploadDraft.owner_id == owner_id,
            UploadDraft.is_uploaded == False,  # noqa: E712
            UploadDraft.status.in_(PENDING_STATUSES),
            UploadDraft.expires_at > now,
        )
    ).scalar_one()


def list_drafts_for_owner(db: Session, owner_id: UUID, limit: int = 50) -> list[UploadDraft]:
    return list(
        db.execute(
            select(UploadDraft)
            .where(UploadDraft.owner_id == owner_id)
            .order_by(UploadDraft.created_at.desc())
            .limit(limit)
        ).scalars()
    )


def mark_draft_failed(db: Session, draft: UploadDraft, error: str) -> None:
    """Mark a draft failed and commit. No-op for drafts already terminal."""
    if draft.status in TERMINAL_STATUSES:
        return
    draft.status = DraftStatus.failed
    draft.processing_error = error[:_MAX_ERROR_MSG_LEN]
    draft.updated_at = datetime.now(UTC)
    db.commit()
    logger.warning("draft_marked_failed", draft_id=str(draft.id), error=error)


def validate_complete_part_set(total_chunks: int, part_numbers: Iterable[int]) -> list[int]:
    """Return sorted part numbers, requiring exactly 1..total_chunks.

    Raises:
        ValueError: On duplicates, gaps or out-of-range parts.
    """
    numbers = list(part_numbers)
    ordered = sorted(numbers)
    if len(set(numbers)) != len(numbers):
        raise ValueError("Duplicate part numbers")
    if ordered != list(range(1, total_chunks + 1)):
        missing = sorted(set(range(1, total_chunks + 1)) - set(numbers))
        raise ValueError(f"Incomplete part set, missing parts: {missing}")
    return ordered


def record_multipart_completion(
    db: Session,
    draft: UploadDraft,
    parts: list[CompletedPart],
    completed_at: dict[int, datetime],
    media_url: str,
) -> bool:
    """Apply a finished multipart transfer to the draft (caller commits).

    The draft returns to `draft` status with is_uploaded set, ready to be
    consumed by content creation. The update only applies while the draft is
    still pending and not uploaded, so a draft the expiry sweep already failed
    stays failed.

    Returns:
        True if the draft was updated, False if it had left the pending states.
    """
    if not draft.is_multipart or draft.total_chunks is None:
        raise ValueError("Draft is not a multipart draft")

    ordered = validate_complete_part_set(draft.total_chunks, [p.part_number for p in parts])
    by_number = {p.part_number: p for p in parts}
    now = datetime.now(UTC)

    result = db.execute(
        update(UploadDraft)
        .where(
            UploadDraft.id == draft.id,
            UploadDraft.is_uploaded == False,  # noqa: E712
            UploadDraft.status.in_(PENDING_STATUSES),
        )
        .values(
            uploaded_parts=[
                {
                    "part_number": n,
                    "etag": by_number[n].etag,
                    "completed_at": completed_at.get(n, now).isoformat(),
                }
                for n in ordered
            ],
            is_uploaded=True,
            uploaded_at=now,
            media_url=media_url,
            status=DraftStatus.draft,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning("multipart_completion_ignored", draft_id=str(draft.id))
        return False

    db.refresh(draft)
    return True
