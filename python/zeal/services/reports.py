"""Content report service. One report per (content, reporter)."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from zeal.db.models import ContentReport
from zeal.errors import ApiErrorCode, ConflictError, ForbiddenError
from zeal.logging import get_logger
from zeal.schemas.interactions import ReportOut
from zeal.services.content_refs import REPORTABLE, require_content

logger = get_logger(__name__)


def report_content(
    db: Session,
    reporter_id: UUID,
    raw_content_type: str,
    content_id: UUID,
    *,
    reason: str,
    description: str | None = None,
) -> ReportOut:
    """File a report against a content item.

    Raises:
        InvalidRequestError(E_INVALID_CONTENT_TYPE): Unknown type or a poll.
        NotFoundError(E_CONTENT_NOT_FOUND): Content does not resolve.
        ConflictError(E_ALREADY_REPORTED): This user already reported the item.
    """
    content_type, _ = require_content(db, raw_content_type, content_id, REPORTABLE)

    report = ContentReport.for_content(
        content_type,
        content_id,
        reported_by=reporter_id,
        reason=reason.strip(),
        description=description,
    )
    db.add(report)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(
            ApiErrorCode.E_ALREADY_REPORTED, "You have already reported this content"
        ) from None

    logger.info("content_reported", report_id=str(report.id), content_type=content_type.value)
    return ReportOut.model_validate(report)


def list_reports_for_content(
    db: Session, viewer_id: UUID, raw_content_type: str, content_id: UUID
) -> list[ReportOut]:
    """Reports filed against an item. Only its author may read them."""
    content_type, item = require_content(db, raw_content_type, content_id, REPORTABLE)
    if item.author_id != viewer_id:
        raise ForbiddenError(ApiErrorCode.E_FORBIDDEN, "Only the author can view reports")

    rows = db.execute(
        select(ContentReport)
        .where(
            ContentReport.content_type == content_type,
            ContentReport.content_id == content_id,
        )
        .order_by(ContentReport.created_at, ContentReport.id)
    ).scalars()
    return [ReportOut.model_validate(r) for r in rows]
