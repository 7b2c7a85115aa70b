"""Expired upload draft sweeper.

Celery beat job: sweep_expired_drafts
- Drafts past expires_at that never uploaded -> failed ("Upload expired"),
  via conditional update so a draft that finished meanwhile is left alone
- Their multipart sessions are aborted best-effort
- Terminal drafts whose expiry is older than DRAFT_RETENTION_S are deleted
- Log counts

The sweep function is plain and idempotent; the task only wraps it.
"""

from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from zeal.celery import celery_app
from zeal.config import get_settings
from zeal.db.models import DraftStatus, UploadDraft
from zeal.db.session import get_session_factory
from zeal.logging import clear_task_context, configure_task_logging, get_logger
from zeal.services.drafts import PENDING_STATUSES, TERMINAL_STATUSES
from zeal.storage import StorageClientBase, StorageError, get_storage_client

logger = get_logger(__name__)

EXPIRED_ERROR = "Upload expired"


def sweep_expired_drafts(
    db: Session,
    storage: StorageClientBase,
    now: datetime | None = None,
) -> dict[str, int]:
    """Fail expired drafts and purge old terminal ones.

    Returns:
        {"expired": n, "aborted": n, "deleted": n}
    """
    settings = get_settings()
    now = now or datetime.now(UTC)

    stale = list(
        db.execute(
            select(UploadDraft).where(
                UploadDraft.is_uploaded == False,  # noqa: E712
                UploadDraft.status.in_(PENDING_STATUSES),
                UploadDraft.expires_at <= now,
            )
        ).scalars()
    )

    expired = 0
    aborted = 0
    for draft in stale:
        result = db.execute(
            update(UploadDraft)
            .where(
                UploadDraft.id == draft.id,
                UploadDraft.is_uploaded == False,  # noqa: E712
                UploadDraft.status.in_(PENDING_STATUSES),
            )
            .values(status=DraftStatus.failed, processing_error=EXPIRED_ERROR, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        if result.rowcount != 1:
            continue
        expired += 1

        if draft.is_multipart and draft.upload_id:
            try:
                storage.abort_multipart(draft.storage_key, upload_id=draft.upload_id)
                aborted += 1
            except StorageError as e:
                logger.warning(
                    "expired_draft_abort_failed", draft_id=str(draft.id), error=e.message
                )

    cutoff = now - timedelta(seconds=settings.draft_retention_s)
    deleted = db.execute(
        delete(UploadDraft)
        .where(
            UploadDraft.status.in_(TERMINAL_STATUSES),
            UploadDraft.expires_at <= cutoff,
        )
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()

    counts = {"expired": expired, "aborted": aborted, "deleted": deleted}
    if expired or deleted:
        logger.info("draft_sweep_complete", **counts)
    return counts


@celery_app.task(bind=True, max_retries=0, name="sweep_expired_drafts")
def sweep_expired_drafts_task(self, request_id: str | None = None) -> dict[str, int]:
    configure_task_logging(
        request_id=request_id, task_name="sweep_expired_drafts", task_id=self.request.id
    )
    db = get_session_factory()()
    try:
        return sweep_expired_drafts(db, get_storage_client())
    except Exception as e:
        logger.error("draft_sweep_error", error=str(e))
        db.rollback()
        raise
    finally:
        db.close()
        clear_task_context()
