"""Celery task for server-side multipart uploads.

The API writes the file to UPLOAD_TMP_DIR, records the draft as `uploading`
and enqueues this task. The task owns the temporary file: it is removed when
the task finishes, whatever the outcome.

- max_retries=0: a failed transfer leaves the draft `failed`; the client
  starts a new upload
- Re-delivery of a finished draft is a no-op (status is no longer `uploading`)
"""

from uuid import UUID

from zeal.celery import celery_app
from zeal.db.session import get_session_factory
from zeal.logging import clear_task_context, configure_task_logging, get_logger
from zeal.services.chunked_upload import run_chunked_upload
from zeal.storage import get_storage_client

logger = get_logger(__name__)


@celery_app.task(bind=True, max_retries=0, name="upload_draft_chunks")
def upload_draft_chunks(
    self,
    draft_id: str,
    file_path: str,
    request_id: str | None = None,
) -> dict:
    """Transfer a temporary file to storage through the draft's multipart session.

    Args:
        draft_id: UUID of the uploading draft.
        file_path: Path of the temporary file under UPLOAD_TMP_DIR.
        request_id: Optional request ID for log correlation.
    """
    configure_task_logging(
        request_id=request_id, task_name="upload_draft_chunks", task_id=self.request.id
    )
    logger.info("upload_draft_chunks_started", draft_id=draft_id)

    db = get_session_factory()()
    try:
        result = run_chunked_upload(
            db, UUID(draft_id), file_path, storage=get_storage_client()
        )
        logger.info("upload_draft_chunks_finished", draft_id=draft_id, status=result["status"])
        return result
    finally:
        db.close()
        clear_task_context()
