"""Celery task for zeal post-processing.

Idempotent: only zeals still in `processing` are touched, so a re-delivered
or manually re-run task is harmless.
"""

from uuid import UUID

from zeal.celery import celery_app
from zeal.db.session import get_session_factory
from zeal.logging import clear_task_context, configure_task_logging, get_logger
from zeal.services import uploads as upload_service
from zeal.storage import get_storage_client

logger = get_logger(__name__)


@celery_app.task(bind=True, max_retries=0, name="process_content")
def process_content(self, zeal_id: str, request_id: str | None = None) -> dict:
    """Verify a zeal's media and move it to ready or failed."""
    configure_task_logging(
        request_id=request_id, task_name="process_content", task_id=self.request.id
    )

    db = get_session_factory()()
    try:
        result = upload_service.process_content(db, UUID(zeal_id), storage=get_storage_client())
        logger.info("process_content_finished", zeal_id=zeal_id, status=result["status"])
        return result
    except Exception as e:
        logger.error("process_content_error", zeal_id=zeal_id, error=str(e))
        db.rollback()
        raise
    finally:
        db.close()
        clear_task_context()
