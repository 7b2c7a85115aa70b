"""Celery beat job: remove weak references to deleted content."""

from zeal.celery import celery_app
from zeal.db.session import get_session_factory
from zeal.logging import clear_task_context, configure_task_logging, get_logger
from zeal.services.maintenance import cleanup_stale_references

logger = get_logger(__name__)


@celery_app.task(bind=True, max_retries=0, name="cleanup_stale_references")
def cleanup_stale_references_task(self, request_id: str | None = None) -> dict[str, int]:
    configure_task_logging(
        request_id=request_id, task_name="cleanup_stale_references", task_id=self.request.id
    )
    db = get_session_factory()()
    try:
        return cleanup_stale_references(db)
    except Exception as e:
        logger.error("reference_cleanup_error", error=str(e))
        db.rollback()
        raise
    finally:
        db.close()
        clear_task_context()
