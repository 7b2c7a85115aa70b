"""Celery beat job: move polls past their end time to expired."""

from zeal.celery import celery_app
from zeal.db.session import get_session_factory
from zeal.logging import clear_task_context, configure_task_logging, get_logger
from zeal.services.polls import expire_polls

logger = get_logger(__name__)


@celery_app.task(bind=True, max_retries=0, name="expire_polls")
def expire_polls_task(self, request_id: str | None = None) -> int:
    configure_task_logging(request_id=request_id, task_name="expire_polls", task_id=self.request.id)
    db = get_session_factory()()
    try:
        return expire_polls(db)
    except Exception as e:
        logger.error("poll_expiry_error", error=str(e))
        db.rollback()
        raise
    finally:
        db.close()
        clear_task_context()
