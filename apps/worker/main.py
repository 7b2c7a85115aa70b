"""Celery worker entrypoint.

Run with:
    celery -A apps.worker.main:celery_app worker -Q uploads,processing,maintenance --loglevel=info
    celery -A apps.worker.main:celery_app beat --loglevel=info

This module imports the Celery app and explicitly registers all tasks.
Task definitions are in the zeal.tasks package - no autodiscovery.

Queue Configuration:
- uploads: server-side multipart transfers; needs UPLOAD_TMP_DIR shared with the API
- processing: zeal post-processing
- maintenance: beat-scheduled sweeps

Beat Schedule:
- sweep_expired_drafts: every 5 minutes
- cleanup_stale_references: hourly
- expire_polls: every minute
"""

from celery.signals import worker_process_init

from zeal.celery import celery_app
from zeal.logging import configure_logging, get_logger

# Import tasks to register them with Celery
from zeal.tasks import (  # noqa: F401
    cleanup_stale_references_task,
    expire_polls_task,
    process_content,
    sweep_expired_drafts_task,
    upload_draft_chunks,
)

celery_app.conf.beat_schedule = {
    "sweep-expired-drafts": {
        "task": "sweep_expired_drafts",
        "schedule": 300.0,
    },
    "cleanup-stale-references": {
        "task": "cleanup_stale_references",
        "schedule": 3600.0,
    },
    "expire-polls": {
        "task": "expire_polls",
        "schedule": 60.0,
    },
}


@worker_process_init.connect
def setup_worker_logging(**kwargs):
    """Configure structlog when a worker process starts."""
    configure_logging()
    logger = get_logger(__name__)
    logger.info("celery_worker_started")


__all__ = ["celery_app"]
