"""Celery application configuration.

Central configuration for Celery used by both API (for enqueuing)
and worker (for executing tasks).

Usage:
    from zeal.tasks import upload_draft_chunks
    upload_draft_chunks.apply_async(args=[draft_id, file_path], queue="uploads")

Queues:
- uploads: server-side multipart transfers (network bound)
- processing: zeal post-processing
- maintenance: periodic sweeps and cleanup
"""

from celery import Celery

from zeal.config import get_settings

settings = get_settings()

celery_app = Celery("zeal")

celery_app.conf.broker_url = settings.effective_celery_broker_url
celery_app.conf.result_backend = settings.effective_celery_result_backend

celery_app.conf.task_serializer = "json"
celery_app.conf.result_serializer = "json"
celery_app.conf.accept_content = ["json"]
celery_app.conf.timezone = "UTC"
celery_app.conf.enable_utc = True

celery_app.conf.task_routes = {
    "upload_draft_chunks": {"queue": "uploads"},
    "process_content": {"queue": "processing"},
    "sweep_expired_drafts": {"queue": "maintenance"},
    "cleanup_stale_references": {"queue": "maintenance"},
    "expire_polls": {"queue": "maintenance"},
}

celery_app.conf.task_default_queue = "default"

celery_app.conf.task_always_eager = False
