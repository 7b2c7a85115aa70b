"""Celery tasks for Zeal.

Tasks are explicitly imported here to register them with Celery.
No autodiscovery - all tasks must be imported in this module.

Usage in API (enqueue):
    from zeal.tasks import process_content
    process_content.apply_async(
        args=[zeal_id],
        kwargs={"request_id": request_id},
        queue="processing",
    )
"""

from zeal.tasks.cleanup_references import cleanup_stale_references_task
from zeal.tasks.expire_polls import expire_polls_task
from zeal.tasks.process_content import process_content
from zeal.tasks.sweep_drafts import sweep_expired_drafts, sweep_expired_drafts_task
from zeal.tasks.upload_draft_chunks import upload_draft_chunks

__all__ = [
    "upload_draft_chunks",
    "process_content",
    "sweep_expired_drafts",
    "sweep_expired_drafts_task",
    "cleanup_stale_references_task",
    "expire_polls_task",
]
