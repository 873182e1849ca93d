"""
Pending clip watchdog task.

Webhooks are the primary completion path; this periodic sweep recovers
missed deliveries, fails clips stuck pending for too long and wakes jobs
whose clips were deferred by a provider concurrency limit.
"""

import logging
from datetime import timedelta
from typing import Any

from clipforge.core.config import get_settings
from clipforge.providers.registry import ProviderRegistry
from clipforge.services.reconciler import ClipReconciler
from clipforge.workers.celery_app import celery_app
from clipforge.workers.tasks.pipeline import start_video_generation
from clipforge.workers.utils import format_task_result, get_db_session

logger = logging.getLogger(__name__)


def resume_pipeline(project_id: str, job_id: str) -> None:
    start_video_generation.delay(project_id, job_id)


@celery_app.task(
    name="clipforge.workers.tasks.reconciliation.check_pending_clips",
    acks_late=True,
)
def check_pending_clips() -> dict[str, Any]:
    """Poll every pending clip's provider and reconcile what has finished."""
    settings = get_settings()
    max_age = timedelta(minutes=settings.pending_clip_max_age_minutes)

    with get_db_session() as db:
        reconciler = ClipReconciler(db, resume_pipeline=resume_pipeline)
        summary = reconciler.poll_pending(ProviderRegistry(settings=settings), max_age=max_age)

    return format_task_result("check_pending_clips", **summary)
