"""
Celery application for ClipForge.

Three queues keep long pipeline runs from starving the periodic sweeps:

- pipeline: ``start_video_generation`` (fresh runs and resumes)
- reconciler: ``check_pending_clips``
- publishing: ``process_scheduled_posts`` and ``publish_scheduled_post``

Beat is the only trigger for the two sweeps.
"""

import logging

from celery import Celery

from clipforge.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

TASK_QUEUES: dict[str, str] = {
    "clipforge.workers.tasks.pipeline.start_video_generation": "pipeline",
    "clipforge.workers.tasks.reconciliation.check_pending_clips": "reconciler",
    "clipforge.workers.tasks.publishing.process_scheduled_posts": "publishing",
    "clipforge.workers.tasks.publishing.publish_scheduled_post": "publishing",
}

celery_app = Celery(
    "clipforge_workers",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "clipforge.workers.tasks.pipeline",
        "clipforge.workers.tasks.reconciliation",
        "clipforge.workers.tasks.publishing",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # A task whose worker dies mid-run is redelivered; every task is
    # safe to rerun because pipeline steps resume and posts are claimed
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    task_time_limit=1800,
    task_soft_time_limit=1740,
    task_track_started=True,
    task_routes={name: {"queue": queue} for name, queue in TASK_QUEUES.items()},
    task_queues={
        queue: {"exchange": queue, "routing_key": queue}
        for queue in ("default", *dict.fromkeys(TASK_QUEUES.values()))
    },
    task_default_queue="default",
    result_expires=86400,
    result_extended=True,
    worker_log_format="[%(asctime)s: %(levelname)s/%(processName)s] %(message)s",
    worker_task_log_format=(
        "[%(asctime)s: %(levelname)s/%(processName)s] "
        "[%(task_name)s(%(task_id)s)] %(message)s"
    ),
    beat_schedule={
        "process-scheduled-posts": {
            "task": "clipforge.workers.tasks.publishing.process_scheduled_posts",
            "schedule": float(settings.queue_sweep_interval_seconds),
        },
        "check-pending-clips": {
            "task": "clipforge.workers.tasks.reconciliation.check_pending_clips",
            "schedule": float(settings.pending_clip_check_interval_seconds),
        },
    },
)

__all__ = ["celery_app"]
