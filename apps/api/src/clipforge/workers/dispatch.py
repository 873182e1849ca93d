"""
Task dispatch seam between the API and Celery.

Routes and services trigger background work through a TaskDispatcher so
tests can substitute a recording fake for the Celery calls.
"""

import logging
from typing import Protocol

from clipforge.workers.tasks.pipeline import start_video_generation
from clipforge.workers.tasks.publishing import publish_scheduled_post

logger = logging.getLogger(__name__)


class Dispatcher(Protocol):
    def start_pipeline(self, project_id: str, job_id: str) -> None: ...

    def publish_post(self, post_id: str) -> None: ...


class TaskDispatcher:
    """Enqueues Celery tasks."""

    def start_pipeline(self, project_id: str, job_id: str) -> None:
        task = start_video_generation.delay(project_id, job_id)
        logger.info(
            "Queued pipeline run",
            extra={"project_id": project_id, "job_id": job_id, "task_id": task.id},
        )

    def publish_post(self, post_id: str) -> None:
        task = publish_scheduled_post.delay(post_id)
        logger.info("Queued publish", extra={"post_id": post_id, "task_id": task.id})


def get_task_dispatcher() -> Dispatcher:
    return TaskDispatcher()
