"""
Publishing tasks.

``process_scheduled_posts`` is fired by beat on a fixed interval;
``publish_scheduled_post`` publishes one post that was already due when it
was created.
"""

import logging
from typing import Any

from clipforge.core.exceptions import NotFoundError
from clipforge.services.publish_queue import PublishQueueWorker
from clipforge.workers.celery_app import celery_app
from clipforge.workers.utils import format_task_result, get_db_session

logger = logging.getLogger(__name__)


@celery_app.task(
    name="clipforge.workers.tasks.publishing.process_scheduled_posts",
    acks_late=True,
)
def process_scheduled_posts() -> dict[str, Any]:
    """Run one sweep of the scheduled post queue."""
    with get_db_session() as db:
        summary = PublishQueueWorker(db).sweep()
    return format_task_result("process_scheduled_posts", **summary)


@celery_app.task(
    name="clipforge.workers.tasks.publishing.publish_scheduled_post",
    acks_late=True,
)
def publish_scheduled_post(post_id: str) -> dict[str, Any]:
    """
    Publish a single due post.

    A post already claimed by a sweep is skipped, not published twice.
    """
    with get_db_session() as db:
        try:
            result = PublishQueueWorker(db).publish_now(post_id)
        except NotFoundError as e:
            logger.warning(e.message, extra={"post_id": post_id})
            return format_task_result("publish_scheduled_post", success=False, error=e.message, post_id=post_id)

    if result is None:
        return format_task_result("publish_scheduled_post", success=False, skipped=True, post_id=post_id)
    return format_task_result(
        "publish_scheduled_post",
        success=result.success,
        error=result.error,
        post_id=post_id,
        error_code=result.error_code,
        platform_post_id=result.platform_post_id,
    )
