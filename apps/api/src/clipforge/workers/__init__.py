"""
Celery workers for ClipForge.

Background triggers for the generation pipeline, the pending clip
watchdog and the scheduled post queue.
"""

from clipforge.workers.celery_app import celery_app
from clipforge.workers.tasks import (
    check_pending_clips,
    process_scheduled_posts,
    publish_scheduled_post,
    start_video_generation,
)
from clipforge.workers.utils import format_task_result, get_db_session

__all__ = [
    "celery_app",
    "start_video_generation",
    "check_pending_clips",
    "process_scheduled_posts",
    "publish_scheduled_post",
    "get_db_session",
    "format_task_result",
]
