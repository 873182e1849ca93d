"""
Celery tasks for ClipForge.

- start_video_generation: run or resume a job's pipeline
- check_pending_clips: watchdog over pending asynchronous clips
- process_scheduled_posts: scheduled post queue sweep
- publish_scheduled_post: publish one post that is already due
"""

from clipforge.workers.tasks.pipeline import start_video_generation
from clipforge.workers.tasks.publishing import process_scheduled_posts, publish_scheduled_post
from clipforge.workers.tasks.reconciliation import check_pending_clips

__all__ = [
    "start_video_generation",
    "check_pending_clips",
    "process_scheduled_posts",
    "publish_scheduled_post",
]
