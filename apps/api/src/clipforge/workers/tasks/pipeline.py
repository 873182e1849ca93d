"""
Pipeline task.

``start_video_generation`` is the trigger for both new projects and
resumes (user retry, or the reconciler once clips resolve). The
orchestrator records step failures itself; only lookup and conflict
errors surface here.
"""

import logging
from typing import Any

from sqlalchemy.exc import OperationalError

from clipforge.core.exceptions import ConflictError, NotFoundError, ValidationError
from clipforge.services.orchestrator import PipelineOrchestrator
from clipforge.workers.celery_app import celery_app
from clipforge.workers.utils import format_task_result, get_db_session

logger = logging.getLogger(__name__)


@celery_app.task(
    bind=True,
    name="clipforge.workers.tasks.pipeline.start_video_generation",
    acks_late=True,
    reject_on_worker_lost=True,
    autoretry_for=(OperationalError,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_jitter=True,
    max_retries=3,
)
def start_video_generation(self, project_id: str, job_id: str) -> dict[str, Any]:
    """
    Run or resume the generation pipeline for a job.

    Args:
        project_id: UUID of the project
        job_id: UUID of the job to run

    Returns:
        Result dict with the job's status, step and progress after the run
    """
    logger.info(
        f"Starting pipeline run for job {job_id}",
        extra={"project_id": project_id, "job_id": job_id, "task_id": self.request.id},
    )

    with get_db_session() as db:
        try:
            result = PipelineOrchestrator(db).run(project_id, job_id)
        except (NotFoundError, ValidationError, ConflictError) as e:
            logger.warning(
                f"Pipeline run rejected: {e.message}",
                extra={"project_id": project_id, "job_id": job_id, "error_code": e.code},
            )
            return format_task_result(
                "start_video_generation",
                success=False,
                error=e.message,
                project_id=project_id,
                job_id=job_id,
                error_code=e.code,
            )

    outcome = result.to_dict()
    error = outcome.pop("error")
    return format_task_result(
        "start_video_generation",
        success=error is None,
        error=error,
        project_id=project_id,
        **outcome,
    )
