"""
Job progress and timeline helpers shared by the orchestrator and reconciler.
"""

import logging
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clipforge.models import Artifact, ArtifactStatus, ArtifactType, EventLevel, EventType, Job, JobEvent, Project
from clipforge.models.enums import PipelineStep

logger = logging.getLogger(__name__)

STEP_ORDER: list[PipelineStep] = [
    PipelineStep.SCRIPT,
    PipelineStep.SCENE_PLAN,
    PipelineStep.VOICEOVER,
    PipelineStep.VIDEO_CLIPS,
    PipelineStep.ASSEMBLY,
]

# Progress each step contributes once finished; sums to 100
STEP_WEIGHTS: dict[PipelineStep, int] = {
    PipelineStep.SCRIPT: 15,
    PipelineStep.SCENE_PLAN: 10,
    PipelineStep.VOICEOVER: 15,
    PipelineStep.VIDEO_CLIPS: 40,
    PipelineStep.ASSEMBLY: 20,
}

DEFAULT_LEVELS: dict[EventType, EventLevel] = {
    EventType.STEP_FINISHED: EventLevel.SUCCESS,
    EventType.STEP_FAILED: EventLevel.ERROR,
}


def progress_before(step: PipelineStep) -> int:
    """Progress of a job that has finished every step before ``step``."""
    total = 0
    for candidate in STEP_ORDER:
        if candidate == step:
            break
        total += STEP_WEIGHTS[candidate]
    return total


def progress_after(step: PipelineStep) -> int:
    return progress_before(step) + STEP_WEIGHTS[step]


def clip_progress(resolved: int, total: int) -> int:
    """Progress while video clips resolve one by one."""
    if total <= 0:
        return progress_before(PipelineStep.VIDEO_CLIPS)
    share = STEP_WEIGHTS[PipelineStep.VIDEO_CLIPS] * min(resolved, total) // total
    return progress_before(PipelineStep.VIDEO_CLIPS) + share


def record_event(
    db: Session,
    job: Job,
    step: PipelineStep | str,
    event_type: EventType,
    message: str,
    *,
    level: EventLevel | None = None,
    data: dict[str, Any] | None = None,
) -> JobEvent:
    """Append a timeline event carrying the job's current progress."""
    step_value = step.value if isinstance(step, PipelineStep) else step
    event = JobEvent(
        job_id=job.id,
        level=level or DEFAULT_LEVELS.get(event_type, EventLevel.INFO),
        step=step_value,
        event_type=event_type,
        message=message,
        progress=job.progress,
        data=data or {},
    )
    db.add(event)

    logger.info(
        message,
        extra={
            "job_id": str(job.id),
            "step": step_value,
            "event_type": event_type.value,
            "progress": job.progress,
        },
    )
    return event


def set_progress(job: Job, project: Project, value: int) -> int:
    """Raise job progress (never lowering it) and mirror it onto the project."""
    progress = job.advance_progress(value)
    project.progress = progress
    return progress


def count_clips(db: Session, job_id: Any) -> dict[ArtifactStatus, int]:
    """Count this job's clip artifacts (resolved and placeholders) by status."""
    rows = db.execute(
        select(Artifact.status, func.count())
        .where(
            Artifact.job_id == job_id,
            Artifact.artifact_type.in_([ArtifactType.VIDEO_CLIP, ArtifactType.VIDEO_CLIP_PENDING]),
        )
        .group_by(Artifact.status)
    ).all()
    counts = {status: 0 for status in ArtifactStatus}
    for status, count in rows:
        counts[status] = count
    return counts
