"""
Asynchronous clip reconciler.

Resolves ``video_clip_pending`` artifacts once their provider reports a
terminal state, either through a webhook delivery or the periodic
watchdog in ``poll_pending``. Resolution is a conditional update on the
artifact's pending status, so redelivered webhooks and webhook/poller
races apply a terminal state at most once.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from clipforge.core.exceptions import ProviderError
from clipforge.models import (
    Artifact,
    ArtifactStatus,
    ArtifactType,
    EventLevel,
    EventType,
    Job,
    JobStatus,
    PipelineStep,
    Project,
    ProjectStatus,
    ProviderRole,
)
from clipforge.models.base import as_utc, utcnow
from clipforge.providers.base import ClipState, ClipStatus
from clipforge.providers.registry import ProviderResolver
from clipforge.services.tracking import clip_progress, count_clips, record_event, set_progress

logger = logging.getLogger(__name__)

ResumePipeline = Callable[[str, str], Any]


@dataclass
class ReconcileResult:
    """
    Outcome of reconciling one provider job id.

    ``outcome`` is one of completed, failed, duplicate, unknown or pending.
    """

    provider_job_id: str
    outcome: str
    artifact_id: str | None = None
    job_id: str | None = None
    resumed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider_job_id": self.provider_job_id,
            "outcome": self.outcome,
            "artifact_id": self.artifact_id,
            "job_id": self.job_id,
            "resumed": self.resumed,
        }


class ClipReconciler:
    """
    Applies provider clip outcomes to pending artifacts.

    Args:
        db: Database session
        resume_pipeline: Called with (project_id, job_id) once a running
            job has no more clips outstanding, or has scenes waiting for
            an admission slot that just freed up
        clock: Returns the current time; used for the pending age check
    """

    def __init__(
        self,
        db: Session,
        resume_pipeline: ResumePipeline | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.resume_pipeline = resume_pipeline
        self.clock = clock
        self._resumed: set[Any] = set()

    def reconcile(
        self,
        provider_job_id: str,
        status: ClipStatus,
        provider: str | None = None,
    ) -> ReconcileResult:
        """
        Resolve the pending artifact for ``provider_job_id``.

        Args:
            provider_job_id: Provider-side job id carried by the callback or poll
            status: Provider-reported clip state
            provider: Provider id, to disambiguate ids across providers

        Returns:
            ReconcileResult; anything but completed/failed is a no-op
        """
        query = select(Artifact).where(Artifact.provider_job_id == provider_job_id)
        if provider:
            query = query.where(Artifact.provider == provider)
        artifact = self.db.scalar(query)

        if artifact is None:
            logger.warning(
                "No artifact for provider job",
                extra={"provider": provider, "provider_job_id": provider_job_id},
            )
            return ReconcileResult(provider_job_id, "unknown")

        result = ReconcileResult(provider_job_id, "pending", artifact_id=str(artifact.id), job_id=str(artifact.job_id))

        if not status.is_terminal:
            return result
        if not artifact.is_pending:
            logger.info(
                "Clip already resolved, ignoring delivery",
                extra={"artifact_id": str(artifact.id), "provider_job_id": provider_job_id},
            )
            result.outcome = "duplicate"
            return result

        succeeded = status.state == ClipState.COMPLETED
        values: dict[str, Any] = {"updated_at": utcnow()}
        if succeeded:
            values.update(
                status=ArtifactStatus.COMPLETED,
                artifact_type=ArtifactType.VIDEO_CLIP,
                file_url=status.file_url,
            )
        else:
            values.update(status=ArtifactStatus.FAILED)

        claimed = self.db.execute(
            update(Artifact)
            .where(Artifact.id == artifact.id, Artifact.status == ArtifactStatus.PENDING)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            # Another delivery resolved it between our read and the update
            self.db.rollback()
            result.outcome = "duplicate"
            return result

        self.db.refresh(artifact)
        if status.raw:
            artifact.artifact_metadata = {**(artifact.artifact_metadata or {}), "provider_payload": status.raw}

        job = self.db.get(Job, artifact.job_id)
        project = self.db.get(Project, artifact.project_id)

        if succeeded:
            result.outcome = "completed"
            self._apply_success(artifact, job, project)
        else:
            result.outcome = "failed"
            self._apply_failure(artifact, job, project, status.failure_reason)
        self.db.commit()

        if succeeded and self._should_resume(job):
            result.resumed = self._resume(project, job)
        # The resolved clip freed an admission slot for its provider
        self.resume_deferred(provider=artifact.provider)
        return result

    def _apply_success(self, artifact: Artifact, job: Job, project: Project) -> None:
        scene_count = self._scene_count(job)
        counts = count_clips(self.db, job.id)
        completed = counts[ArtifactStatus.COMPLETED]

        if job.status == JobStatus.RUNNING:
            set_progress(job, project, clip_progress(completed, scene_count))
        record_event(
            self.db,
            job,
            PipelineStep.VIDEO_CLIPS,
            EventType.STEP_PROGRESS,
            f"Clip {artifact.scene_index + 1 if artifact.scene_index is not None else '?'} ready",
            level=EventLevel.SUCCESS,
            data={
                "artifact_id": str(artifact.id),
                "scene_index": artifact.scene_index,
                "provider": artifact.provider,
                "provider_job_id": artifact.provider_job_id,
                "completed": completed,
                "total": scene_count,
            },
        )

    def _apply_failure(self, artifact: Artifact, job: Job, project: Project, reason: str | None) -> None:
        message = f"Clip generation failed for scene {artifact.scene_index}: {reason or 'unknown reason'}"

        job.current_step = PipelineStep.VIDEO_CLIPS.value
        if job.status != JobStatus.FAILED:
            job.fail(message)
        project.status = ProjectStatus.FAILED
        project.error_message = message
        project.current_step = PipelineStep.VIDEO_CLIPS.value

        record_event(
            self.db,
            job,
            PipelineStep.VIDEO_CLIPS,
            EventType.STEP_FAILED,
            message,
            data={
                "artifact_id": str(artifact.id),
                "scene_index": artifact.scene_index,
                "provider": artifact.provider,
                "provider_job_id": artifact.provider_job_id,
                "error_code": "CLIP_FAILED",
                "retryable": False,
            },
        )

    def _scene_count(self, job: Job) -> int:
        plan = self.db.scalar(
            select(Artifact.content).where(
                Artifact.job_id == job.id,
                Artifact.artifact_type == ArtifactType.SCENE_PLAN,
                Artifact.status == ArtifactStatus.COMPLETED,
            )
        )
        return len((plan or {}).get("scenes", []))

    def _should_resume(self, job: Job) -> bool:
        """A running job resumes when nothing is pending or scenes are still undispatched."""
        if job.status != JobStatus.RUNNING:
            return False
        counts = count_clips(self.db, job.id)
        if counts[ArtifactStatus.PENDING] == 0:
            return True
        dispatched = counts[ArtifactStatus.PENDING] + counts[ArtifactStatus.COMPLETED]
        return dispatched < self._scene_count(job)

    def _resume(self, project: Project, job: Job) -> bool:
        if self.resume_pipeline is None or job.id in self._resumed:
            return False
        logger.info(
            "Resuming pipeline after clip reconciliation",
            extra={"job_id": str(job.id), "project_id": str(project.id)},
        )
        self.resume_pipeline(str(project.id), str(job.id))
        self._resumed.add(job.id)
        return True

    def resume_deferred(self, provider: str | None = None) -> list[str]:
        """
        Resume running jobs that still have undispatched clip scenes.

        Such jobs were held back by a provider's concurrency limit and own
        no pending clip that would wake them. They are handed to
        ``resume_pipeline`` oldest first; each run re-checks admission, so
        jobs that still do not fit are simply deferred again.

        Args:
            provider: Only consider jobs whose project uses this video provider

        Returns:
            Ids of the jobs resumed
        """
        if self.resume_pipeline is None:
            return []

        jobs = list(
            self.db.scalars(
                select(Job)
                .where(
                    Job.status == JobStatus.RUNNING,
                    Job.current_step == PipelineStep.VIDEO_CLIPS.value,
                )
                .order_by(Job.created_at)
            )
        )
        resumed: list[str] = []
        for job in jobs:
            if job.id in self._resumed:
                continue
            project = self.db.get(Project, job.project_id)
            if project is None:
                continue
            if provider and project.provider_for(ProviderRole.VIDEO) != provider:
                continue
            counts = count_clips(self.db, job.id)
            dispatched = counts[ArtifactStatus.PENDING] + counts[ArtifactStatus.COMPLETED]
            if dispatched >= self._scene_count(job):
                continue
            logger.info(
                "Resuming job with deferred clips",
                extra={"job_id": str(job.id), "provider": provider, "dispatched": dispatched},
            )
            if self._resume(project, job):
                resumed.append(str(job.id))
        return resumed

    def poll_pending(
        self,
        providers: ProviderResolver,
        max_age: timedelta | None = None,
    ) -> dict[str, Any]:
        """
        Watchdog over every pending clip.

        Queries each clip's provider and reconciles terminal answers, which
        recovers missed webhooks. Clips pending for longer than ``max_age``
        are failed with a timeout reason.

        Returns:
            Summary counts of the sweep
        """
        now = self.clock()
        pending = list(
            self.db.scalars(
                select(Artifact)
                .where(
                    Artifact.artifact_type == ArtifactType.VIDEO_CLIP_PENDING,
                    Artifact.status == ArtifactStatus.PENDING,
                )
                .order_by(Artifact.created_at)
            )
        )
        summary: dict[str, Any] = {
            "checked": len(pending),
            "completed": 0,
            "failed": 0,
            "timed_out": 0,
            "still_pending": 0,
            "errors": 0,
        }
        adapters: dict[str, Any] = {}

        for artifact in pending:
            provider_id = artifact.provider or ""
            provider_job_id = artifact.provider_job_id or ""
            status: ClipStatus | None = None

            try:
                if provider_id not in adapters:
                    adapters[provider_id] = providers.resolve(ProviderRole.VIDEO, provider_id)
                status = adapters[provider_id].get_status(provider_job_id)
            except ProviderError as e:
                summary["errors"] += 1
                logger.warning(
                    f"Status check failed: {e.message}",
                    extra={
                        "provider": provider_id,
                        "provider_job_id": provider_job_id,
                        "error_code": e.code,
                    },
                )

            if status is None or not status.is_terminal:
                age = now - as_utc(artifact.created_at)
                if max_age is not None and age > max_age:
                    status = ClipStatus(
                        provider_job_id,
                        ClipState.FAILED,
                        failure_reason=f"Timed out after {int(age.total_seconds() // 60)} minutes pending",
                    )
                    summary["timed_out"] += 1
                else:
                    summary["still_pending"] += 1
                    continue

            result = self.reconcile(provider_job_id, status, provider=provider_id)
            if result.outcome in ("completed", "failed"):
                summary[result.outcome] += 1

        pending_left = self.db.scalar(
            select(func.count())
            .select_from(Artifact)
            .where(Artifact.status == ArtifactStatus.PENDING)
        )
        summary["pending_after"] = pending_left or 0
        summary["resumed_deferred"] = len(self.resume_deferred())

        logger.info("Pending clip sweep finished", extra=summary)
        return summary
