"""
Pipeline orchestrator.

Drives a job through script -> scene_plan -> voiceover -> video_clips ->
assembly, starting at the job's recorded ``current_step``. Every run is a
stateless unit of work: it re-reads the job and its artifacts, does as much
as it can and commits as it goes, so a crashed or failed run can be resumed
by invoking ``run`` again with the same ids.

Asynchronous clip providers make video_clips a step that can end a run
without finishing. The run then reports it is waiting; the reconciler
re-invokes the pipeline once the outstanding clips resolve.
"""

import logging
import traceback
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clipforge.core.config import Settings, get_settings
from clipforge.core.exceptions import ClipForgeException, ConflictError, NotFoundError, ProviderError, ValidationError
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
from clipforge.providers.base import ClipInput
from clipforge.providers.registry import ProviderRegistry, ProviderResolver
from clipforge.services.scene_planning import build_scene_plan, clip_seconds
from clipforge.services.tracking import (
    STEP_ORDER,
    clip_progress,
    progress_after,
    record_event,
    set_progress,
)

logger = logging.getLogger(__name__)

STEP_LABELS: dict[PipelineStep, str] = {
    PipelineStep.SCRIPT: "Script",
    PipelineStep.SCENE_PLAN: "Scene plan",
    PipelineStep.VOICEOVER: "Voiceover",
    PipelineStep.VIDEO_CLIPS: "Video clips",
    PipelineStep.ASSEMBLY: "Assembly",
}


@dataclass
class StepResult:
    """Outcome of a finished step, written to its step_finished event."""

    message: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class PipelineRunResult:
    """
    Summary of one orchestrator invocation.

    Attributes:
        job_id: Job that was run
        status: Job status after the run
        current_step: Step the job will resume from
        progress: Job progress after the run
        waiting_on: Clips still rendering at a provider
        deferred: Clips held back by provider concurrency limits
        error: Failure message, if the run failed
        error_code: Failure code, if the run failed
    """

    job_id: str
    status: str
    current_step: str
    progress: int
    waiting_on: int = 0
    deferred: int = 0
    error: str | None = None
    error_code: str | None = None

    @property
    def is_waiting(self) -> bool:
        return self.status == JobStatus.RUNNING.value and (self.waiting_on > 0 or self.deferred > 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "job_id": self.job_id,
            "status": self.status,
            "current_step": self.current_step,
            "progress": self.progress,
            "waiting_on": self.waiting_on,
            "deferred": self.deferred,
            "error": self.error,
            "error_code": self.error_code,
        }


def _as_uuid(value: UUID | str) -> UUID:
    return value if isinstance(value, UUID) else UUID(str(value))


class PipelineOrchestrator:
    """
    Runs (or resumes) a project's generation pipeline.

    Example:
        ```python
        with get_db_session() as db:
            result = PipelineOrchestrator(db).run(project_id, job_id)
        ```
    """

    def __init__(
        self,
        db: Session,
        providers: ProviderResolver | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.providers = providers or ProviderRegistry(settings=self.settings)
        self._handlers: dict[PipelineStep, Callable[[Project, Job], StepResult | None]] = {
            PipelineStep.SCRIPT: self._run_script,
            PipelineStep.SCENE_PLAN: self._run_scene_plan,
            PipelineStep.VOICEOVER: self._run_voiceover,
            PipelineStep.VIDEO_CLIPS: self._run_video_clips,
            PipelineStep.ASSEMBLY: self._run_assembly,
        }
        self._waiting_on = 0
        self._deferred = 0

    # =========================================================================
    # Entry point
    # =========================================================================

    def run(self, project_id: UUID | str, job_id: UUID | str) -> PipelineRunResult:
        """
        Run the pipeline for a job from its recorded current step.

        A completed job is left untouched. A failed job is resumed: its error
        is cleared and earlier artifacts are reused. Step failures are
        recorded on the job and project and returned, not raised.

        Raises:
            NotFoundError: If the project or job does not exist
            ValidationError: If the job belongs to another project
            ConflictError: If another job of the project is running
        """
        project, job = self._load(project_id, job_id)

        if job.status == JobStatus.COMPLETED:
            logger.info("Job already completed, nothing to run", extra={"job_id": str(job.id)})
            return self._result(job)

        self._ensure_exclusive(project, job)
        self._begin(project, job)

        for step in self._remaining_steps(job):
            try:
                finished = self._run_step(project, job, step)
            except Exception as exc:
                return self._fail(project.id, job.id, step, exc)

            if not finished:
                self.db.commit()
                logger.info(
                    "Pipeline waiting on clips",
                    extra={
                        "job_id": str(job.id),
                        "pending": self._waiting_on,
                        "deferred": self._deferred,
                    },
                )
                return self._result(job)

        job.complete()
        project.status = ProjectStatus.COMPLETED
        project.progress = 100
        project.current_step = PipelineStep.COMPLETED.value
        project.error_message = None
        self.db.commit()

        logger.info(
            "Pipeline completed",
            extra={"job_id": str(job.id), "project_id": str(project.id)},
        )
        return self._result(job)

    # =========================================================================
    # Run lifecycle
    # =========================================================================

    def _load(self, project_id: UUID | str, job_id: UUID | str) -> tuple[Project, Job]:
        project = self.db.get(Project, _as_uuid(project_id))
        if project is None:
            raise NotFoundError("Project", str(project_id))
        job = self.db.get(Job, _as_uuid(job_id))
        if job is None:
            raise NotFoundError("Job", str(job_id))
        if job.project_id != project.id:
            raise ValidationError(
                message=f"Job {job.id} does not belong to project {project.id}",
                field="job_id",
            )
        return project, job

    def _ensure_exclusive(self, project: Project, job: Job) -> None:
        other = self.db.scalar(
            select(Job.id).where(
                Job.project_id == project.id,
                Job.status == JobStatus.RUNNING,
                Job.id != job.id,
            )
        )
        if other is not None:
            raise ConflictError(
                message=f"Project {project.id} already has a running job ({other})",
                resource_type="Job",
                details={"running_job_id": str(other)},
            )

    def _begin(self, project: Project, job: Job) -> None:
        if job.status != JobStatus.RUNNING:
            if job.status == JobStatus.FAILED:
                logger.info(
                    "Resuming failed job",
                    extra={"job_id": str(job.id), "current_step": job.current_step},
                )
            job.start()

        project.status = ProjectStatus.GENERATING
        project.error_message = None
        project.current_step = job.current_step
        self.db.commit()

    def _remaining_steps(self, job: Job) -> list[PipelineStep]:
        if job.current_step == PipelineStep.COMPLETED.value:
            return []
        try:
            start = STEP_ORDER.index(PipelineStep(job.current_step))
        except ValueError:
            logger.warning(
                "Unknown current_step, starting from the beginning",
                extra={"job_id": str(job.id), "current_step": job.current_step},
            )
            start = 0
        return STEP_ORDER[start:]

    def _run_step(self, project: Project, job: Job, step: PipelineStep) -> bool:
        """Run one step; returns False if it dispatched work that is still outstanding."""
        job.current_step = step.value
        project.current_step = step.value
        label = STEP_LABELS[step]

        if self._should_announce(job, step):
            record_event(self.db, job, step, EventType.STEP_STARTED, f"{label} started")
            self.db.commit()

        outcome = self._handlers[step](project, job)
        if outcome is None:
            return False

        set_progress(job, project, progress_after(step))
        record_event(self.db, job, step, EventType.STEP_FINISHED, outcome.message, data=outcome.data)

        position = STEP_ORDER.index(step)
        next_step = STEP_ORDER[position + 1] if position + 1 < len(STEP_ORDER) else PipelineStep.COMPLETED
        job.current_step = next_step.value
        project.current_step = next_step.value
        self.db.commit()
        return True

    def _should_announce(self, job: Job, step: PipelineStep) -> bool:
        if step != PipelineStep.VIDEO_CLIPS:
            return True
        # Re-entering a clip step that already dispatched work is not a new start
        existing = self.db.scalar(
            select(func.count())
            .select_from(Artifact)
            .where(
                Artifact.job_id == job.id,
                Artifact.artifact_type.in_([ArtifactType.VIDEO_CLIP, ArtifactType.VIDEO_CLIP_PENDING]),
            )
        )
        return not existing

    def _fail(self, project_id: UUID, job_id: UUID, step: PipelineStep, exc: Exception) -> PipelineRunResult:
        stack = traceback.format_exc()
        self.db.rollback()

        if isinstance(exc, ClipForgeException):
            message, code = exc.message, exc.code
        else:
            message, code = str(exc) or type(exc).__name__, "UNEXPECTED_ERROR"
        retryable = exc.retryable if isinstance(exc, ProviderError) else False
        provider = exc.provider if isinstance(exc, ProviderError) else None

        logger.error(
            f"Pipeline step {step.value} failed: {message}",
            extra={
                "job_id": str(job_id),
                "project_id": str(project_id),
                "step": step.value,
                "error_code": code,
                "provider": provider,
            },
        )

        project = self.db.get(Project, project_id)
        job = self.db.get(Job, job_id)
        job.current_step = step.value
        job.fail(message)
        project.status = ProjectStatus.FAILED
        project.error_message = message
        project.current_step = step.value

        record_event(
            self.db,
            job,
            step,
            EventType.STEP_FAILED,
            f"{STEP_LABELS[step]} failed: {message}",
            data={
                "error_code": code,
                "retryable": retryable,
                "provider": provider,
                "traceback": stack,
            },
        )
        self.db.commit()

        result = self._result(job)
        result.error = message
        result.error_code = code
        return result

    def _result(self, job: Job) -> PipelineRunResult:
        return PipelineRunResult(
            job_id=str(job.id),
            status=job.status.value,
            current_step=job.current_step,
            progress=job.progress,
            waiting_on=self._waiting_on,
            deferred=self._deferred,
            error=job.error_message,
        )

    # =========================================================================
    # Artifact helpers
    # =========================================================================

    def _artifact(self, job: Job, artifact_type: ArtifactType) -> Artifact | None:
        return self.db.scalar(
            select(Artifact)
            .where(
                Artifact.job_id == job.id,
                Artifact.artifact_type == artifact_type,
                Artifact.status == ArtifactStatus.COMPLETED,
            )
            .order_by(Artifact.created_at.desc())
            .limit(1)
        )

    def _require(self, job: Job, artifact_type: ArtifactType) -> Artifact:
        artifact = self._artifact(job, artifact_type)
        if artifact is None:
            raise ValidationError(
                message=f"Missing {artifact_type.value} artifact for job {job.id}",
                field=artifact_type.value,
            )
        return artifact

    def _add_artifact(
        self,
        project: Project,
        job: Job,
        artifact_type: ArtifactType,
        **fields: Any,
    ) -> Artifact:
        artifact = Artifact(job_id=job.id, project_id=project.id, artifact_type=artifact_type, **fields)
        self.db.add(artifact)
        self.db.flush()
        return artifact

    def _provider(self, project: Project, role: ProviderRole) -> Any:
        return self.providers.resolve(role, project.provider_for(role))

    def _callback_url(self, provider_id: str) -> str:
        base = self.settings.public_base_url.rstrip("/")
        return f"{base}{self.settings.api_v1_prefix}/webhooks/video/{provider_id}"

    # =========================================================================
    # Steps
    # =========================================================================

    def _run_script(self, project: Project, job: Job) -> StepResult:
        existing = self._artifact(job, ArtifactType.SCRIPT)
        if existing is not None:
            return StepResult("Script already generated", {"artifact_id": str(existing.id)})

        llm = self._provider(project, ProviderRole.LLM)
        text = llm.generate_script(project.topic, project.style, project.duration, project.language)
        if not text or not text.strip():
            raise ProviderError(llm.provider_id, "Script provider returned empty text", code="EMPTY_OUTPUT")

        word_count = len(text.split())
        artifact = self._add_artifact(
            project,
            job,
            ArtifactType.SCRIPT,
            provider=llm.provider_id,
            content={"text": text},
            artifact_metadata={"word_count": word_count},
        )
        return StepResult(
            f"Script generated ({word_count} words)",
            {"artifact_id": str(artifact.id), "word_count": word_count},
        )

    def _run_scene_plan(self, project: Project, job: Job) -> StepResult:
        existing = self._artifact(job, ArtifactType.SCENE_PLAN)
        if existing is not None:
            return StepResult("Scene plan already generated", {"artifact_id": str(existing.id)})

        script = self._require(job, ArtifactType.SCRIPT).content["text"]
        llm = self._provider(project, ProviderRole.LLM)
        draft = llm.plan_scenes(script, project.duration, project.style)
        plan = build_scene_plan(draft, script, project.duration)

        for note in plan.notes:
            record_event(
                self.db,
                job,
                PipelineStep.SCENE_PLAN,
                EventType.STEP_PROGRESS,
                note,
                level=EventLevel.WARNING,
                data={"target_duration": plan.target_duration, "total_duration": plan.total_duration},
            )

        artifact = self._add_artifact(
            project,
            job,
            ArtifactType.SCENE_PLAN,
            provider=llm.provider_id,
            duration=plan.total_duration,
            content=plan.to_dict(),
        )
        return StepResult(
            f"Planned {len(plan.scenes)} scenes ({plan.total_duration:g}s)",
            {"artifact_id": str(artifact.id), "scene_count": len(plan.scenes), "used_fallback": plan.used_fallback},
        )

    def _run_voiceover(self, project: Project, job: Job) -> StepResult:
        existing = self._artifact(job, ArtifactType.VOICEOVER)
        if existing is not None:
            return StepResult("Voiceover already generated", {"artifact_id": str(existing.id)})

        script = self._require(job, ArtifactType.SCRIPT).content["text"]
        voice = self._provider(project, ProviderRole.VOICE)
        audio_url = voice.synthesize(script, project.language)

        artifact = self._add_artifact(
            project,
            job,
            ArtifactType.VOICEOVER,
            provider=voice.provider_id,
            file_url=audio_url,
        )
        return StepResult("Voiceover generated", {"artifact_id": str(artifact.id)})

    def _run_video_clips(self, project: Project, job: Job) -> StepResult | None:
        scenes = self._require(job, ArtifactType.SCENE_PLAN).content["scenes"]
        adapter = self._provider(project, ProviderRole.VIDEO)
        provider_id = adapter.provider_id
        limit = getattr(adapter, "max_concurrent_jobs", None)

        # Failed placeholders are ignored so their scenes are dispatched again
        clips: dict[int, Artifact] = {
            artifact.scene_index: artifact
            for artifact in self.db.scalars(
                select(Artifact)
                .where(
                    Artifact.job_id == job.id,
                    Artifact.artifact_type.in_([ArtifactType.VIDEO_CLIP, ArtifactType.VIDEO_CLIP_PENDING]),
                    Artifact.status != ArtifactStatus.FAILED,
                )
                .order_by(Artifact.created_at)
            )
        }
        in_flight = self.db.scalar(
            select(func.count())
            .select_from(Artifact)
            .where(
                Artifact.provider == provider_id,
                Artifact.artifact_type == ArtifactType.VIDEO_CLIP_PENDING,
                Artifact.status == ArtifactStatus.PENDING,
            )
        ) or 0

        deferred = 0
        for scene in scenes:
            index = scene["index"]
            if index in clips:
                continue
            if limit is not None and in_flight >= limit:
                deferred += 1
                continue

            record_event(
                self.db,
                job,
                PipelineStep.VIDEO_CLIPS,
                EventType.STEP_PROGRESS,
                f"Generating clip {index + 1}/{len(scenes)}",
                data={"scene_index": index, "provider": provider_id},
            )
            submission = adapter.generate(
                scene["prompt"],
                clip_seconds(scene["duration"]),
                aspect_ratio=project.aspect_ratio,
                callback_url=self._callback_url(provider_id),
            )

            if submission.is_async:
                clips[index] = self._add_artifact(
                    project,
                    job,
                    ArtifactType.VIDEO_CLIP_PENDING,
                    status=ArtifactStatus.PENDING,
                    scene_index=index,
                    duration=scene["duration"],
                    provider=provider_id,
                    provider_job_id=submission.provider_job_id,
                    artifact_metadata=submission.metadata,
                )
                in_flight += 1
            else:
                clips[index] = self._add_artifact(
                    project,
                    job,
                    ArtifactType.VIDEO_CLIP,
                    status=ArtifactStatus.COMPLETED,
                    scene_index=index,
                    duration=scene["duration"],
                    file_url=submission.file_url,
                    provider=provider_id,
                    artifact_metadata=submission.metadata,
                )

            completed = sum(1 for a in clips.values() if a.status == ArtifactStatus.COMPLETED)
            set_progress(job, project, clip_progress(completed, len(scenes)))
            self.db.commit()

        completed = sum(1 for a in clips.values() if a.status == ArtifactStatus.COMPLETED)
        if completed == len(scenes):
            return StepResult(
                f"All {len(scenes)} clips ready",
                {"clip_count": len(scenes), "provider": provider_id},
            )

        self._waiting_on = len(clips) - completed
        self._deferred = deferred
        message = f"Waiting on {self._waiting_on} clip(s) from {provider_id}"
        if deferred:
            message += f"; {deferred} deferred by the provider concurrency limit ({limit})"
        record_event(
            self.db,
            job,
            PipelineStep.VIDEO_CLIPS,
            EventType.STEP_PROGRESS,
            message,
            level=EventLevel.WARNING if deferred else EventLevel.INFO,
            data={"pending": self._waiting_on, "deferred": deferred, "completed": completed},
        )
        return None

    def _run_assembly(self, project: Project, job: Job) -> StepResult:
        existing = self._artifact(job, ArtifactType.FINAL_VIDEO)
        if existing is not None:
            return StepResult("Final video already assembled", {"artifact_id": str(existing.id)})

        # One clip per scene; the newest wins if a scene was dispatched twice
        by_scene: dict[int | None, Artifact] = {
            artifact.scene_index: artifact
            for artifact in self.db.scalars(
                select(Artifact)
                .where(
                    Artifact.job_id == job.id,
                    Artifact.artifact_type == ArtifactType.VIDEO_CLIP,
                    Artifact.status == ArtifactStatus.COMPLETED,
                )
                .order_by(Artifact.scene_index, Artifact.created_at)
            )
        }
        clips = list(by_scene.values())
        voiceover = self._require(job, ArtifactType.VOICEOVER)
        assembler = self._provider(project, ProviderRole.ASSEMBLY)

        final_url = assembler.assemble(
            [ClipInput(url=clip.file_url, duration=clip.duration or 0.0) for clip in clips],
            voiceover.file_url,
            aspect_ratio=project.aspect_ratio,
        )
        total = round(sum(clip.duration or 0.0 for clip in clips), 1)

        artifact = self._add_artifact(
            project,
            job,
            ArtifactType.FINAL_VIDEO,
            provider=assembler.provider_id,
            file_url=final_url,
            duration=total,
        )
        return StepResult(
            "Final video assembled",
            {"artifact_id": str(artifact.id), "file_url": final_url, "duration": total},
        )
