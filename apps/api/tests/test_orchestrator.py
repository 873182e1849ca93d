"""
Tests for the pipeline orchestrator.

Providers are in-process fakes; the reconciler is driven directly where
the pipeline waits on asynchronous clips.
"""

from collections import Counter
from collections.abc import Callable
from typing import Any

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clipforge.core.exceptions import ConflictError, NotFoundError, ValidationError
from clipforge.models import (
    Artifact,
    ArtifactStatus,
    ArtifactType,
    EventLevel,
    EventType,
    Job,
    JobEvent,
    JobStatus,
    ProjectStatus,
)
from clipforge.services.orchestrator import PipelineOrchestrator
from clipforge.services.reconciler import ClipReconciler
from tests.fakes import FakeLLM, FakeProviders, FakeVideo, FakeVoice


def _artifact_counts(db: Session, job: Job) -> Counter:
    return Counter(db.scalars(select(Artifact.artifact_type).where(Artifact.job_id == job.id)))


def _events(db: Session, job: Job, **filters: Any) -> list[JobEvent]:
    query = select(JobEvent).where(JobEvent.job_id == job.id)
    for name, value in filters.items():
        query = query.where(getattr(JobEvent, name) == value)
    return list(db.scalars(query))


class TestSynchronousRun:
    def test_runs_all_steps(
        self,
        db: Session,
        providers: FakeProviders,
        project_factory: Callable[..., Any],
    ) -> None:
        project, job = project_factory()

        result = PipelineOrchestrator(db, providers=providers).run(project.id, job.id)

        assert result.status == "completed"
        assert result.current_step == "completed"
        assert result.progress == 100
        assert not result.is_waiting

        db.refresh(project)
        assert project.status == ProjectStatus.COMPLETED
        assert project.progress == 100
        assert project.error_message is None

        counts = _artifact_counts(db, job)
        assert counts[ArtifactType.SCRIPT] == 1
        assert counts[ArtifactType.SCENE_PLAN] == 1
        assert counts[ArtifactType.VOICEOVER] == 1
        assert counts[ArtifactType.VIDEO_CLIP] == 4
        assert counts[ArtifactType.FINAL_VIDEO] == 1
        assert counts[ArtifactType.VIDEO_CLIP_PENDING] == 0

    def test_step_progress_follows_weights(
        self,
        db: Session,
        providers: FakeProviders,
        project_factory: Callable[..., Any],
    ) -> None:
        project, job = project_factory()
        PipelineOrchestrator(db, providers=providers).run(project.id, job.id)

        finished = {e.step: e.progress for e in _events(db, job, event_type=EventType.STEP_FINISHED)}
        assert finished == {
            "script": 15,
            "scene_plan": 25,
            "voiceover": 40,
            "video_clips": 80,
            "assembly": 100,
        }
        started = [e.step for e in _events(db, job, event_type=EventType.STEP_STARTED)]
        assert sorted(started) == sorted(["script", "scene_plan", "voiceover", "video_clips", "assembly"])

    def test_clips_requested_per_scene(
        self,
        db: Session,
        providers: FakeProviders,
        project_factory: Callable[..., Any],
    ) -> None:
        project, job = project_factory(aspect_ratio="1:1")
        PipelineOrchestrator(db, providers=providers).run(project.id, job.id)

        calls = providers.video.calls
        assert [c["prompt"] for c in calls] == [f"Cinematic shot {i} of coffee" for i in range(1, 5)]
        assert all(c["duration_seconds"] == 8 for c in calls)  # 7.5s scenes round to 8
        assert all(c["aspect_ratio"] == "1:1" for c in calls)
        assert calls[0]["callback_url"] == "https://clipforge.test/api/v1/webhooks/video/luma"

    def test_assembly_gets_ordered_clips_and_voiceover(
        self,
        db: Session,
        providers: FakeProviders,
        project_factory: Callable[..., Any],
    ) -> None:
        project, job = project_factory()
        PipelineOrchestrator(db, providers=providers).run(project.id, job.id)

        clips, audio_url = providers.assembly.calls[0]
        assert [c.url for c in clips] == [f"https://cdn.test/clips/{n}.mp4" for n in range(1, 5)]
        assert audio_url == "https://cdn.test/audio/voiceover.mp3"

        final = db.scalar(
            select(Artifact).where(Artifact.job_id == job.id, Artifact.artifact_type == ArtifactType.FINAL_VIDEO)
        )
        assert final.file_url == "https://cdn.test/final/video.mp4"
        assert final.duration == 30.0

    def test_scene_plan_fallback_is_reported(
        self,
        db: Session,
        project_factory: Callable[..., Any],
    ) -> None:
        providers = FakeProviders(llm=FakeLLM(scene_count=3))
        project, job = project_factory()

        PipelineOrchestrator(db, providers=providers).run(project.id, job.id)

        warnings = _events(db, job, step="scene_plan", level=EventLevel.WARNING)
        assert len(warnings) == 1
        assert "Draft had 3 scenes" in warnings[0].message
        assert _artifact_counts(db, job)[ArtifactType.VIDEO_CLIP] == 5


class TestFailureAndResume:
    def test_provider_failure_marks_job_and_project_failed(
        self,
        db: Session,
        project_factory: Callable[..., Any],
    ) -> None:
        providers = FakeProviders(voice=FakeVoice(failures=1))
        project, job = project_factory()

        result = PipelineOrchestrator(db, providers=providers).run(project.id, job.id)

        assert result.status == "failed"
        assert result.current_step == "voiceover"
        assert result.error_code == "PROVIDER_ERROR"
        assert result.error == "Voice service unavailable"
        assert result.progress == 25

        db.refresh(job)
        db.refresh(project)
        assert job.status == JobStatus.FAILED
        assert job.finished_at is not None
        assert project.status == ProjectStatus.FAILED
        assert project.error_message == "Voice service unavailable"

        failed = _events(db, job, event_type=EventType.STEP_FAILED)
        assert len(failed) == 1
        assert failed[0].step == "voiceover"
        assert failed[0].level == EventLevel.ERROR
        assert failed[0].data["error_code"] == "PROVIDER_ERROR"
        assert failed[0].data["retryable"] is True
        assert failed[0].data["provider"] == "elevenlabs"
        assert "Traceback" in failed[0].data["traceback"]

    def test_resume_reuses_earlier_artifacts(
        self,
        db: Session,
        project_factory: Callable[..., Any],
    ) -> None:
        providers = FakeProviders(voice=FakeVoice(failures=1))
        project, job = project_factory()
        PipelineOrchestrator(db, providers=providers).run(project.id, job.id)

        result = PipelineOrchestrator(db, providers=providers).run(project.id, job.id)

        assert result.status == "completed"
        assert result.error is None
        assert providers.llm.script_calls == 1
        assert providers.llm.plan_calls == 1
        assert providers.voice.calls == 2

        counts = _artifact_counts(db, job)
        assert counts[ArtifactType.SCRIPT] == 1
        assert counts[ArtifactType.SCENE_PLAN] == 1
        assert counts[ArtifactType.VOICEOVER] == 1

        db.refresh(project)
        assert project.status == ProjectStatus.COMPLETED
        assert project.error_message is None

    def test_empty_script_fails_the_script_step(
        self,
        db: Session,
        project_factory: Callable[..., Any],
    ) -> None:
        providers = FakeProviders(llm=FakeLLM(script="   "))
        project, job = project_factory()

        result = PipelineOrchestrator(db, providers=providers).run(project.id, job.id)

        assert result.status == "failed"
        assert result.current_step == "script"
        assert result.error_code == "EMPTY_OUTPUT"
        assert _artifact_counts(db, job) == Counter()

    def test_unexpected_exception_is_recorded(
        self,
        db: Session,
        providers: FakeProviders,
        project_factory: Callable[..., Any],
    ) -> None:
        def broken(*args: Any, **kwargs: Any) -> str:
            raise RuntimeError("assembler crashed")

        providers.assembly.assemble = broken  # type: ignore[method-assign]
        project, job = project_factory()

        result = PipelineOrchestrator(db, providers=providers).run(project.id, job.id)

        assert result.status == "failed"
        assert result.current_step == "assembly"
        assert result.error_code == "UNEXPECTED_ERROR"
        assert result.error == "assembler crashed"
        # Clips finished before assembly failed
        assert result.progress == 80


class TestRunGuards:
    def test_completed_job_is_left_untouched(
        self,
        db: Session,
        providers: FakeProviders,
        project_factory: Callable[..., Any],
    ) -> None:
        project, job = project_factory()
        PipelineOrchestrator(db, providers=providers).run(project.id, job.id)
        event_count = len(_events(db, job))

        result = PipelineOrchestrator(db, providers=providers).run(project.id, job.id)

        assert result.status == "completed"
        assert providers.llm.script_calls == 1
        assert len(_events(db, job)) == event_count

    def test_other_running_job_conflicts(
        self,
        db: Session,
        providers: FakeProviders,
        project_factory: Callable[..., Any],
    ) -> None:
        project, job = project_factory()
        db.add(Job(project_id=project.id, status=JobStatus.RUNNING))
        db.commit()

        with pytest.raises(ConflictError):
            PipelineOrchestrator(db, providers=providers).run(project.id, job.id)
        assert providers.llm.script_calls == 0

    def test_job_of_another_project_is_rejected(
        self,
        db: Session,
        providers: FakeProviders,
        project_factory: Callable[..., Any],
    ) -> None:
        project, _ = project_factory()
        _, other_job = project_factory(title="Other")

        with pytest.raises(ValidationError):
            PipelineOrchestrator(db, providers=providers).run(project.id, other_job.id)

    def test_missing_job(
        self,
        db: Session,
        providers: FakeProviders,
        project_factory: Callable[..., Any],
    ) -> None:
        project, _ = project_factory()

        with pytest.raises(NotFoundError):
            PipelineOrchestrator(db, providers=providers).run(
                project.id, "00000000-0000-0000-0000-000000000000"
            )


class TestAsynchronousClips:
    def test_run_waits_on_pending_clips(
        self,
        db: Session,
        async_providers: FakeProviders,
        project_factory: Callable[..., Any],
    ) -> None:
        project, job = project_factory()

        result = PipelineOrchestrator(db, providers=async_providers).run(project.id, job.id)

        assert result.status == "running"
        assert result.current_step == "video_clips"
        assert result.waiting_on == 4
        assert result.deferred == 0
        assert result.is_waiting
        assert result.progress == 40

        pending = list(
            db.scalars(
                select(Artifact).where(
                    Artifact.job_id == job.id,
                    Artifact.artifact_type == ArtifactType.VIDEO_CLIP_PENDING,
                )
            )
        )
        assert sorted(a.provider_job_id for a in pending) == ["gen-1", "gen-2", "gen-3", "gen-4"]
        assert all(a.status == ArtifactStatus.PENDING for a in pending)
        assert all(a.provider == "luma" for a in pending)

    def test_rerun_while_waiting_does_not_resubmit(
        self,
        db: Session,
        async_providers: FakeProviders,
        project_factory: Callable[..., Any],
    ) -> None:
        project, job = project_factory()
        PipelineOrchestrator(db, providers=async_providers).run(project.id, job.id)

        result = PipelineOrchestrator(db, providers=async_providers).run(project.id, job.id)

        assert result.waiting_on == 4
        assert len(async_providers.video.calls) == 4

    def test_admission_control_defers_over_limit(
        self,
        db: Session,
        project_factory: Callable[..., Any],
    ) -> None:
        video = FakeVideo(asynchronous=True, max_concurrent_jobs=2)
        providers = FakeProviders(video=video)
        project, job = project_factory()
        resumed: list[tuple[str, str]] = []
        reconciler = ClipReconciler(db, resume_pipeline=lambda p, j: resumed.append((p, j)))

        result = PipelineOrchestrator(db, providers=providers).run(project.id, job.id)

        assert len(video.calls) == 2
        assert result.waiting_on == 2
        assert result.deferred == 2
        waiting = _events(db, job, step="video_clips", level=EventLevel.WARNING)
        assert any("deferred" in e.message for e in waiting)

        # Each resolved clip frees a slot for a deferred scene
        for provider_job_id in ("gen-1", "gen-2"):
            video.complete(provider_job_id)
            outcome = reconciler.reconcile(provider_job_id, video.get_status(provider_job_id), provider="luma")
            assert outcome.outcome == "completed"
            assert outcome.resumed
        assert resumed == [(str(project.id), str(job.id))] * 2

        result = PipelineOrchestrator(db, providers=providers).run(project.id, job.id)
        assert len(video.calls) == 4
        assert result.waiting_on == 2
        assert result.deferred == 0

        for provider_job_id in ("gen-3", "gen-4"):
            video.complete(provider_job_id)
            reconciler.reconcile(provider_job_id, video.get_status(provider_job_id), provider="luma")

        result = PipelineOrchestrator(db, providers=providers).run(project.id, job.id)
        assert result.status == "completed"
        assert len(video.calls) == 4

        started = _events(db, job, step="video_clips", event_type=EventType.STEP_STARTED)
        assert len(started) == 1

        clips, _ = providers.assembly.calls[0]
        assert [c.url for c in clips] == [f"https://cdn.test/clips/gen-{n}.mp4" for n in range(1, 5)]

    def test_limit_counts_clips_of_other_jobs(
        self,
        db: Session,
        project_factory: Callable[..., Any],
    ) -> None:
        video = FakeVideo(asynchronous=True, max_concurrent_jobs=5)
        providers = FakeProviders(video=video)
        first_project, first_job = project_factory()
        second_project, second_job = project_factory(title="Second")

        PipelineOrchestrator(db, providers=providers).run(first_project.id, first_job.id)
        result = PipelineOrchestrator(db, providers=providers).run(second_project.id, second_job.id)

        assert result.waiting_on == 1
        assert result.deferred == 3
        in_flight = db.scalar(
            select(func.count())
            .select_from(Artifact)
            .where(Artifact.status == ArtifactStatus.PENDING, Artifact.provider == "luma")
        )
        assert in_flight == 5
