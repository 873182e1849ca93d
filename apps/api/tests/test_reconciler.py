"""
Tests for asynchronous clip reconciliation (callbacks and the watchdog).
"""

from collections.abc import Callable
from datetime import timedelta
from typing import Any

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from clipforge.core.exceptions import ProviderError
from clipforge.models import (
    Artifact,
    ArtifactStatus,
    ArtifactType,
    EventType,
    Job,
    JobEvent,
    JobStatus,
    Project,
    ProjectStatus,
)
from clipforge.models.base import utcnow
from clipforge.providers.base import ClipState, ClipStatus
from clipforge.services.orchestrator import PipelineOrchestrator
from clipforge.services.reconciler import ClipReconciler
from tests.fakes import FakeProviders, FakeVideo


@pytest.fixture
def waiting_job(
    db: Session,
    async_providers: FakeProviders,
    project_factory: Callable[..., Any],
) -> tuple[Project, Job]:
    """A job parked on video_clips with clips gen-1 .. gen-4 pending."""
    project, job = project_factory()
    result = PipelineOrchestrator(db, providers=async_providers).run(project.id, job.id)
    assert result.waiting_on == 4
    return project, job


@pytest.fixture
def resumed() -> list[tuple[str, str]]:
    return []


@pytest.fixture
def reconciler(db: Session, resumed: list[tuple[str, str]]) -> ClipReconciler:
    return ClipReconciler(db, resume_pipeline=lambda project_id, job_id: resumed.append((project_id, job_id)))


def _done(provider_job_id: str) -> ClipStatus:
    return ClipStatus(
        provider_job_id,
        ClipState.COMPLETED,
        file_url=f"https://cdn.test/clips/{provider_job_id}.mp4",
        raw={"id": provider_job_id, "state": "completed"},
    )


def _artifact(db: Session, provider_job_id: str) -> Artifact:
    return db.scalar(select(Artifact).where(Artifact.provider_job_id == provider_job_id))


class TestReconcile:
    def test_completion_resolves_placeholder_in_place(
        self,
        db: Session,
        waiting_job: tuple[Project, Job],
        reconciler: ClipReconciler,
    ) -> None:
        placeholder_id = _artifact(db, "gen-1").id

        result = reconciler.reconcile("gen-1", _done("gen-1"), provider="luma")

        assert result.outcome == "completed"
        assert result.artifact_id == str(placeholder_id)
        artifact = _artifact(db, "gen-1")
        assert artifact.id == placeholder_id
        assert artifact.artifact_type == ArtifactType.VIDEO_CLIP
        assert artifact.status == ArtifactStatus.COMPLETED
        assert artifact.file_url == "https://cdn.test/clips/gen-1.mp4"
        assert artifact.artifact_metadata["provider_payload"] == {"id": "gen-1", "state": "completed"}

    def test_completion_advances_progress(
        self,
        db: Session,
        waiting_job: tuple[Project, Job],
        reconciler: ClipReconciler,
    ) -> None:
        project, job = waiting_job

        reconciler.reconcile("gen-1", _done("gen-1"), provider="luma")

        db.refresh(job)
        db.refresh(project)
        assert job.progress == 50  # 40 + 40 * 1/4
        assert project.progress == 50

    def test_duplicate_delivery_is_ignored(
        self,
        db: Session,
        waiting_job: tuple[Project, Job],
        reconciler: ClipReconciler,
    ) -> None:
        _, job = waiting_job

        first = reconciler.reconcile("gen-1", _done("gen-1"), provider="luma")
        second = reconciler.reconcile("gen-1", _done("gen-1"), provider="luma")

        assert first.outcome == "completed"
        assert second.outcome == "duplicate"
        assert len(list(db.scalars(select(Artifact).where(Artifact.provider_job_id == "gen-1")))) == 1
        ready = list(
            db.scalars(select(JobEvent).where(JobEvent.job_id == job.id, JobEvent.message == "Clip 1 ready"))
        )
        assert len(ready) == 1

    def test_late_failure_after_completion_is_ignored(
        self,
        db: Session,
        waiting_job: tuple[Project, Job],
        reconciler: ClipReconciler,
    ) -> None:
        _, job = waiting_job
        reconciler.reconcile("gen-1", _done("gen-1"), provider="luma")

        result = reconciler.reconcile("gen-1", ClipStatus("gen-1", ClipState.FAILED), provider="luma")

        assert result.outcome == "duplicate"
        db.refresh(job)
        assert job.status == JobStatus.RUNNING

    def test_unknown_and_pending_are_no_ops(
        self,
        db: Session,
        waiting_job: tuple[Project, Job],
        reconciler: ClipReconciler,
    ) -> None:
        assert reconciler.reconcile("gen-999", _done("gen-999")).outcome == "unknown"
        # Provider filter applies when given
        assert reconciler.reconcile("gen-1", _done("gen-1"), provider="runway").outcome == "unknown"

        result = reconciler.reconcile("gen-2", ClipStatus("gen-2", ClipState.PENDING), provider="luma")
        assert result.outcome == "pending"
        assert _artifact(db, "gen-2").status == ArtifactStatus.PENDING

    def test_failure_fails_job_and_project(
        self,
        db: Session,
        waiting_job: tuple[Project, Job],
        reconciler: ClipReconciler,
        resumed: list[tuple[str, str]],
    ) -> None:
        project, job = waiting_job

        result = reconciler.reconcile(
            "gen-2",
            ClipStatus("gen-2", ClipState.FAILED, failure_reason="content policy"),
            provider="luma",
        )

        assert result.outcome == "failed"
        assert not result.resumed
        assert resumed == []
        assert _artifact(db, "gen-2").status == ArtifactStatus.FAILED

        db.refresh(job)
        db.refresh(project)
        assert job.status == JobStatus.FAILED
        assert "content policy" in job.error_message
        assert project.status == ProjectStatus.FAILED
        assert project.error_message == job.error_message

        failed = db.scalar(
            select(JobEvent).where(JobEvent.job_id == job.id, JobEvent.event_type == EventType.STEP_FAILED)
        )
        assert failed.step == "video_clips"
        assert failed.data["error_code"] == "CLIP_FAILED"
        assert failed.data["provider_job_id"] == "gen-2"

    def test_failed_scene_is_redispatched_on_resume(
        self,
        db: Session,
        async_providers: FakeProviders,
        waiting_job: tuple[Project, Job],
        reconciler: ClipReconciler,
    ) -> None:
        project, job = waiting_job
        reconciler.reconcile("gen-2", ClipStatus("gen-2", ClipState.FAILED), provider="luma")

        result = PipelineOrchestrator(db, providers=async_providers).run(project.id, job.id)

        assert result.status == "running"
        assert len(async_providers.video.calls) == 5
        replacement = _artifact(db, "gen-5")
        assert replacement.scene_index == _artifact(db, "gen-2").scene_index
        assert replacement.status == ArtifactStatus.PENDING


class TestResume:
    def test_resumes_once_all_clips_resolved(
        self,
        db: Session,
        async_providers: FakeProviders,
        waiting_job: tuple[Project, Job],
        reconciler: ClipReconciler,
        resumed: list[tuple[str, str]],
    ) -> None:
        project, job = waiting_job

        for provider_job_id in ("gen-1", "gen-2", "gen-3"):
            assert not reconciler.reconcile(provider_job_id, _done(provider_job_id), provider="luma").resumed
        assert resumed == []

        last = reconciler.reconcile("gen-4", _done("gen-4"), provider="luma")
        assert last.resumed
        assert resumed == [(str(project.id), str(job.id))]

        result = PipelineOrchestrator(db, providers=async_providers).run(project.id, job.id)
        assert result.status == "completed"
        assert result.progress == 100
        final = db.scalar(
            select(Artifact).where(Artifact.job_id == job.id, Artifact.artifact_type == ArtifactType.FINAL_VIDEO)
        )
        assert final is not None

    def test_freed_slots_resume_deferred_job(
        self,
        db: Session,
        project_factory: Callable[..., Any],
        reconciler: ClipReconciler,
        resumed: list[tuple[str, str]],
    ) -> None:
        shared = FakeProviders(video=FakeVideo(asynchronous=True, max_concurrent_jobs=4))
        first_project, first_job = project_factory()
        second_project, second_job = project_factory(title="Leaf to Pot")

        first = PipelineOrchestrator(db, providers=shared).run(first_project.id, first_job.id)
        second = PipelineOrchestrator(db, providers=shared).run(second_project.id, second_job.id)
        assert first.waiting_on == 4
        assert second.waiting_on == 0
        assert second.deferred == 4
        db.refresh(second_job)
        assert second_job.status == JobStatus.RUNNING

        for provider_job_id in ("gen-1", "gen-2", "gen-3", "gen-4"):
            reconciler.reconcile(provider_job_id, _done(provider_job_id), provider="luma")

        assert (str(second_project.id), str(second_job.id)) in resumed
        assert resumed.count((str(second_project.id), str(second_job.id))) == 1

        result = PipelineOrchestrator(db, providers=shared).run(second_project.id, second_job.id)
        assert result.waiting_on == 4
        assert result.deferred == 0

    def test_sweep_resumes_deferred_job(
        self,
        db: Session,
        project_factory: Callable[..., Any],
        resumed: list[tuple[str, str]],
    ) -> None:
        shared = FakeProviders(video=FakeVideo(asynchronous=True, max_concurrent_jobs=4))
        first_project, first_job = project_factory()
        second_project, second_job = project_factory(title="Leaf to Pot")
        PipelineOrchestrator(db, providers=shared).run(first_project.id, first_job.id)
        PipelineOrchestrator(db, providers=shared).run(second_project.id, second_job.id)

        # Webhooks resolved the first job's clips without a resume callback
        plain = ClipReconciler(db)
        for provider_job_id in ("gen-1", "gen-2", "gen-3", "gen-4"):
            plain.reconcile(provider_job_id, _done(provider_job_id), provider="luma")

        sweeper = ClipReconciler(db, resume_pipeline=lambda project_id, job_id: resumed.append((project_id, job_id)))
        summary = sweeper.poll_pending(shared)

        assert summary["checked"] == 0
        assert summary["resumed_deferred"] == 1
        assert resumed == [(str(second_project.id), str(second_job.id))]

    def test_no_resume_without_callback(
        self,
        db: Session,
        waiting_job: tuple[Project, Job],
    ) -> None:
        plain = ClipReconciler(db)
        results = [plain.reconcile(f"gen-{n}", _done(f"gen-{n}"), provider="luma") for n in range(1, 5)]
        assert [r.outcome for r in results] == ["completed"] * 4
        assert not any(r.resumed for r in results)


class TestPollPending:
    def test_sweep_resolves_terminal_clips(
        self,
        db: Session,
        async_providers: FakeProviders,
        waiting_job: tuple[Project, Job],
        reconciler: ClipReconciler,
    ) -> None:
        video = async_providers.video
        video.complete("gen-1")
        video.statuses["gen-2"] = ClipStatus("gen-2", ClipState.FAILED, failure_reason="upstream error")
        video.statuses["gen-3"] = ProviderError("luma", "Service unavailable", retryable=True)

        summary = reconciler.poll_pending(async_providers)

        assert summary["checked"] == 4
        assert summary["completed"] == 1
        assert summary["failed"] == 1
        assert summary["errors"] == 1
        assert summary["still_pending"] == 2
        assert summary["timed_out"] == 0
        assert summary["pending_after"] == 2
        assert _artifact(db, "gen-1").status == ArtifactStatus.COMPLETED
        assert _artifact(db, "gen-3").status == ArtifactStatus.PENDING

    def test_stale_clips_time_out(
        self,
        db: Session,
        async_providers: FakeProviders,
        waiting_job: tuple[Project, Job],
    ) -> None:
        _, job = waiting_job
        later = ClipReconciler(db, clock=lambda: utcnow() + timedelta(minutes=45))

        summary = later.poll_pending(async_providers, max_age=timedelta(minutes=30))

        assert summary["timed_out"] == 4
        assert summary["failed"] == 4
        assert summary["pending_after"] == 0
        db.refresh(job)
        assert job.status == JobStatus.FAILED
        assert "Timed out after" in job.error_message

    def test_fresh_clips_are_left_pending(
        self,
        db: Session,
        async_providers: FakeProviders,
        waiting_job: tuple[Project, Job],
        reconciler: ClipReconciler,
    ) -> None:
        summary = reconciler.poll_pending(async_providers, max_age=timedelta(minutes=30))

        assert summary["still_pending"] == 4
        assert summary["timed_out"] == 0
        assert summary["pending_after"] == 4
