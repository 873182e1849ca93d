"""
Job model for pipeline executions.

A job is one execution attempt of a project's pipeline. Resuming a failed
job reuses the same row, so the job carries the step to restart from.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clipforge.models.base import Base, TimestampMixin, UUIDMixin, enum_column, utcnow
from clipforge.models.enums import JobStatus, PipelineStep

if TYPE_CHECKING:
    from clipforge.models.artifact import Artifact
    from clipforge.models.job_event import JobEvent
    from clipforge.models.project import Project


class Job(UUIDMixin, TimestampMixin, Base):
    """
    Job model tracking one run of the generation pipeline.

    Attributes:
        id: Unique identifier (UUID)
        project_id: Parent project reference
        status: Execution status
        current_step: Step to run (or resume) next
        progress: 0-100, never decreases while running
        started_at: When execution (or the latest resume) started
        finished_at: When the job reached a terminal state
        error_message: Error details if failed
    """

    __tablename__ = "jobs"

    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[JobStatus] = mapped_column(
        enum_column(JobStatus, "job_status"),
        nullable=False,
        default=JobStatus.PENDING,
        index=True,
    )
    current_step: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default=PipelineStep.SCRIPT.value,
        doc="Pipeline step: script, scene_plan, voiceover, video_clips, assembly, completed",
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timing
    started_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    finished_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Relationships
    project: Mapped["Project"] = relationship("Project", back_populates="jobs")
    artifacts: Mapped[list["Artifact"]] = relationship(
        "Artifact",
        back_populates="job",
        cascade="all, delete-orphan",
    )
    events: Mapped[list["JobEvent"]] = relationship(
        "JobEvent",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="JobEvent.timestamp",
    )

    def __repr__(self) -> str:
        """Return string representation of the job."""
        return f"<Job {self.id} [{self.current_step}:{self.status.value}]>"

    def start(self) -> None:
        """
        Mark job as running.

        A failed job being resumed has its error cleared; its current_step
        is left untouched so execution restarts where it stopped.
        """
        self.status = JobStatus.RUNNING
        self.started_at = utcnow()
        self.finished_at = None
        self.error_message = None

    def complete(self) -> None:
        """Mark job as completed."""
        self.status = JobStatus.COMPLETED
        self.current_step = PipelineStep.COMPLETED.value
        self.progress = 100
        self.finished_at = utcnow()

    def fail(self, error_message: str) -> None:
        """
        Mark job as failed with error message.

        Args:
            error_message: Description of the failure
        """
        self.status = JobStatus.FAILED
        self.finished_at = utcnow()
        self.error_message = error_message

    def advance_progress(self, value: int) -> int:
        """
        Raise progress to ``value`` without ever lowering it.

        Returns:
            The progress after the update
        """
        self.progress = max(self.progress or 0, min(int(value), 100))
        return self.progress

    @property
    def is_active(self) -> bool:
        """Check if job is currently active (pending, queued or running)."""
        return self.status in [JobStatus.PENDING, JobStatus.QUEUED, JobStatus.RUNNING]

    @property
    def is_terminal(self) -> bool:
        """Check if job is in a terminal state."""
        return self.status in [JobStatus.COMPLETED, JobStatus.FAILED]
