"""
JobEvent model: the append-only timeline of a job.

Events are never updated after they are written; ordering by timestamp
reconstructs what happened during a run.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clipforge.models.base import Base, UUIDMixin, enum_column, utcnow
from clipforge.models.enums import EventLevel, EventType

if TYPE_CHECKING:
    from clipforge.models.job import Job


class JobEvent(UUIDMixin, Base):
    """
    JobEvent model.

    Attributes:
        id: Unique identifier (UUID)
        job_id: Owning job
        level: info, success, warning or error
        step: Pipeline step the event belongs to
        event_type: step_started, step_progress, step_finished or step_failed
        message: Human-readable summary
        progress: Job progress at the time of the event
        data: Opaque diagnostic map (error codes, tracebacks, provider ids)
        timestamp: When the event was written
    """

    __tablename__ = "job_events"

    job_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    level: Mapped[EventLevel] = mapped_column(
        enum_column(EventLevel, "event_level"),
        nullable=False,
        default=EventLevel.INFO,
    )
    step: Mapped[str] = mapped_column(String(50), nullable=False)
    event_type: Mapped[EventType] = mapped_column(
        enum_column(EventType, "event_type"),
        nullable=False,
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    progress: Mapped[int | None] = mapped_column(Integer, nullable=True)
    data: Mapped[dict[str, Any]] = mapped_column(nullable=False, default=dict)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )

    job: Mapped["Job"] = relationship("Job", back_populates="events")

    def __repr__(self) -> str:
        return f"<JobEvent {self.step}:{self.event_type.value} [{self.level.value}]>"
