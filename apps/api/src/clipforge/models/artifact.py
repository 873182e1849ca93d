"""
Artifact model for pipeline outputs.

Artifacts hold every step's output: the script text, the scene plan, the
voiceover audio, each scene's clip and the final video. Clips from
asynchronous providers start as pending placeholders tagged with the
provider's job id and are resolved in place.
"""

from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clipforge.models.base import Base, TimestampMixin, UUIDMixin, enum_column
from clipforge.models.enums import ArtifactStatus, ArtifactType

if TYPE_CHECKING:
    from clipforge.models.job import Job


class Artifact(UUIDMixin, TimestampMixin, Base):
    """
    Artifact model.

    Attributes:
        id: Unique identifier (UUID)
        job_id: Owning job
        project_id: Owning project
        artifact_type: script, scene_plan, voiceover, video_clip, video_clip_pending, final_video
        status: pending, completed or failed
        file_url: Output URL (null until resolved, and for text artifacts)
        scene_index: Scene position for clips
        duration: Media duration in seconds
        content: JSON payload for text artifacts (script text, scenes)
        provider: Provider id that produced the artifact
        provider_job_id: Provider-side job id for asynchronous clips
        artifact_metadata: Provider-specific opaque map
    """

    __tablename__ = "artifacts"
    __table_args__ = (
        UniqueConstraint("provider", "provider_job_id", name="uq_artifacts_provider_job"),
        Index("ix_artifacts_job_type", "job_id", "artifact_type"),
    )

    job_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("jobs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    artifact_type: Mapped[ArtifactType] = mapped_column(
        enum_column(ArtifactType, "artifact_type"),
        nullable=False,
    )
    status: Mapped[ArtifactStatus] = mapped_column(
        enum_column(ArtifactStatus, "artifact_status"),
        nullable=False,
        default=ArtifactStatus.COMPLETED,
        index=True,
    )
    file_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    scene_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    duration: Mapped[float | None] = mapped_column(Float, nullable=True)
    content: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)

    provider: Mapped[str | None] = mapped_column(String(50), nullable=True)
    provider_job_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
    )

    # Note: 'metadata' is reserved in SQLAlchemy, so we use a different attribute name
    artifact_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        nullable=False,
        default=dict,
        doc="JSON: provider-specific details, never interpreted by the pipeline",
    )

    # Relationships
    job: Mapped["Job"] = relationship("Job", back_populates="artifacts")

    def __repr__(self) -> str:
        """Return string representation of the artifact."""
        scene = f" scene={self.scene_index}" if self.scene_index is not None else ""
        return f"<Artifact {self.id} [{self.artifact_type.value}:{self.status.value}]{scene}>"

    @property
    def is_pending(self) -> bool:
        return self.status == ArtifactStatus.PENDING
