"""
Project model representing a user's video generation request.

A project captures what to generate (topic, style, duration, format) and
which provider fills each pipeline role. Its status mirrors the most
recent job.
"""

from typing import TYPE_CHECKING, Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clipforge.models.base import Base, TimestampMixin, UUIDMixin, enum_column
from clipforge.models.enums import ProjectStatus, ProviderRole

if TYPE_CHECKING:
    from clipforge.models.job import Job

DEFAULT_PROVIDERS: dict[str, str] = {
    ProviderRole.LLM.value: "openai",
    ProviderRole.VOICE.value: "elevenlabs",
    ProviderRole.VIDEO.value: "luma",
    ProviderRole.ASSEMBLY.value: "shotstack",
}


class Project(UUIDMixin, TimestampMixin, Base):
    """
    Project model.

    Attributes:
        id: Unique identifier (UUID)
        title: Display title
        topic: Subject the script is written about
        style: Tone/visual style hint passed to providers
        duration: Requested final video length in seconds
        language: Language code for script and voiceover
        aspect_ratio: Output aspect ratio (9:16, 16:9, 1:1)
        status: Lifecycle status
        selected_providers: Provider id per role (llm, voice, video, assembly)
        progress: Mirror of the active job's progress (0-100)
        current_step: Mirror of the active job's current step
        error_message: Last failure surfaced to the user
    """

    __tablename__ = "projects"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    topic: Mapped[str] = mapped_column(Text, nullable=False)
    style: Mapped[str | None] = mapped_column(String(100), nullable=True)
    duration: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=30,
        doc="Requested duration in seconds",
    )
    language: Mapped[str] = mapped_column(String(10), nullable=False, default="en")
    aspect_ratio: Mapped[str] = mapped_column(String(10), nullable=False, default="9:16")

    status: Mapped[ProjectStatus] = mapped_column(
        enum_column(ProjectStatus, "project_status"),
        nullable=False,
        default=ProjectStatus.DRAFT,
        index=True,
    )
    selected_providers: Mapped[dict[str, Any]] = mapped_column(
        nullable=False,
        default=lambda: dict(DEFAULT_PROVIDERS),
        doc="JSON: {role: provider_id}",
    )
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_step: Mapped[str | None] = mapped_column(String(50), nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    jobs: Mapped[list["Job"]] = relationship(
        "Job",
        back_populates="project",
        cascade="all, delete-orphan",
        order_by="Job.created_at",
    )

    def __repr__(self) -> str:
        """Return string representation of the project."""
        return f"<Project {self.id} [{self.status.value}]>"

    def provider_for(self, role: ProviderRole) -> str:
        """Return the selected provider id for a role, falling back to the default."""
        providers = self.selected_providers or {}
        return providers.get(role.value) or DEFAULT_PROVIDERS[role.value]
