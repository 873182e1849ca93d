"""
Pydantic schemas for Project endpoints.

A project is a video generation request; creating one also creates its
first job and starts the pipeline.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from clipforge.models.enums import ProjectStatus, ProviderRole
from clipforge.models.project import DEFAULT_PROVIDERS

ASPECT_RATIOS = ("9:16", "16:9", "1:1")


class ProjectCreate(BaseModel):
    """
    Schema for creating a project.

    Attributes:
        title: Project title
        topic: What the video is about
        style: Tone/visual style hint
        duration: Target video length in seconds
        language: Script and voiceover language
        aspect_ratio: Output aspect ratio
        selected_providers: Provider id per role; missing roles use defaults
    """

    title: str = Field(min_length=1, max_length=255, description="Project title")
    topic: str = Field(min_length=1, max_length=2000, description="What the video is about")
    style: str | None = Field(default=None, max_length=100, description="Tone or visual style")
    duration: int = Field(default=30, ge=5, le=120, description="Target length in seconds")
    language: str = Field(default="en", min_length=2, max_length=10, description="Language code")
    aspect_ratio: str = Field(default="9:16", description="Output aspect ratio")
    selected_providers: dict[str, str] = Field(
        default_factory=dict,
        description="Provider id per role (llm, voice, video, assembly)",
    )

    @field_validator("aspect_ratio")
    @classmethod
    def check_aspect_ratio(cls, value: str) -> str:
        if value not in ASPECT_RATIOS:
            raise ValueError(f"aspect_ratio must be one of {', '.join(ASPECT_RATIOS)}")
        return value

    @field_validator("selected_providers")
    @classmethod
    def check_roles(cls, value: dict[str, str]) -> dict[str, str]:
        roles = {role.value for role in ProviderRole}
        unknown = set(value) - roles
        if unknown:
            raise ValueError(f"Unknown provider roles: {', '.join(sorted(unknown))}")
        return value

    def providers(self) -> dict[str, str]:
        """Selected providers merged over the defaults."""
        return {**DEFAULT_PROVIDERS, **self.selected_providers}


class ProjectResponse(BaseModel):
    """Project as returned by the API, with its latest job id."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    topic: str
    style: str | None = None
    duration: int
    language: str
    aspect_ratio: str
    status: ProjectStatus
    selected_providers: dict[str, Any] = Field(default_factory=dict)
    progress: int
    current_step: str | None = None
    error_message: str | None = None
    latest_job_id: UUID | None = None
    final_video_url: str | None = None
    created_at: datetime
    updated_at: datetime
