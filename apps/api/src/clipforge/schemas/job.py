"""
Pydantic schemas for Job endpoints.

Jobs expose their progress, their timeline of events and the artifacts
each step produced.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from clipforge.models.enums import ArtifactStatus, ArtifactType, EventLevel, EventType, JobStatus


class JobResponse(BaseModel):
    """
    Schema for job response data.

    Attributes:
        id: Job unique identifier
        project_id: Owning project
        status: Current job status
        current_step: Step the job is on (or resumes from)
        progress: Completion percentage, never decreasing while running
        error_message: Failure message, if failed
        started_at: When the current run started
        finished_at: When the job reached a terminal state
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    project_id: UUID
    status: JobStatus
    current_step: str
    progress: int = Field(ge=0, le=100)
    error_message: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class JobEventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    job_id: UUID
    level: EventLevel
    step: str
    event_type: EventType
    message: str
    progress: int | None = None
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime


class ArtifactResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    job_id: UUID
    project_id: UUID
    artifact_type: ArtifactType
    status: ArtifactStatus
    file_url: str | None = None
    scene_index: int | None = None
    duration: float | None = None
    content: dict[str, Any] | None = None
    provider: str | None = None
    provider_job_id: str | None = None
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("artifact_metadata", "metadata"),
        description="Provider-specific details",
    )
    created_at: datetime
    updated_at: datetime


class WebhookAck(BaseModel):
    """Acknowledgement returned to a provider webhook."""

    provider: str
    provider_job_id: str
    outcome: str
    resumed: bool = False
