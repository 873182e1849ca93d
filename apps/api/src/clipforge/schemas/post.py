"""
Pydantic schemas for scheduled post endpoints.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from clipforge.models.enums import ActorType, AuditAction, PostStatus


class PostCreate(BaseModel):
    """
    Schema for creating a scheduled post.

    Attributes:
        platform: Target platform (e.g. "tiktok")
        video_url: Publicly reachable video to publish
        caption: Post caption
        hashtags: Hashtags appended to the caption
        scheduled_at: When to publish; omitted leaves the post as a draft
        publish_now: Schedule for immediately and publish right away
        project_id: Project that produced the video
    """

    platform: str = Field(min_length=1, max_length=50)
    video_url: str = Field(min_length=1, description="Publicly reachable video URL")
    caption: str = Field(default="", description="Post caption")
    hashtags: list[str] = Field(default_factory=list, description="Hashtags, with or without '#'")
    scheduled_at: datetime | None = Field(default=None, description="When the post becomes due")
    publish_now: bool = Field(default=False, description="Publish immediately")
    privacy_level: str = Field(default="PUBLIC_TO_EVERYONE", max_length=50)
    project_id: UUID | None = None
    max_retries: int | None = Field(default=None, ge=0, le=10)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("platform")
    @classmethod
    def normalize_platform(cls, value: str) -> str:
        return value.strip().lower()


class PostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    platform: str
    status: PostStatus
    caption: str
    hashtags: list[str] = Field(default_factory=list)
    video_url: str | None = None
    privacy_level: str
    project_id: UUID | None = None
    scheduled_at: datetime | None = None
    published_at: datetime | None = None
    platform_post_id: str | None = None
    platform_url: str | None = None
    error_message: str | None = None
    error_code: str | None = None
    retryable: bool = False
    retry_count: int
    max_retries: int
    created_at: datetime
    updated_at: datetime


class AuditEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    post_id: UUID
    action: AuditAction
    actor_type: ActorType
    actor_id: str | None = None
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("audit_metadata", "metadata"),
    )
    timestamp: datetime
