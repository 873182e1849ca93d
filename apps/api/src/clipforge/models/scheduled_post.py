"""
ScheduledPost model: a publish intent with its own retry state machine.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clipforge.models.base import Base, JSONType, TimestampMixin, UUIDMixin, enum_column
from clipforge.models.enums import PostStatus

if TYPE_CHECKING:
    from clipforge.models.audit_log import PublishAuditLog


class ScheduledPost(UUIDMixin, TimestampMixin, Base):
    """
    ScheduledPost model.

    Status only moves scheduled -> publishing -> published|failed, and
    failed -> scheduled on retry. The queue worker enforces this with
    conditional updates; nothing writes scheduled -> published directly.

    Attributes:
        id: Unique identifier (UUID)
        platform: Target platform identifier (e.g. "tiktok")
        status: draft, scheduled, publishing, published or failed
        caption: Post caption
        hashtags: Hashtags (without '#') appended to the caption
        video_url: Publicly reachable video to publish
        privacy_level: Platform privacy setting
        project_id: Project that produced the video (optional)
        scheduled_at: When the post becomes due
        published_at: When the platform confirmed the post
        platform_post_id: Platform-side post id
        platform_url: Public URL of the post
        error_message: Last failure surfaced to the user
        error_code: Machine-readable code of the last failure
        retryable: Whether the last failure may be retried automatically
        retry_count: Failed attempts so far (never above max_retries)
        max_retries: Attempt ceiling
        post_metadata: Opaque platform-specific map
    """

    __tablename__ = "scheduled_posts"
    __table_args__ = (CheckConstraint("retry_count <= max_retries", name="retry_count_bounded"),)

    platform: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    status: Mapped[PostStatus] = mapped_column(
        enum_column(PostStatus, "post_status"),
        nullable=False,
        default=PostStatus.DRAFT,
        index=True,
    )
    caption: Mapped[str] = mapped_column(Text, nullable=False, default="")
    hashtags: Mapped[list[str]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
    )
    video_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    privacy_level: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="PUBLIC_TO_EVERYONE",
    )
    project_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    scheduled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        index=True,
    )
    published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    platform_post_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    platform_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    retryable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_retries: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    post_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        nullable=False,
        default=dict,
    )

    audit_entries: Mapped[list["PublishAuditLog"]] = relationship(
        "PublishAuditLog",
        back_populates="post",
        cascade="all, delete-orphan",
        order_by="PublishAuditLog.timestamp",
    )

    def __repr__(self) -> str:
        return f"<ScheduledPost {self.id} [{self.platform}:{self.status.value}]>"

    @property
    def can_retry(self) -> bool:
        """Check if the post may move from failed back to scheduled."""
        return self.status == PostStatus.FAILED and self.retry_count < self.max_retries
