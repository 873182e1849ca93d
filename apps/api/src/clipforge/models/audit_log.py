"""
PublishAuditLog model: one entry per scheduled post status transition.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from clipforge.models.base import Base, UUIDMixin, enum_column, utcnow
from clipforge.models.enums import ActorType, AuditAction

if TYPE_CHECKING:
    from clipforge.models.scheduled_post import ScheduledPost


class PublishAuditLog(UUIDMixin, Base):
    """
    PublishAuditLog model (append-only).

    Attributes:
        id: Unique identifier (UUID)
        post_id: Audited scheduled post
        action: created, scheduled, published, failed or retried
        actor_type: user, system or webhook
        actor_id: Identity of the actor (user id, task name)
        audit_metadata: Diagnostic map (error codes, retry counts)
        timestamp: When the transition happened
    """

    __tablename__ = "publish_audit_logs"

    post_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("scheduled_posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    action: Mapped[AuditAction] = mapped_column(
        enum_column(AuditAction, "audit_action"),
        nullable=False,
    )
    actor_type: Mapped[ActorType] = mapped_column(
        enum_column(ActorType, "actor_type"),
        nullable=False,
        default=ActorType.SYSTEM,
    )
    actor_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    audit_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        nullable=False,
        default=dict,
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )

    post: Mapped["ScheduledPost"] = relationship(
        "ScheduledPost",
        back_populates="audit_entries",
    )

    def __repr__(self) -> str:
        return f"<PublishAuditLog {self.post_id} {self.action.value}>"
