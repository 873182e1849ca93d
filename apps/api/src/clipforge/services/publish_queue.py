"""
Scheduled post queue worker.

``PublishQueueWorker.sweep`` is invoked on a fixed interval (Celery beat)
and publishes every due post plus every failed post that is still
retry-eligible once its backoff delay has passed. Each post is claimed
with a conditional scheduled -> publishing update committed before any
platform call, so two overlapping sweeps never publish the same post twice.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from clipforge.core.config import Settings, get_settings
from clipforge.core.credentials import CredentialStore, get_credential_store
from clipforge.core.exceptions import ConflictError, NotFoundError
from clipforge.models import ActorType, AuditAction, PostStatus, PublishAuditLog, ScheduledPost
from clipforge.models.base import as_utc, utcnow
from clipforge.publishers.base import PublishRequest, PublishResult, sanitize
from clipforge.publishers.registry import PublisherRegistry, PublisherResolver

logger = logging.getLogger(__name__)


def record_audit(
    db: Session,
    post: ScheduledPost,
    action: AuditAction,
    actor_type: ActorType = ActorType.SYSTEM,
    actor_id: str | None = None,
    metadata: dict[str, Any] | None = None,
) -> PublishAuditLog:
    """Append an audit entry for a post status transition."""
    entry = PublishAuditLog(
        post_id=post.id,
        action=action,
        actor_type=actor_type,
        actor_id=actor_id,
        audit_metadata=metadata or {},
    )
    db.add(entry)
    return entry


def create_scheduled_post(
    db: Session,
    *,
    platform: str,
    video_url: str | None,
    caption: str = "",
    hashtags: list[str] | None = None,
    scheduled_at: datetime | None = None,
    privacy_level: str = "PUBLIC_TO_EVERYONE",
    project_id: UUID | None = None,
    max_retries: int | None = None,
    metadata: dict[str, Any] | None = None,
    actor_type: ActorType = ActorType.USER,
    actor_id: str | None = None,
    settings: Settings | None = None,
) -> ScheduledPost:
    """
    Create a post, scheduled when ``scheduled_at`` is given, draft otherwise.

    Writes a ``created`` audit entry, plus ``scheduled`` for scheduled posts.
    """
    settings = settings or get_settings()
    post = ScheduledPost(
        platform=platform.lower(),
        status=PostStatus.SCHEDULED if scheduled_at else PostStatus.DRAFT,
        caption=caption,
        hashtags=list(hashtags or []),
        video_url=video_url,
        scheduled_at=scheduled_at,
        privacy_level=privacy_level,
        project_id=project_id,
        max_retries=max_retries if max_retries is not None else settings.scheduled_post_max_retries,
        post_metadata=metadata or {},
    )
    db.add(post)
    db.flush()

    record_audit(db, post, AuditAction.CREATED, actor_type, actor_id)
    if scheduled_at:
        record_audit(
            db,
            post,
            AuditAction.SCHEDULED,
            actor_type,
            actor_id,
            metadata={"scheduled_at": scheduled_at.isoformat()},
        )
    db.commit()
    db.refresh(post)

    logger.info(
        "Post created",
        extra={"post_id": str(post.id), "platform": post.platform, "status": post.status.value},
    )
    return post


class PublishQueueWorker:
    """
    Publishes due and retry-eligible scheduled posts.

    Example:
        ```python
        with get_db_session() as db:
            summary = PublishQueueWorker(db).sweep()
        ```
    """

    def __init__(
        self,
        db: Session,
        publishers: PublisherResolver | None = None,
        credentials: CredentialStore | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.db = db
        self.settings = settings or get_settings()
        self.publishers = publishers or PublisherRegistry(settings=self.settings)
        self.credentials = credentials or get_credential_store()
        self.clock = clock

    # =========================================================================
    # Sweep
    # =========================================================================

    def sweep(self, now: datetime | None = None) -> dict[str, int]:
        """
        Run one queue pass.

        Returns:
            Counts of due, backing_off, retried, claimed, skipped, published
            and failed posts
        """
        now = now or self.clock()
        summary = {"due": 0, "backing_off": 0, "retried": 0, "claimed": 0, "skipped": 0, "published": 0, "failed": 0}

        due_ids = list(
            self.db.scalars(
                select(ScheduledPost.id)
                .where(
                    ScheduledPost.status == PostStatus.SCHEDULED,
                    ScheduledPost.scheduled_at <= now,
                )
                .order_by(ScheduledPost.scheduled_at)
            )
        )
        failed = self.db.execute(
            select(ScheduledPost.id, ScheduledPost.retry_count, ScheduledPost.updated_at)
            .where(
                ScheduledPost.status == PostStatus.FAILED,
                ScheduledPost.retryable.is_(True),
                ScheduledPost.retry_count < ScheduledPost.max_retries,
            )
            .order_by(ScheduledPost.updated_at)
        ).all()
        retry_ids = [
            post_id
            for post_id, retry_count, failed_at in failed
            if as_utc(failed_at) + self.retry_delay(retry_count) <= now
        ]
        summary["due"] = len(due_ids)
        summary["backing_off"] = len(failed) - len(retry_ids)

        for post_id in retry_ids:
            if self._requeue(post_id, ActorType.SYSTEM, "queue-worker", now):
                summary["retried"] += 1
                due_ids.append(post_id)

        for post_id in due_ids:
            if not self._claim(post_id):
                summary["skipped"] += 1
                continue
            summary["claimed"] += 1
            result = self._process(post_id)
            summary["published" if result.success else "failed"] += 1

        logger.info("Queue sweep finished", extra=summary)
        return summary

    def retry_delay(self, retry_count: int) -> timedelta:
        """Backoff before the automatic retry following failure number ``retry_count``."""
        delays = self.settings.publish_retry_delays_seconds
        return timedelta(seconds=delays[min(max(retry_count - 1, 0), len(delays) - 1)])

    def publish_now(self, post_id: UUID | str) -> PublishResult | None:
        """
        Claim and publish a single due post.

        Returns:
            The publish result, or None if the post could not be claimed
        """
        post_id = post_id if isinstance(post_id, UUID) else UUID(str(post_id))
        post = self.db.get(ScheduledPost, post_id)
        if post is None:
            raise NotFoundError("ScheduledPost", str(post_id))

        if not self._claim(post_id):
            logger.info(
                "Post not claimable, skipping publish",
                extra={"post_id": str(post_id), "status": post.status.value},
            )
            return None
        return self._process(post_id)

    def requeue(
        self,
        post_id: UUID | str,
        actor_type: ActorType = ActorType.USER,
        actor_id: str | None = None,
    ) -> ScheduledPost:
        """
        Move a failed post back to scheduled (user-initiated retry).

        Raises:
            NotFoundError: If the post does not exist
            ConflictError: If the post is not failed or has no retries left
        """
        post_id = post_id if isinstance(post_id, UUID) else UUID(str(post_id))
        post = self.db.get(ScheduledPost, post_id)
        if post is None:
            raise NotFoundError("ScheduledPost", str(post_id))
        if not post.can_retry:
            raise ConflictError(
                message=(
                    f"Post cannot be retried (status={post.status.value}, "
                    f"retries {post.retry_count}/{post.max_retries})"
                ),
                resource_type="ScheduledPost",
                details={"status": post.status.value, "retry_count": post.retry_count},
            )

        if not self._requeue(post_id, actor_type, actor_id, self.clock()):
            raise ConflictError(message="Post was modified concurrently", resource_type="ScheduledPost")

        self.db.refresh(post)
        return post

    # =========================================================================
    # Transitions
    # =========================================================================

    def _claim(self, post_id: UUID) -> bool:
        """Exclusive scheduled -> publishing transition, committed immediately."""
        claimed = self.db.execute(
            update(ScheduledPost)
            .where(ScheduledPost.id == post_id, ScheduledPost.status == PostStatus.SCHEDULED)
            .values(status=PostStatus.PUBLISHING, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        if claimed.rowcount != 1:
            logger.debug("Post already claimed", extra={"post_id": str(post_id)})
            return False
        return True

    def _requeue(self, post_id: UUID, actor_type: ActorType, actor_id: str | None, now: datetime) -> bool:
        """Conditional failed -> scheduled transition for posts with retries left."""
        moved = self.db.execute(
            update(ScheduledPost)
            .where(
                ScheduledPost.id == post_id,
                ScheduledPost.status == PostStatus.FAILED,
                ScheduledPost.retry_count < ScheduledPost.max_retries,
            )
            .values(status=PostStatus.SCHEDULED, scheduled_at=now, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if moved.rowcount != 1:
            self.db.rollback()
            return False

        post = self.db.get(ScheduledPost, post_id)
        self.db.refresh(post)
        record_audit(
            self.db,
            post,
            AuditAction.RETRIED,
            actor_type,
            actor_id,
            metadata={"retry_count": post.retry_count, "previous_error_code": post.error_code},
        )
        self.db.commit()
        logger.info(
            "Post requeued",
            extra={"post_id": str(post_id), "retry_count": post.retry_count, "actor_type": actor_type.value},
        )
        return True

    # =========================================================================
    # Publishing
    # =========================================================================

    def _process(self, post_id: UUID) -> PublishResult:
        post = self.db.get(ScheduledPost, post_id)
        self.db.refresh(post)

        result = self._dispatch(post)
        if result.success:
            self._mark_published(post, result)
        else:
            self._mark_failed(post, result)
        self.db.commit()
        return result

    def _dispatch(self, post: ScheduledPost) -> PublishResult:
        publisher = self.publishers.get_publisher(post.platform)
        if publisher is None:
            return PublishResult.failure(
                "UNSUPPORTED_PLATFORM",
                f"Unsupported platform: {post.platform}",
                retryable=False,
            )

        request = PublishRequest(
            video_url=post.video_url,
            caption=post.caption,
            hashtags=list(post.hashtags or []),
            access_token=self.credentials.get_credential(post.platform),
            privacy_level=post.privacy_level,
            metadata=dict(post.post_metadata or {}),
        )

        logger.info("Publishing post", extra={"post_id": str(post.id), "platform": post.platform})
        try:
            return publisher.publish(request)
        except Exception as e:
            logger.exception("Publisher raised", extra={"post_id": str(post.id), "platform": post.platform})
            return PublishResult.failure("UNEXPECTED_ERROR", str(e) or type(e).__name__, retryable=True)

    def _mark_published(self, post: ScheduledPost, result: PublishResult) -> None:
        post.status = PostStatus.PUBLISHED
        post.published_at = utcnow()
        post.platform_post_id = result.platform_post_id
        post.platform_url = result.platform_url
        post.error_message = None
        post.error_code = None
        post.retryable = False

        record_audit(
            self.db,
            post,
            AuditAction.PUBLISHED,
            metadata={
                "platform_post_id": result.platform_post_id,
                "platform_url": result.platform_url,
                **result.metadata,
            },
        )
        logger.info(
            "Post published",
            extra={"post_id": str(post.id), "platform_post_id": result.platform_post_id},
        )

    def _mark_failed(self, post: ScheduledPost, result: PublishResult) -> None:
        post.retry_count = min(post.retry_count + 1, post.max_retries)
        will_retry = bool(result.retryable) and post.retry_count < post.max_retries

        post.status = PostStatus.FAILED
        post.retryable = will_retry
        # Anchors the retry backoff
        post.updated_at = self.clock()
        post.error_message = sanitize(result.error) or "Publish failed"
        post.error_code = result.error_code or "UNKNOWN_ERROR"

        record_audit(
            self.db,
            post,
            AuditAction.FAILED,
            metadata={
                "error_code": post.error_code,
                "retryable": bool(result.retryable),
                "retry_count": post.retry_count,
                "will_retry": will_retry,
                **result.metadata,
            },
        )
        logger.warning(
            f"Post publish failed: {post.error_message}",
            extra={
                "post_id": str(post.id),
                "error_code": post.error_code,
                "retry_count": post.retry_count,
                "will_retry": will_retry,
            },
        )
