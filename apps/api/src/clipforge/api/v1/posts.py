"""
Scheduled post endpoints.

Posts are published by the queue sweep once due. A post created with
``publish_now`` (or a schedule time already in the past) is handed to the
publish-now task immediately; its claim transition still guards against a
sweep publishing it at the same time.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clipforge.core.database import get_db
from clipforge.core.dependencies import Pagination, TaskDispatch
from clipforge.core.exceptions import NotFoundError, ValidationError
from clipforge.models import ActorType, PostStatus, PublishAuditLog, ScheduledPost
from clipforge.models.base import as_utc, utcnow
from clipforge.publishers.registry import supported_platforms
from clipforge.schemas.common import ApiResponse
from clipforge.schemas.post import AuditEntryResponse, PostCreate, PostResponse
from clipforge.services.publish_queue import PublishQueueWorker, create_scheduled_post

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_post(db: Session, post_id: UUID) -> ScheduledPost:
    post = db.get(ScheduledPost, post_id)
    if post is None:
        raise NotFoundError(resource_type="ScheduledPost", resource_id=str(post_id))
    return post


@router.post(
    "",
    response_model=ApiResponse[PostResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create Post",
)
async def create_post(
    post_data: PostCreate,
    dispatcher: TaskDispatch,
    db: Session = Depends(get_db),
) -> ApiResponse[PostResponse]:
    """
    Create a scheduled post (or a draft when no schedule time is given).

    Raises:
        ValidationError: Unsupported platform
    """
    if post_data.platform not in supported_platforms():
        raise ValidationError(
            message=f"Unsupported platform: {post_data.platform}",
            field="platform",
            details={"supported": supported_platforms()},
        )

    now = utcnow()
    scheduled_at = now if post_data.publish_now else post_data.scheduled_at
    if scheduled_at is not None and scheduled_at.tzinfo is None:
        scheduled_at = as_utc(scheduled_at)

    post = create_scheduled_post(
        db,
        platform=post_data.platform,
        video_url=post_data.video_url,
        caption=post_data.caption,
        hashtags=post_data.hashtags,
        scheduled_at=scheduled_at,
        privacy_level=post_data.privacy_level,
        project_id=post_data.project_id,
        max_retries=post_data.max_retries,
        metadata=post_data.metadata,
        actor_type=ActorType.USER,
    )

    if scheduled_at is not None and scheduled_at <= now:
        dispatcher.publish_post(str(post.id))

    return ApiResponse(data=PostResponse.model_validate(post))


@router.get(
    "",
    response_model=ApiResponse[list[PostResponse]],
    status_code=status.HTTP_200_OK,
    summary="List Posts",
)
async def list_posts(
    pagination: Pagination,
    db: Session = Depends(get_db),
    status_filter: PostStatus | None = Query(default=None, alias="status", description="Filter by status"),
) -> ApiResponse[list[PostResponse]]:
    query = select(ScheduledPost)
    count_query = select(func.count()).select_from(ScheduledPost)
    if status_filter is not None:
        query = query.where(ScheduledPost.status == status_filter)
        count_query = count_query.where(ScheduledPost.status == status_filter)

    total = db.scalar(count_query) or 0
    posts = db.scalars(
        query.order_by(ScheduledPost.created_at.desc()).offset(pagination.offset).limit(pagination.limit)
    ).all()

    return ApiResponse(
        data=[PostResponse.model_validate(post) for post in posts],
        meta=pagination.meta(total),
    )


@router.get(
    "/{post_id}",
    response_model=ApiResponse[PostResponse],
    status_code=status.HTTP_200_OK,
    summary="Get Post",
)
async def get_post(
    post_id: UUID,
    db: Session = Depends(get_db),
) -> ApiResponse[PostResponse]:
    return ApiResponse(data=PostResponse.model_validate(_get_post(db, post_id)))


@router.get(
    "/{post_id}/audit",
    response_model=ApiResponse[list[AuditEntryResponse]],
    status_code=status.HTTP_200_OK,
    summary="Post Audit Log",
)
async def list_post_audit(
    post_id: UUID,
    db: Session = Depends(get_db),
) -> ApiResponse[list[AuditEntryResponse]]:
    _get_post(db, post_id)
    entries = db.scalars(
        select(PublishAuditLog)
        .where(PublishAuditLog.post_id == post_id)
        .order_by(PublishAuditLog.timestamp)
    ).all()
    return ApiResponse(data=[AuditEntryResponse.model_validate(entry) for entry in entries])


@router.post(
    "/{post_id}/retry",
    response_model=ApiResponse[PostResponse],
    status_code=status.HTTP_202_ACCEPTED,
    summary="Retry Post",
    description="Move a failed post back to scheduled and publish it now.",
)
async def retry_post(
    post_id: UUID,
    dispatcher: TaskDispatch,
    db: Session = Depends(get_db),
) -> ApiResponse[PostResponse]:
    """
    Raises:
        NotFoundError: If the post does not exist
        ConflictError: If the post is not failed or has no retries left
    """
    post = PublishQueueWorker(db).requeue(post_id, actor_type=ActorType.USER)
    dispatcher.publish_post(str(post.id))
    return ApiResponse(data=PostResponse.model_validate(post))
