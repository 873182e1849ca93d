"""
Job endpoints.

Read-only views of a job, its event timeline and its artifacts.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clipforge.core.database import get_db
from clipforge.core.dependencies import Pagination
from clipforge.core.exceptions import NotFoundError
from clipforge.models import Artifact, ArtifactType, Job, JobEvent
from clipforge.schemas.common import ApiResponse
from clipforge.schemas.job import ArtifactResponse, JobEventResponse, JobResponse

router = APIRouter()


def _get_job(db: Session, job_id: UUID) -> Job:
    job = db.get(Job, job_id)
    if job is None:
        raise NotFoundError(resource_type="Job", resource_id=str(job_id))
    return job


@router.get(
    "/{job_id}",
    response_model=ApiResponse[JobResponse],
    status_code=status.HTTP_200_OK,
    summary="Get Job",
)
async def get_job(
    job_id: UUID,
    db: Session = Depends(get_db),
) -> ApiResponse[JobResponse]:
    return ApiResponse(data=JobResponse.model_validate(_get_job(db, job_id)))


@router.get(
    "/{job_id}/events",
    response_model=ApiResponse[list[JobEventResponse]],
    status_code=status.HTTP_200_OK,
    summary="Job Timeline",
    description="Events of a job in timestamp order.",
)
async def list_job_events(
    job_id: UUID,
    pagination: Pagination,
    db: Session = Depends(get_db),
) -> ApiResponse[list[JobEventResponse]]:
    _get_job(db, job_id)

    total = db.scalar(select(func.count()).select_from(JobEvent).where(JobEvent.job_id == job_id)) or 0
    events = db.scalars(
        select(JobEvent)
        .where(JobEvent.job_id == job_id)
        .order_by(JobEvent.timestamp)
        .offset(pagination.offset)
        .limit(pagination.limit)
    ).all()

    return ApiResponse(
        data=[JobEventResponse.model_validate(event) for event in events],
        meta=pagination.meta(total),
    )


@router.get(
    "/{job_id}/artifacts",
    response_model=ApiResponse[list[ArtifactResponse]],
    status_code=status.HTTP_200_OK,
    summary="Job Artifacts",
)
async def list_job_artifacts(
    job_id: UUID,
    db: Session = Depends(get_db),
    artifact_type: ArtifactType | None = Query(default=None, description="Filter by artifact type"),
) -> ApiResponse[list[ArtifactResponse]]:
    _get_job(db, job_id)

    query = select(Artifact).where(Artifact.job_id == job_id)
    if artifact_type is not None:
        query = query.where(Artifact.artifact_type == artifact_type)
    artifacts = db.scalars(query.order_by(Artifact.created_at, Artifact.scene_index)).all()

    return ApiResponse(data=[ArtifactResponse.model_validate(a) for a in artifacts])
