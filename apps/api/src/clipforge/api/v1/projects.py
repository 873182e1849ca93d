"""
Project endpoints.

Creating a project creates its first job and triggers the pipeline. The
retry endpoint resumes the latest failed job in place, from its recorded
step, reusing the artifacts earlier steps produced.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from clipforge.core.database import get_db
from clipforge.core.dependencies import Pagination, TaskDispatch
from clipforge.core.exceptions import ConflictError, NotFoundError
from clipforge.models import Artifact, ArtifactStatus, ArtifactType, Job, JobStatus, Project, ProjectStatus
from clipforge.schemas.common import ApiResponse
from clipforge.schemas.project import ProjectCreate, ProjectResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def _latest_job(db: Session, project_id: UUID) -> Job | None:
    return db.scalar(
        select(Job).where(Job.project_id == project_id).order_by(Job.created_at.desc()).limit(1)
    )


def _to_response(db: Session, project: Project) -> ProjectResponse:
    job = _latest_job(db, project.id)
    final_url = None
    if job is not None:
        final_url = db.scalar(
            select(Artifact.file_url).where(
                Artifact.job_id == job.id,
                Artifact.artifact_type == ArtifactType.FINAL_VIDEO,
                Artifact.status == ArtifactStatus.COMPLETED,
            )
        )
    response = ProjectResponse.model_validate(project)
    response.latest_job_id = job.id if job else None
    response.final_video_url = final_url
    return response


def _get_project(db: Session, project_id: UUID) -> Project:
    project = db.get(Project, project_id)
    if project is None:
        raise NotFoundError(resource_type="Project", resource_id=str(project_id))
    return project


@router.post(
    "",
    response_model=ApiResponse[ProjectResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create Project",
    description="Create a project and start generating its video.",
)
async def create_project(
    project_data: ProjectCreate,
    dispatcher: TaskDispatch,
    db: Session = Depends(get_db),
) -> ApiResponse[ProjectResponse]:
    """
    Create a project with its first job and trigger the pipeline.

    Returns:
        Created project, including the id of the job that was started
    """
    project = Project(
        title=project_data.title,
        topic=project_data.topic,
        style=project_data.style,
        duration=project_data.duration,
        language=project_data.language,
        aspect_ratio=project_data.aspect_ratio,
        status=ProjectStatus.GENERATING,
        selected_providers=project_data.providers(),
    )
    db.add(project)
    db.flush()

    job = Job(project_id=project.id, status=JobStatus.QUEUED)
    db.add(job)
    db.commit()
    db.refresh(project)

    dispatcher.start_pipeline(str(project.id), str(job.id))
    logger.info(
        "Project created",
        extra={"project_id": str(project.id), "job_id": str(job.id)},
    )

    return ApiResponse(data=_to_response(db, project))


@router.get(
    "",
    response_model=ApiResponse[list[ProjectResponse]],
    status_code=status.HTTP_200_OK,
    summary="List Projects",
)
async def list_projects(
    pagination: Pagination,
    db: Session = Depends(get_db),
) -> ApiResponse[list[ProjectResponse]]:
    total = db.scalar(select(func.count()).select_from(Project)) or 0
    projects = db.scalars(
        select(Project)
        .order_by(Project.created_at.desc())
        .offset(pagination.offset)
        .limit(pagination.limit)
    ).all()

    return ApiResponse(
        data=[_to_response(db, project) for project in projects],
        meta=pagination.meta(total),
    )


@router.get(
    "/{project_id}",
    response_model=ApiResponse[ProjectResponse],
    status_code=status.HTTP_200_OK,
    summary="Get Project",
)
async def get_project(
    project_id: UUID,
    db: Session = Depends(get_db),
) -> ApiResponse[ProjectResponse]:
    return ApiResponse(data=_to_response(db, _get_project(db, project_id)))


@router.post(
    "/{project_id}/retry",
    response_model=ApiResponse[ProjectResponse],
    status_code=status.HTTP_202_ACCEPTED,
    summary="Retry Generation",
    description="Resume the latest failed job from the step where it stopped.",
)
async def retry_project(
    project_id: UUID,
    dispatcher: TaskDispatch,
    db: Session = Depends(get_db),
) -> ApiResponse[ProjectResponse]:
    """
    Resume a failed project.

    The same job id is re-queued; earlier artifacts are reused, so only the
    failed step and the ones after it run again.

    Raises:
        NotFoundError: If the project does not exist
        ConflictError: If the latest job is not failed
    """
    project = _get_project(db, project_id)
    job = _latest_job(db, project.id)
    if job is None or job.status != JobStatus.FAILED:
        raise ConflictError(
            message="Only a failed generation can be retried",
            resource_type="Job",
            details={"job_status": job.status.value if job else None},
        )

    job.status = JobStatus.QUEUED
    project.status = ProjectStatus.GENERATING
    db.commit()
    db.refresh(project)

    dispatcher.start_pipeline(str(project.id), str(job.id))
    logger.info(
        "Generation retry queued",
        extra={"project_id": str(project.id), "job_id": str(job.id), "current_step": job.current_step},
    )
    return ApiResponse(data=_to_response(db, project))
