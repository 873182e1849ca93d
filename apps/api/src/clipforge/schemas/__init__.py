"""
Pydantic schemas for API request/response validation.
"""

from clipforge.schemas.common import (
    ApiResponse,
    ErrorDetail,
    ErrorResponse,
    HealthResponse,
    PaginationMeta,
)
from clipforge.schemas.job import ArtifactResponse, JobEventResponse, JobResponse, WebhookAck
from clipforge.schemas.post import AuditEntryResponse, PostCreate, PostResponse
from clipforge.schemas.project import ProjectCreate, ProjectResponse

__all__ = [
    # Common
    "ApiResponse",
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    "PaginationMeta",
    # Projects
    "ProjectCreate",
    "ProjectResponse",
    # Jobs
    "JobResponse",
    "JobEventResponse",
    "ArtifactResponse",
    "WebhookAck",
    # Posts
    "PostCreate",
    "PostResponse",
    "AuditEntryResponse",
]
