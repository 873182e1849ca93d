"""
SQLAlchemy ORM Models for ClipForge.

This module exports all database models and enums used in the application.
"""

from clipforge.models.artifact import Artifact
from clipforge.models.audit_log import PublishAuditLog
from clipforge.models.base import Base, TimestampMixin
from clipforge.models.enums import (
    ActorType,
    ArtifactStatus,
    ArtifactType,
    AuditAction,
    EventLevel,
    EventType,
    JobStatus,
    PipelineStep,
    PostStatus,
    ProjectStatus,
    ProviderRole,
)
from clipforge.models.job import Job
from clipforge.models.job_event import JobEvent
from clipforge.models.project import Project
from clipforge.models.scheduled_post import ScheduledPost

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Models
    "Project",
    "Job",
    "Artifact",
    "JobEvent",
    "ScheduledPost",
    "PublishAuditLog",
    # Enums
    "ActorType",
    "ArtifactStatus",
    "ArtifactType",
    "AuditAction",
    "EventLevel",
    "EventType",
    "JobStatus",
    "PipelineStep",
    "PostStatus",
    "ProjectStatus",
    "ProviderRole",
]
