"""
Enum definitions for ClipForge database models.

These enums define the valid values for status fields and type fields
throughout the application. They are used both in SQLAlchemy models
and Pydantic schemas for consistent validation.
"""

import enum


class ProjectStatus(str, enum.Enum):
    """
    Project lifecycle status values.

    Attributes:
        DRAFT: Request captured, generation not started
        GENERATING: A job is working through the pipeline
        COMPLETED: Final video produced
        FAILED: Pipeline halted (see error_message)
    """

    DRAFT = "draft"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class JobStatus(str, enum.Enum):
    """
    Job execution status values.

    Attributes:
        PENDING: Job created, orchestrator not yet invoked
        QUEUED: Job waiting for a worker slot
        RUNNING: Orchestrator is driving (or waiting on) the pipeline
        COMPLETED: All steps finished successfully
        FAILED: A step failed (check error_message)
    """

    PENDING = "pending"
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class PipelineStep(str, enum.Enum):
    """
    Ordered generation pipeline steps.

    COMPLETED is not a step; it marks a job whose pipeline has run to the end.
    """

    SCRIPT = "script"
    SCENE_PLAN = "scene_plan"
    VOICEOVER = "voiceover"
    VIDEO_CLIPS = "video_clips"
    ASSEMBLY = "assembly"
    COMPLETED = "completed"


class ArtifactType(str, enum.Enum):
    """
    Types of pipeline outputs.

    VIDEO_CLIP_PENDING is the placeholder for a clip an asynchronous provider
    is still rendering; it turns into VIDEO_CLIP in place once resolved.
    """

    SCRIPT = "script"
    SCENE_PLAN = "scene_plan"
    VOICEOVER = "voiceover"
    VIDEO_CLIP = "video_clip"
    VIDEO_CLIP_PENDING = "video_clip_pending"
    FINAL_VIDEO = "final_video"


class ArtifactStatus(str, enum.Enum):
    """Resolution state of an artifact."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class EventLevel(str, enum.Enum):
    """Severity of a job event."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class EventType(str, enum.Enum):
    """Kinds of job timeline entries."""

    STEP_STARTED = "step_started"
    STEP_PROGRESS = "step_progress"
    STEP_FINISHED = "step_finished"
    STEP_FAILED = "step_failed"


class ProviderRole(str, enum.Enum):
    """Capability roles a generation provider can fill."""

    LLM = "llm"
    VOICE = "voice"
    VIDEO = "video"
    ASSEMBLY = "assembly"


class PostStatus(str, enum.Enum):
    """
    Scheduled post status values.

    Allowed transitions:
        draft -> scheduled
        scheduled -> publishing -> published | failed
        failed -> scheduled (manual or automatic retry)
    """

    DRAFT = "draft"
    SCHEDULED = "scheduled"
    PUBLISHING = "publishing"
    PUBLISHED = "published"
    FAILED = "failed"


class AuditAction(str, enum.Enum):
    """Actions recorded in the publish audit log."""

    CREATED = "created"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    FAILED = "failed"
    RETRIED = "retried"


class ActorType(str, enum.Enum):
    """Who caused an audited transition."""

    USER = "user"
    SYSTEM = "system"
    WEBHOOK = "webhook"
