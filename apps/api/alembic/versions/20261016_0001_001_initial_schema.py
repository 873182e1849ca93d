"""001_initial_schema

Create ClipForge tables: projects, jobs, artifacts, job_events,
scheduled_posts, publish_audit_logs

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-16

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enums are stored as their string values (non-native), so status sets can
# grow without ALTER TYPE
ENUM = sa.String(32)
JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    ]


def upgrade() -> None:
    # Projects
    op.create_table(
        "projects",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("topic", sa.Text(), nullable=False),
        sa.Column("style", sa.String(100), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("language", sa.String(10), nullable=False),
        sa.Column("aspect_ratio", sa.String(10), nullable=False),
        sa.Column("status", ENUM, nullable=False),
        sa.Column("selected_providers", JSON, nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False),
        sa.Column("current_step", sa.String(50), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_projects")),
    )
    op.create_index(op.f("ix_projects_status"), "projects", ["status"])

    # Jobs
    op.create_table(
        "jobs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("status", ENUM, nullable=False),
        sa.Column("current_step", sa.String(50), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["project_id"],
            ["projects.id"],
            name=op.f("fk_jobs_project_id_projects"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_jobs")),
    )
    op.create_index(op.f("ix_jobs_project_id"), "jobs", ["project_id"])
    op.create_index(op.f("ix_jobs_status"), "jobs", ["status"])

    # Artifacts
    op.create_table(
        "artifacts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("job_id", sa.Uuid(), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=False),
        sa.Column("artifact_type", ENUM, nullable=False),
        sa.Column("status", ENUM, nullable=False),
        sa.Column("file_url", sa.Text(), nullable=True),
        sa.Column("scene_index", sa.Integer(), nullable=True),
        sa.Column("duration", sa.Float(), nullable=True),
        sa.Column("content", JSON, nullable=True),
        sa.Column("provider", sa.String(50), nullable=True),
        sa.Column("provider_job_id", sa.String(255), nullable=True),
        sa.Column("metadata", JSON, nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["job_id"],
            ["jobs.id"],
            name=op.f("fk_artifacts_job_id_jobs"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["project_id"],
            ["projects.id"],
            name=op.f("fk_artifacts_project_id_projects"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_artifacts")),
        sa.UniqueConstraint("provider", "provider_job_id", name="uq_artifacts_provider_job"),
    )
    op.create_index(op.f("ix_artifacts_job_id"), "artifacts", ["job_id"])
    op.create_index(op.f("ix_artifacts_project_id"), "artifacts", ["project_id"])
    op.create_index(op.f("ix_artifacts_status"), "artifacts", ["status"])
    op.create_index(op.f("ix_artifacts_provider_job_id"), "artifacts", ["provider_job_id"])
    op.create_index("ix_artifacts_job_type", "artifacts", ["job_id", "artifact_type"])

    # Job events (append-only)
    op.create_table(
        "job_events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("job_id", sa.Uuid(), nullable=False),
        sa.Column("level", ENUM, nullable=False),
        sa.Column("step", sa.String(50), nullable=False),
        sa.Column("event_type", ENUM, nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=True),
        sa.Column("data", JSON, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["job_id"],
            ["jobs.id"],
            name=op.f("fk_job_events_job_id_jobs"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_job_events")),
    )
    op.create_index(op.f("ix_job_events_job_id"), "job_events", ["job_id"])
    op.create_index(op.f("ix_job_events_timestamp"), "job_events", ["timestamp"])

    # Scheduled posts
    op.create_table(
        "scheduled_posts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("platform", sa.String(50), nullable=False),
        sa.Column("status", ENUM, nullable=False),
        sa.Column("caption", sa.Text(), nullable=False),
        sa.Column("hashtags", JSON, nullable=False),
        sa.Column("video_url", sa.Text(), nullable=True),
        sa.Column("privacy_level", sa.String(50), nullable=False),
        sa.Column("project_id", sa.Uuid(), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("platform_post_id", sa.String(255), nullable=True),
        sa.Column("platform_url", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("error_code", sa.String(50), nullable=True),
        sa.Column("retryable", sa.Boolean(), nullable=False),
        sa.Column("retry_count", sa.Integer(), nullable=False),
        sa.Column("max_retries", sa.Integer(), nullable=False),
        sa.Column("metadata", JSON, nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["project_id"],
            ["projects.id"],
            name=op.f("fk_scheduled_posts_project_id_projects"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_scheduled_posts")),
        sa.CheckConstraint("retry_count <= max_retries", name=op.f("ck_scheduled_posts_retry_count_bounded")),
    )
    op.create_index(op.f("ix_scheduled_posts_platform"), "scheduled_posts", ["platform"])
    op.create_index(op.f("ix_scheduled_posts_status"), "scheduled_posts", ["status"])
    op.create_index(op.f("ix_scheduled_posts_project_id"), "scheduled_posts", ["project_id"])
    op.create_index(op.f("ix_scheduled_posts_scheduled_at"), "scheduled_posts", ["scheduled_at"])

    # Publish audit log (append-only)
    op.create_table(
        "publish_audit_logs",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("post_id", sa.Uuid(), nullable=False),
        sa.Column("action", ENUM, nullable=False),
        sa.Column("actor_type", ENUM, nullable=False),
        sa.Column("actor_id", sa.String(255), nullable=True),
        sa.Column("metadata", JSON, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["post_id"],
            ["scheduled_posts.id"],
            name=op.f("fk_publish_audit_logs_post_id_scheduled_posts"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_publish_audit_logs")),
    )
    op.create_index(op.f("ix_publish_audit_logs_post_id"), "publish_audit_logs", ["post_id"])
    op.create_index(op.f("ix_publish_audit_logs_timestamp"), "publish_audit_logs", ["timestamp"])


def downgrade() -> None:
    op.drop_table("publish_audit_logs")
    op.drop_table("scheduled_posts")
    op.drop_table("job_events")
    op.drop_table("artifacts")
    op.drop_table("jobs")
    op.drop_table("projects")
