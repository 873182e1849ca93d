"""
Helpers shared by the Celery tasks.

Tasks run outside the FastAPI request cycle, so they open their own
sessions from a lazily built, worker-sized engine.
"""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from functools import lru_cache
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from clipforge.core.config import get_settings

logger = logging.getLogger(__name__)


@lru_cache
def _worker_session_factory() -> sessionmaker:
    settings = get_settings()
    if settings.database_url.startswith("sqlite"):
        engine = create_engine(settings.database_url, connect_args={"check_same_thread": False})
    else:
        # Each worker process runs one task at a time (prefetch 1)
        engine = create_engine(
            settings.sync_database_url,
            pool_pre_ping=True,
            pool_size=3,
            max_overflow=5,
            pool_recycle=1800,
        )
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """
    Session scope for one task.

    Commits when the block exits cleanly and rolls back if it raises.

    Example:
        ```python
        with get_db_session() as db:
            PipelineOrchestrator(db).run(project_id, job_id)
        ```
    """
    session = _worker_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def format_task_result(task: str, success: bool = True, error: str | None = None, **extra: Any) -> dict[str, Any]:
    """Uniform task return value; ``error`` is omitted when empty."""
    result: dict[str, Any] = {
        "task": task,
        "success": success,
        "completed_at": datetime.now(UTC).isoformat(),
    }
    if error:
        result["error"] = error
    result.update(extra)
    return result
