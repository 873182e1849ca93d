"""
Database engine and request-scoped sessions for the API process.

Celery workers build their own engine in ``clipforge.workers.utils``.
Schema changes go through Alembic; nothing here creates tables.
"""

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from clipforge.core.config import get_settings
from clipforge.models.base import Base


def create_db_engine(database_url: str | None = None) -> Engine:
    """
    Build the API engine.

    SQLite URLs get one shared connection so an in-memory database is
    visible to every session; PostgreSQL gets a small pre-pinged pool.
    """
    settings = get_settings()
    url = database_url or settings.sync_database_url

    kwargs: dict[str, Any] = {"echo": settings.debug}
    if url.startswith("sqlite"):
        kwargs.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)
    else:
        kwargs.update(pool_pre_ping=True, pool_size=5, max_overflow=10, pool_recycle=3600)
    return create_engine(url, **kwargs)


engine = create_db_engine()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Yield a session for one request; routers commit explicitly."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


__all__ = ["Base", "engine", "SessionLocal", "create_db_engine", "get_db"]
