"""
Pytest configuration and fixtures for ClipForge API tests.

Provides an in-memory database per test, a test client with the database
and task dispatcher overridden, and the provider fakes from ``fakes`` so
pipeline tests never touch the network.
"""

import os
from collections.abc import Callable, Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment before importing application
os.environ["ENVIRONMENT"] = "development"
os.environ["DEBUG"] = "false"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["REDIS_URL"] = "redis://localhost:6379/1"
os.environ["WEBHOOK_SIGNING_SECRET"] = "test-webhook-secret-0123456789"
os.environ["PUBLIC_BASE_URL"] = "https://clipforge.test"
os.environ["TIKTOK_ACCESS_TOKEN"] = "tiktok-test-token"

import clipforge.models  # noqa: E402,F401
from clipforge.api.v1 import health  # noqa: E402
from clipforge.core.database import get_db  # noqa: E402
from clipforge.main import app  # noqa: E402
from clipforge.models import Job, JobStatus, Project, ProjectStatus  # noqa: E402
from clipforge.models.base import Base  # noqa: E402
from clipforge.models.project import DEFAULT_PROVIDERS  # noqa: E402
from clipforge.workers.dispatch import get_task_dispatcher  # noqa: E402
from tests.fakes import FakeDispatcher, FakeProviders, FakeVideo  # noqa: E402

# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """
    Create a fresh in-memory database for each test.

    StaticPool keeps one connection so the test session and the sessions
    opened by request handlers see the same database.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Provide a database session for each test."""
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# Application
# =============================================================================


@pytest.fixture
def dispatcher() -> FakeDispatcher:
    return FakeDispatcher()


@pytest.fixture
def client(
    session_factory: sessionmaker,
    dispatcher: FakeDispatcher,
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[TestClient, None, None]:
    """
    Provide a test client for API testing.

    Redis and storage checks are stubbed to healthy so the health endpoint
    does not depend on running services.
    """

    def override_get_db() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    async def healthy(settings: Any) -> dict[str, Any]:
        return {"status": "healthy", "message": "stubbed"}

    monkeypatch.setattr(health, "check_redis", healthy)
    monkeypatch.setattr(health, "check_s3", healthy)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_task_dispatcher] = lambda: dispatcher
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# =============================================================================
# Providers and sample data
# =============================================================================


@pytest.fixture
def providers() -> FakeProviders:
    """Fake providers with a synchronous video adapter."""
    return FakeProviders()


@pytest.fixture
def async_providers() -> FakeProviders:
    """Fake providers whose video adapter renders asynchronously."""
    return FakeProviders(video=FakeVideo(asynchronous=True))


@pytest.fixture
def sample_project_data() -> dict[str, Any]:
    """Sample data for creating a project."""
    return {
        "title": "Bean to Cup",
        "topic": "How coffee gets from the farm to your cup",
        "style": "upbeat documentary",
        "duration": 30,
        "language": "en",
        "aspect_ratio": "9:16",
    }


@pytest.fixture
def project_factory(db: Session, sample_project_data: dict[str, Any]) -> Callable[..., tuple[Project, Job]]:
    """Factory creating a project with a queued job."""

    def _create(**overrides: Any) -> tuple[Project, Job]:
        data = {**sample_project_data, **overrides}
        project = Project(
            status=ProjectStatus.GENERATING,
            selected_providers=dict(DEFAULT_PROVIDERS),
            **data,
        )
        db.add(project)
        db.flush()
        job = Job(project_id=project.id, status=JobStatus.QUEUED)
        db.add(job)
        db.commit()
        return project, job

    return _create
