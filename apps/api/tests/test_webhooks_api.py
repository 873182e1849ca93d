"""
Tests for the video provider webhook endpoint.
"""

import json
from collections.abc import Callable
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session

from clipforge.core.security import SIGNATURE_HEADER, compute_webhook_signature
from clipforge.models import Artifact, ArtifactStatus, ArtifactType, Job, Project
from clipforge.services.orchestrator import PipelineOrchestrator
from tests.fakes import FakeDispatcher, FakeProviders

WEBHOOK_URL = "/api/v1/webhooks/video/luma"


@pytest.fixture
def waiting_job(
    db: Session,
    async_providers: FakeProviders,
    project_factory: Callable[..., Any],
) -> tuple[Project, Job]:
    project, job = project_factory()
    PipelineOrchestrator(db, providers=async_providers).run(project.id, job.id)
    return project, job


def _body(generation_id: str, state: str = "completed", **extra: Any) -> bytes:
    payload: dict[str, Any] = {"id": generation_id, "state": state, **extra}
    if state == "completed":
        payload.setdefault("assets", {"video": f"https://cdn.luma.test/{generation_id}.mp4"})
    return json.dumps(payload).encode()


def _post(client: TestClient, body: bytes, url: str = WEBHOOK_URL, signature: str | None = "valid") -> Any:
    headers = {"Content-Type": "application/json"}
    if signature == "valid":
        headers[SIGNATURE_HEADER] = compute_webhook_signature(body)
    elif signature is not None:
        headers[SIGNATURE_HEADER] = signature
    return client.post(url, content=body, headers=headers)


def _artifact(db: Session, provider_job_id: str) -> Artifact:
    db.expire_all()
    return db.scalar(select(Artifact).where(Artifact.provider_job_id == provider_job_id))


class TestSignature:
    def test_missing_signature_is_rejected(
        self,
        client: TestClient,
        db: Session,
        waiting_job: tuple[Project, Job],
    ) -> None:
        response = _post(client, _body("gen-1"), signature=None)

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTHENTICATION_ERROR"
        assert _artifact(db, "gen-1").status == ArtifactStatus.PENDING

    def test_wrong_signature_is_rejected(
        self,
        client: TestClient,
        db: Session,
        waiting_job: tuple[Project, Job],
    ) -> None:
        body = _body("gen-1")
        forged = compute_webhook_signature(body, secret="some-other-secret-value")

        response = _post(client, body, signature=forged)

        assert response.status_code == 401
        assert _artifact(db, "gen-1").status == ArtifactStatus.PENDING

    def test_signature_covers_the_body(self, client: TestClient, waiting_job: tuple[Project, Job]) -> None:
        signature = compute_webhook_signature(_body("gen-1"))

        response = _post(client, _body("gen-2"), signature=signature)

        assert response.status_code == 401

    def test_bare_hex_digest_is_accepted(self, client: TestClient, waiting_job: tuple[Project, Job]) -> None:
        body = _body("gen-1")
        bare = compute_webhook_signature(body).removeprefix("sha256=")

        response = _post(client, body, signature=bare)

        assert response.status_code == 200


class TestDelivery:
    def test_completed_clip_is_reconciled(
        self,
        client: TestClient,
        db: Session,
        waiting_job: tuple[Project, Job],
    ) -> None:
        response = _post(client, _body("gen-1"))

        assert response.status_code == 200
        data = response.json()["data"]
        assert data == {"provider": "luma", "provider_job_id": "gen-1", "outcome": "completed", "resumed": False}

        artifact = _artifact(db, "gen-1")
        assert artifact.artifact_type == ArtifactType.VIDEO_CLIP
        assert artifact.file_url == "https://cdn.luma.test/gen-1.mp4"

    def test_redelivery_is_acknowledged_once(
        self,
        client: TestClient,
        db: Session,
        waiting_job: tuple[Project, Job],
    ) -> None:
        first = _post(client, _body("gen-1"))
        second = _post(client, _body("gen-1"))

        assert first.json()["data"]["outcome"] == "completed"
        assert second.status_code == 200
        assert second.json()["data"]["outcome"] == "duplicate"
        db.expire_all()
        assert len(list(db.scalars(select(Artifact).where(Artifact.provider_job_id == "gen-1")))) == 1

    def test_last_clip_resumes_pipeline(
        self,
        client: TestClient,
        dispatcher: FakeDispatcher,
        waiting_job: tuple[Project, Job],
    ) -> None:
        project, job = waiting_job

        outcomes = [_post(client, _body(f"gen-{n}")).json()["data"] for n in range(1, 5)]

        assert [o["resumed"] for o in outcomes] == [False, False, False, True]
        assert dispatcher.pipeline_runs == [(str(project.id), str(job.id))]

    def test_failed_generation_fails_job(
        self,
        client: TestClient,
        db: Session,
        waiting_job: tuple[Project, Job],
    ) -> None:
        project, _ = waiting_job

        response = _post(client, _body("gen-3", state="failed", failure_reason="moderation"))

        assert response.json()["data"]["outcome"] == "failed"
        project_response = client.get(f"/api/v1/projects/{project.id}").json()["data"]
        assert project_response["status"] == "failed"
        assert "moderation" in project_response["error_message"]

    def test_in_progress_callback_changes_nothing(
        self,
        client: TestClient,
        db: Session,
        waiting_job: tuple[Project, Job],
    ) -> None:
        response = _post(client, _body("gen-1", state="dreaming"))

        assert response.json()["data"]["outcome"] == "pending"
        assert _artifact(db, "gen-1").status == ArtifactStatus.PENDING

    def test_unknown_generation(self, client: TestClient, waiting_job: tuple[Project, Job]) -> None:
        response = _post(client, _body("gen-404"))

        assert response.status_code == 200
        assert response.json()["data"]["outcome"] == "unknown"


class TestMalformedRequests:
    def test_provider_without_webhooks(self, client: TestClient) -> None:
        response = _post(client, _body("gen-1"), url="/api/v1/webhooks/video/runway")

        assert response.status_code == 404

    def test_invalid_json(self, client: TestClient) -> None:
        response = _post(client, b"{not json")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_non_object_body(self, client: TestClient) -> None:
        response = _post(client, b"[1, 2, 3]")

        assert response.status_code == 422

    def test_missing_generation_id(self, client: TestClient) -> None:
        response = _post(client, json.dumps({"state": "completed"}).encode())

        assert response.status_code == 422
