# tests/unit/test_archive/test_admin_archive_router.py
"""
Unit tests for the admin archive router.

Covers:
- API key enforcement
- run, status, preview and watermark endpoints against in-memory stores
- 503 when a store is unreachable, 500 for other fatal errors
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from tests.conftest import make_signature, make_validation

HEADERS = {"X-API-Key": "test-admin-key"}


@pytest.fixture
def client(live_sessions, archive_sessions):
    from app.config import ArchiveConfig
    from app.database import get_archive_db, get_db, get_session_factories
    from app.routers.admin_archive import get_archive_config, router

    app = FastAPI()
    app.include_router(router)

    def _live_db():
        db = live_sessions()
        try:
            yield db
        finally:
            db.close()

    def _archive_db():
        db = archive_sessions()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _live_db
    app.dependency_overrides[get_archive_db] = _archive_db
    app.dependency_overrides[get_session_factories] = lambda: (live_sessions, archive_sessions)
    app.dependency_overrides[get_archive_config] = lambda: ArchiveConfig(batch_size=10)

    with TestClient(app) as test_client:
        yield test_client


class TestAuth:
    """Admin key enforcement."""

    def test_missing_key_rejected(self, client):
        assert client.get("/v1/admin/archive/status").status_code == 401

    def test_wrong_key_rejected(self, client):
        response = client.get("/v1/admin/archive/status", headers={"X-API-Key": "nope"})
        assert response.status_code == 401

    def test_unconfigured_key_fails_closed(self, client):
        from unittest.mock import MagicMock

        with patch("app.auth.get_settings", return_value=MagicMock(ADMIN_API_KEY=None)):
            response = client.get("/v1/admin/archive/status", headers=HEADERS)

        assert response.status_code == 500


class TestRunEndpoint:
    """POST /v1/admin/archive/run"""

    def test_runs_and_reports_stages(self, client, live_db):
        from app.models import PendingSignature
        from app.services.archive.policy_service import utcnow

        live_db.add(make_signature(received_at=utcnow() - timedelta(days=30)))
        live_db.add(make_validation(validation_closes_at=utcnow() - timedelta(days=1)))
        live_db.commit()

        response = client.post(
            "/v1/admin/archive/run",
            json={"job_id": "manual-1", "server_id": "ops", "worker_id": "1"},
            headers=HEADERS,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["job_id"] == "manual-1"
        assert data["status"] == 0
        assert data["success"] is True
        assert [s["stage"] for s in data["stages"]] == ["pending", "processed", "orphaned"]
        assert data["totals"] == {"archived": 2, "failed": 0, "pruned": 2}
        live_db.expire_all()
        assert live_db.query(PendingSignature).count() == 0

    def test_batch_size_override(self, client, live_db):
        from app.services.archive.policy_service import utcnow

        live_db.add_all([make_signature(received_at=utcnow() - timedelta(days=30)) for _ in range(3)])
        live_db.commit()

        response = client.post("/v1/admin/archive/run", json={"batch_size": 1}, headers=HEADERS)

        assert response.status_code == 200
        assert response.json()["stages"][0]["selected"] == 1

    def test_rejects_invalid_batch_size(self, client):
        response = client.post("/v1/admin/archive/run", json={"batch_size": 0}, headers=HEADERS)
        assert response.status_code == 422

    def test_store_unavailable_returns_503(self, client, unreachable_sessions, archive_sessions):
        from app.database import get_session_factories

        client.app.dependency_overrides[get_session_factories] = lambda: (unreachable_sessions, archive_sessions)

        response = client.post("/v1/admin/archive/run", json={}, headers=HEADERS)

        assert response.status_code == 503
        detail = response.json()["detail"]
        assert detail["status"] == 1
        assert detail["error"]

    def test_unexpected_failure_returns_500(self, client):
        with patch(
            "app.services.archive.workflow.run_archive_workflow",
            side_effect=RuntimeError("metrics backend gone"),
        ):
            response = client.post("/v1/admin/archive/run", json={}, headers=HEADERS)

        assert response.status_code == 500
        detail = response.json()["detail"]
        assert detail["status"] == 2
        assert detail["error"] == "metrics backend gone"


class TestReadEndpoints:
    """GET status, preview and watermark."""

    def test_status(self, client, live_db):
        live_db.add_all([make_signature(), make_validation()])
        live_db.commit()

        response = client.get("/v1/admin/archive/status", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["live"] == {"pending_signatures": 1, "pending_validations": 1}
        assert data["total_archived"] == 0
        assert data["policy"]["batch_size"] == 10

    def test_preview(self, client, live_db):
        from app.services.archive.policy_service import utcnow

        live_db.add(make_signature(processed=True, received_at=utcnow()))
        live_db.commit()

        response = client.get("/v1/admin/archive/preview", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["enabled"] is True
        assert data["eligible"]["processed"] == 1
        assert data["signature_cutoff"] is not None

    def test_watermark_without_drains(self, client):
        response = client.get("/v1/admin/archive/watermark", headers=HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["watermark"] is None
        assert set(data["queues"]) == {"signature_queue", "validation_queue", "pending_validation_queue"}


class TestHealth:
    def test_health(self):
        with patch("app.logging_config.configure_logging"):
            from app.main import app

        response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
