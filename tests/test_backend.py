"""Tests for backend endpoints."""

import shutil
from pathlib import Path

from fastapi.testclient import TestClient


class TestHealthEndpoint:
    """Tests for GET /health endpoint."""

    def test_health_check_success(self, client: TestClient):
        """Storage directories are created on startup."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["storage_available"] is True
        assert data["timestamp"].endswith("Z")
        assert data["details"] == {"data_dir": True, "databases_dir": True}

    def test_health_check_fails_when_storage_missing(self, client: TestClient, test_settings):
        shutil.rmtree(Path(test_settings.databases_dir))

        response = client.get("/health")

        assert response.status_code == 503
        data = response.json()
        assert data["error"] == "storage_unavailable"
        assert data["details"]["databases_dir"] is False

    def test_health_check_returns_request_id(self, client: TestClient):
        response = client.get("/health")

        assert "X-Request-ID" in response.headers

    def test_health_check_uses_provided_request_id(self, client: TestClient):
        response = client.get("/health", headers={"X-Request-ID": "req-123"})

        assert response.headers["X-Request-ID"] == "req-123"


class TestRoot:
    def test_root(self, client: TestClient):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["health"] == "/health"


class TestStartup:
    def test_startup_creates_control_db(self, client: TestClient, test_settings):
        assert Path(test_settings.control_db_path).exists()
        assert Path(test_settings.databases_dir).is_dir()
