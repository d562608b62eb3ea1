"""
Tests for operational and front-end routes.

Tests cover:
- Health probes
- Prometheus metrics
- Static front-end serving and its fallback
- Request id header
"""

import pytest

from notiva.config import Settings, get_settings
from notiva.main import app


@pytest.fixture
def static_dir(tmp_path):
    (tmp_path / "index.html").write_text("<h1>NOTIVA</h1>", encoding="utf-8")
    (tmp_path / "app.js").write_text("console.log('hi');", encoding="utf-8")
    return tmp_path


@pytest.fixture
def static_client(client, static_dir):
    app.dependency_overrides[get_settings] = lambda: Settings(STATIC_DIR=str(static_dir))
    yield client
    app.dependency_overrides.pop(get_settings, None)


class TestHealth:

    def test_live(self, client):
        response = client.get("/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    def test_ready_with_token(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_not_ready_without_token(self, client):
        app.dependency_overrides[get_settings] = lambda: Settings(GITHUB_TOKEN=None)
        try:
            response = client.get("/health/ready")
        finally:
            app.dependency_overrides.pop(get_settings, None)

        assert response.status_code == 503
        assert response.json() == {"status": "not_ready", "reason": "GITHUB_TOKEN not configured"}


class TestMetrics:

    def test_metrics_exposes_operation_counters(self, client):
        client.post("/api/messages/send", json={"from": "alice", "to": "bob", "message": "Hello"})
        client.get("/api/messages/bob")

        response = client.get("/metrics")

        assert response.status_code == 200
        body = response.text
        assert 'message_operations_total{operation="send",result="ok"}' in body
        assert 'store_requests_total{method="PUT",status="201"}' in body
        assert 'path="/api/messages/{username}"' in body


class TestFrontEnd:

    def test_root_serves_index(self, static_client):
        response = static_client.get("/")

        assert response.status_code == 200
        assert "NOTIVA" in response.text

    def test_unknown_path_falls_back_to_index(self, static_client):
        response = static_client.get("/inbox/bob")

        assert response.status_code == 200
        assert "NOTIVA" in response.text

    def test_static_asset(self, static_client):
        response = static_client.get("/app.js")

        assert response.status_code == 200
        assert "console.log" in response.text

    def test_unknown_api_path_is_not_front_end(self, static_client):
        response = static_client.get("/api/unknown/route")

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_missing_front_end(self, client, tmp_path):
        app.dependency_overrides[get_settings] = lambda: Settings(STATIC_DIR=str(tmp_path / "missing"))
        try:
            response = client.get("/")
        finally:
            app.dependency_overrides.pop(get_settings, None)

        assert response.status_code == 404


class TestRequestId:

    def test_response_includes_request_id_header(self, client):
        response = client.get("/api/messages/nobody")

        assert response.status_code == 200
        assert "x-request-id" in response.headers
