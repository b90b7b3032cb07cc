"""
Tests for the node API: health endpoints, review queue endpoints, instance
headers and error responses.
"""

import json

import pytest
from fastapi.testclient import TestClient

from api import review_endpoints
from services.health_reporter import health_reporter, render_snapshot
from services.review_queue import ReviewQueue
from start_api import AVAILABLE_ENDPOINTS, app
from tests.fixtures.health_data import make_snapshot


@pytest.fixture
def client(content_root, monkeypatch):
    """Test client with a fresh review queue and no snapshot yet."""
    monkeypatch.setattr(review_endpoints, "review_queue", ReviewQueue())
    monkeypatch.setattr(health_reporter, "latest_snapshot", None)
    return TestClient(app)


@pytest.fixture
def published(content_root, monkeypatch):
    """A snapshot written to disk and known to the reporter."""
    snapshot = make_snapshot()
    (content_root / "health-detailed").write_bytes(render_snapshot(snapshot))
    monkeypatch.setattr(health_reporter, "latest_snapshot", snapshot)
    return snapshot


class TestHealthEndpoints:
    """Test /health and /health-detailed."""

    def test_plaintext_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.text == "healthy\n"
        assert response.headers["content-type"].startswith("text/plain")

    def test_detailed_health_serves_snapshot_file(self, client, published):
        response = client.get("/health-detailed")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"
        assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
        body = response.json()
        assert body["status"] == "healthy"
        assert body["instance"]["id"] == published.instance.id
        assert body["services"]["content_sync"]["seconds_since_last_sync"] == 45

    def test_detailed_health_before_first_snapshot(self, client):
        response = client.get("/health-detailed")

        assert response.status_code == 503
        assert "not available" in response.json()["detail"]


class TestInstanceHeaders:
    """Every response names the instance that served it."""

    def test_headers_from_latest_snapshot(self, client, published):
        response = client.head("/")

        assert response.status_code == 200
        assert response.headers["X-Instance-ID"] == "i-0abc123def4567890"
        assert response.headers["X-Availability-Zone"] == "us-gov-west-1a"
        assert response.headers["X-Region"] == "us-gov-west-1"

    def test_unknown_before_first_snapshot(self, client):
        response = client.get("/health")
        assert response.headers["X-Instance-ID"] == "unknown"

    def test_headers_on_error_responses(self, client, published):
        response = client.get("/does-not-exist")
        assert response.headers["X-Instance-ID"] == "i-0abc123def4567890"


class TestReviewEndpoints:
    """Test /api/metrics and /api/applications."""

    def test_metrics(self, client, published):
        response = client.get("/api/metrics")

        assert response.status_code == 200
        body = response.json()
        assert body["data"] == {
            "applications_processed": 3,
            "pending_review": 3,
            "approved_today": 0,
            "rejected_today": 0,
        }
        assert body["server_info"]["instance"] == {
            "id": "i-0abc123def4567890",
            "type": "t3.small",
            "availability_zone": "us-gov-west-1a",
            "region": "us-gov-west-1",
        }
        assert body["server_info"]["timestamp"].endswith("Z")

    def test_applications(self, client):
        response = client.get("/api/applications")

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data) == 6
        assert {app["status"] for app in data} == {"pending", "approved", "rejected"}

    def test_decision_is_reflected_in_metrics(self, client):
        response = client.post(
            "/api/applications/APP-2025-001234/decision",
            json={"decision": "approve", "comments": "Looks good", "timestamp": "2025-01-26T09:00:00Z"},
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Decision approve recorded for application APP-2025-001234"

        data = client.get("/api/metrics").json()["data"]
        assert data["pending_review"] == 2
        assert data["approved_today"] == 1

    def test_decision_for_unknown_application(self, client):
        response = client.post(
            "/api/applications/APP-0000/decision",
            json={"decision": "reject", "timestamp": "2025-01-26T09:00:00Z"},
        )

        assert response.status_code == 404
        assert "APP-0000" in response.json()["detail"]

    def test_invalid_decision_body(self, client):
        response = client.post(
            "/api/applications/APP-2025-001234/decision",
            content=json.dumps({"decision": "maybe"}),
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request body"


class TestErrorResponses:
    """Test unknown paths and methods."""

    def test_unknown_path_lists_endpoints(self, client):
        response = client.get("/api/unknown")

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "Not Found"
        assert body["available_endpoints"] == AVAILABLE_ENDPOINTS

    def test_wrong_method(self, client):
        response = client.get("/api/applications/APP-2025-001234/decision")

        assert response.status_code == 405
        assert response.json()["error"] == "Method Not Allowed"

    def test_request_id_is_echoed(self, client):
        response = client.get("/api/applications", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    def test_request_id_is_generated(self, client):
        response = client.get("/health")
        assert response.headers["X-Request-ID"]
