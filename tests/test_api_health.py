"""Tests for SAT Vault API health endpoint."""

from datetime import datetime

from fastapi.testclient import TestClient

from satvault import __version__
from satvault.persistence.repositories.submissions import InMemorySubmissionStore


def test_health_returns_200(client: TestClient) -> None:
    """GET /health returns 200 OK."""
    response = client.get("/health")
    assert response.status_code == 200


def test_health_contains_required_fields(client: TestClient) -> None:
    """GET /health response contains ok, status, time, and version."""
    data = client.get("/health").json()

    assert data["ok"] is True
    assert data["status"] == "ok"
    assert data["version"] == __version__


def test_health_time_is_iso8601(client: TestClient) -> None:
    """GET /health returns time in ISO-8601 format."""
    data = client.get("/health").json()

    datetime.fromisoformat(data["time"])


def test_health_does_not_touch_store(
    client: TestClient, memory_store: InMemorySubmissionStore
) -> None:
    """GET /health succeeds while the store is unreachable."""
    memory_store.available = False

    response = client.get("/health")

    assert response.status_code == 200
    assert memory_store.ensure_calls == 0


def test_health_includes_request_id_header(client: TestClient) -> None:
    """GET /health response includes X-Request-Id header."""
    response = client.get("/health")

    assert len(response.headers["X-Request-Id"]) > 0


def test_health_echoes_provided_request_id(client: TestClient) -> None:
    """GET /health with X-Request-Id header echoes it back."""
    custom_request_id = "test-request-id-12345"
    response = client.get("/health", headers={"X-Request-Id": custom_request_id})

    assert response.headers["X-Request-Id"] == custom_request_id


def test_health_replaces_oversized_request_id(client: TestClient) -> None:
    """An X-Request-Id longer than 128 chars is replaced with a UUID."""
    response = client.get("/health", headers={"X-Request-Id": "x" * 129})

    request_id = response.headers["X-Request-Id"]
    assert len(request_id) == 36
    assert request_id.count("-") == 4
