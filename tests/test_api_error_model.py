"""Tests for SAT Vault API error model and exception handling.

Tests cover:
A) Error envelope shape and request_id correlation
B) 404 / 405 framework errors use the same envelope (405 keeps Allow)
C) Taxonomy mapping: ValidationError -> 400, StoreUnavailableError -> 503, other -> 500
D) Generic exception handling (500 with safe message, no stack traces)
"""

import pytest
from fastapi import APIRouter
from fastapi.testclient import TestClient

from satvault.api.error_model import get_error_code_for_status
from satvault.api.errors import status_for_error
from satvault.api.main import create_app
from satvault.errors import (
    InternalError,
    SchemaMismatchError,
    StoreUnavailableError,
    ValidationError,
)
from satvault.services.submissions import SubmissionService


@pytest.fixture
def failing_client(service: SubmissionService) -> TestClient:
    """Client whose app exposes routes that raise on purpose."""
    app = create_app(submission_service=service)
    router = APIRouter()

    @router.get("/boom")
    def boom() -> None:
        raise RuntimeError("connection string postgres://user:pw@host/db leaked")

    @router.get("/internal")
    def internal() -> None:
        raise SchemaMismatchError("sat_credentials", ("iv",))

    app.include_router(router)
    return TestClient(app, raise_server_exceptions=False)


class TestErrorEnvelope:
    """Test A: envelope shape + request_id correlation."""

    def test_envelope_keys(self, client: TestClient) -> None:
        """Error responses carry ok, error, code, request_id."""
        body = client.get("/does-not-exist").json()

        assert set(body) == {"ok", "error", "code", "request_id"}
        assert body["ok"] is False

    def test_request_id_matches_header(self, client: TestClient) -> None:
        """Body request_id matches the X-Request-Id header."""
        response = client.get("/does-not-exist", headers={"X-Request-Id": "corr-1"})

        assert response.headers["X-Request-Id"] == "corr-1"
        assert response.json()["request_id"] == "corr-1"


class TestFrameworkErrors:
    """Test B: 404 / 405."""

    def test_404_code(self, client: TestClient) -> None:
        response = client.get("/does-not-exist")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    @pytest.mark.parametrize("path", ["/api/credentials", "/api/upload-fiel"])
    def test_405_keeps_allow_header(self, client: TestClient, path: str) -> None:
        """Non-POST methods on submission routes return 405 with Allow: POST."""
        response = client.get(path)

        assert response.status_code == 405
        assert response.headers["Allow"] == "POST"
        assert response.json()["code"] == "METHOD_NOT_ALLOWED"

    def test_unknown_status_code_maps_to_error(self) -> None:
        assert get_error_code_for_status(418) == "ERROR"


class TestTaxonomyMapping:
    """Test C: taxonomy to HTTP status."""

    @pytest.mark.parametrize(
        ("exc", "expected"),
        [
            (ValidationError("x"), (400, "VALIDATION_FAILED")),
            (StoreUnavailableError(), (503, "STORE_UNAVAILABLE")),
            (InternalError(), (500, "INTERNAL_ERROR")),
            (SchemaMismatchError("t", ("iv",)), (500, "INTERNAL_ERROR")),
        ],
    )
    def test_status_for_error(self, exc: Exception, expected: tuple[int, str]) -> None:
        assert status_for_error(exc) == expected

    def test_internal_taxonomy_error_uses_generic_message(self, failing_client: TestClient) -> None:
        """A non-client taxonomy error never leaks its message."""
        response = failing_client.get("/internal")

        assert response.status_code == 500
        assert response.json()["error"] == "Server error"
        assert "sat_credentials" not in response.text


class TestGenericExceptions:
    """Test D: unhandled exceptions."""

    def test_unhandled_exception_returns_500(self, failing_client: TestClient) -> None:
        response = failing_client.get("/boom")

        assert response.status_code == 500
        body = response.json()
        assert body["code"] == "INTERNAL_ERROR"
        assert body["error"] == "Server error"

    def test_unhandled_exception_hides_details(self, failing_client: TestClient) -> None:
        response = failing_client.get("/boom")

        assert "postgres://" not in response.text
        assert "Traceback" not in response.text

    def test_unhandled_exception_has_request_id(self, failing_client: TestClient) -> None:
        response = failing_client.get("/boom", headers={"X-Request-Id": "boom-1"})

        assert response.json()["request_id"] == "boom-1"
