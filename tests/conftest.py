"""Pytest configuration and fixtures for SAT Vault tests.

Provides in-memory and fake-Postgres wiring so unit tests never need a real
database. Postgres integration tests live in test_submissions_postgres.py.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from satvault.api.main import create_app
from satvault.crypto.codec import FixedSaltScryptKeyDeriver, SecretCodec
from satvault.persistence.db import reset_engine
from satvault.persistence.repositories.submissions import InMemorySubmissionStore
from satvault.services.submissions import SubmissionService
from tests.fixtures.fake_postgres import FakeDatabase, FakeEngine
from tests.fixtures.vault import FAST_SCRYPT_N, TEST_PASSPHRASE


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Clear store configuration so no test reaches a real database by accident."""
    for var in ("DATABASE_URL", "PGP_SECRET", "PORT"):
        monkeypatch.delenv(var, raising=False)
    yield
    reset_engine()


@pytest.fixture
def codec() -> SecretCodec:
    """Codec with fast key derivation."""
    return SecretCodec(FixedSaltScryptKeyDeriver(n=FAST_SCRYPT_N))


@pytest.fixture
def memory_store() -> InMemorySubmissionStore:
    return InMemorySubmissionStore()


@pytest.fixture
def service(memory_store: InMemorySubmissionStore, codec: SecretCodec) -> SubmissionService:
    return SubmissionService(memory_store, codec, TEST_PASSPHRASE)


@pytest.fixture
def client(service: SubmissionService) -> TestClient:
    """Test client over an in-memory store."""
    app = create_app(submission_service=service)
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def fake_engine(fake_db: FakeDatabase) -> FakeEngine:
    return FakeEngine(fake_db)
