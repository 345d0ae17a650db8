"""Tests for the satvault CLI.

Tests cover:
1. No command prints help (exit code 0)
2. Missing configuration fails closed (exit code 2)
3. schema ensure / show against the fake PostgreSQL stand-in
4. schema ensure with an unreachable store (exit code 2, CONNECTION_FAILURE)
"""

from __future__ import annotations

import json

import pytest

import satvault.cli as cli
from satvault.cli import main
from tests.fixtures.fake_postgres import FakeDatabase, FakeEngine


@pytest.fixture
def configured_env(monkeypatch: pytest.MonkeyPatch, fake_engine: FakeEngine) -> FakeEngine:
    """Environment with required settings and the engine swapped for a fake."""
    monkeypatch.setattr(cli, "load_dotenv", lambda: False)
    monkeypatch.setenv("DATABASE_URL", "postgresql://user:pw@localhost:5432/sat")
    monkeypatch.setenv("PGP_SECRET", "cli-secret")
    monkeypatch.setattr(cli, "get_engine", lambda settings: fake_engine)
    return fake_engine


class TestCliBasics:
    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        exit_code = main([])

        assert exit_code == 0
        assert "usage: satvault" in capsys.readouterr().out

    def test_missing_config_exits_2(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setattr(cli, "load_dotenv", lambda: False)

        exit_code = main(["schema", "ensure"])

        assert exit_code == 2
        assert "DATABASE_URL" in capsys.readouterr().err

    def test_unknown_table_rejected(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main(["schema", "ensure", "--table", "users"])
        assert exc_info.value.code == 2


class TestSchemaCommands:
    def test_ensure_all_tables(
        self,
        configured_env: FakeEngine,
        fake_db: FakeDatabase,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        exit_code = main(["schema", "ensure"])
        output = json.loads(capsys.readouterr().out)

        assert exit_code == 0
        assert output == {"ensured": ["sat_credentials", "fiel_uploads"], "status": "ok"}
        assert set(fake_db.tables) == {"sat_credentials", "fiel_uploads"}

    def test_ensure_single_table(
        self,
        configured_env: FakeEngine,
        fake_db: FakeDatabase,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        exit_code = main(["schema", "ensure", "--table", "fiel_uploads"])

        assert exit_code == 0
        assert set(fake_db.tables) == {"fiel_uploads"}
        assert json.loads(capsys.readouterr().out)["ensured"] == ["fiel_uploads"]

    def test_ensure_unreachable_store(
        self,
        configured_env: FakeEngine,
        fake_db: FakeDatabase,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        fake_db.unreachable = True

        exit_code = main(["schema", "ensure"])
        output = json.loads(capsys.readouterr().out)

        assert exit_code == 2
        assert output["status"] == "failed"
        assert output["error"] == "CONNECTION_FAILURE"

    def test_show_reports_column_types(
        self,
        configured_env: FakeEngine,
        fake_db: FakeDatabase,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        fake_db.create_table("sat_credentials", {"id": "bigint", "password_enc": "bytea"})

        exit_code = main(["schema", "show", "--table", "sat_credentials"])
        output = json.loads(capsys.readouterr().out)

        assert exit_code == 0
        assert output["tables"]["sat_credentials"] == {"id": "bigint", "password_enc": "bytea"}
