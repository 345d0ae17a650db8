"""Submission persistence with legacy-schema fallback.

RecordWriter inserts one row per submission. The first attempt includes every
column the caller supplies. When it fails because a legacy-optional column
(the iv) does not exist, the insert is retried without those columns: a table
created by an older deployment whose migration never ran stays writable.
Any other failure propagates unchanged.

Stores:
- PostgresSubmissionStore: SchemaEnsurer + RecordWriter over a pooled engine
- InMemorySubmissionStore: development/testing, no encryption-at-rest concerns
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError

from satvault.errors import SchemaMismatchError
from satvault.persistence.db import begin_conn
from satvault.persistence.errors import ErrorKind, classify_db_error
from satvault.persistence.schema import SchemaEnsurer, TableSpec, quote_ident

if TYPE_CHECKING:
    from sqlalchemy import Connection, Engine

logger = logging.getLogger(__name__)


class SubmissionStore(Protocol):
    """Persistence operations used by SubmissionService."""

    def ensure_schema(self, table: TableSpec) -> None: ...

    def insert(self, table: TableSpec, values: dict[str, Any]) -> int: ...


class RecordWriter:
    """Inserts rows, retrying without legacy-optional columns when needed."""

    def insert(self, conn: Connection, table: TableSpec, values: dict[str, Any]) -> int:
        """Insert one row and return its id.

        Args:
            conn: Connection inside a transaction.
            table: Target table shape.
            values: Column -> value; keys must be declared columns.

        Returns:
            The server-assigned row id.

        Raises:
            ValueError: If values name an undeclared column.
            SchemaMismatchError: If a required column is missing even after fallback.
            DBAPIError: For any other store failure.
        """
        unknown = set(values) - set(table.column_names)
        if unknown:
            raise ValueError(f"{table.name}: undeclared column(s) {sorted(unknown)}")

        try:
            return self._insert(conn, table, values)
        except SchemaMismatchError:
            legacy = tuple(c for c in table.legacy_optional if c in values)
            if not legacy:
                raise
            logger.warning(
                "Insert into %s failed on a missing column; retrying without %s",
                table.name,
                ", ".join(legacy),
            )
            reduced = {k: v for k, v in values.items() if k not in legacy}
            return self._insert(conn, table, reduced)

    def _insert(self, conn: Connection, table: TableSpec, values: dict[str, Any]) -> int:
        columns = [c for c in table.column_names if c in values]
        sql = text(
            f"INSERT INTO {quote_ident(table.name)} "
            f"({', '.join(quote_ident(c) for c in columns)}) "
            f"VALUES ({', '.join(f':{c}' for c in columns)}) "
            f"RETURNING {quote_ident('id')}"
        )
        try:
            with conn.begin_nested():
                row_id = conn.execute(sql, {c: values[c] for c in columns}).scalar_one()
        except DBAPIError as e:
            if classify_db_error(e) is ErrorKind.UNDEFINED_COLUMN:
                raise SchemaMismatchError(table.name, tuple(columns)) from e
            raise
        return int(row_id)


class PostgresSubmissionStore:
    """Submission store backed by PostgreSQL.

    Schema ensure and insert each run in their own transactions; there is no
    transaction spanning both.
    """

    def __init__(
        self,
        engine: Engine,
        *,
        ensurer: SchemaEnsurer | None = None,
        writer: RecordWriter | None = None,
    ) -> None:
        self._engine = engine
        self._ensurer = ensurer or SchemaEnsurer(engine)
        self._writer = writer or RecordWriter()

    def ensure_schema(self, table: TableSpec) -> None:
        self._ensurer.ensure(table)

    def insert(self, table: TableSpec, values: dict[str, Any]) -> int:
        with begin_conn(self._engine) as conn:
            return self._writer.insert(conn, table, values)


class InMemorySubmissionStore:
    """In-memory submission store for development/testing.

    Rows are kept as dicts per table. A table registered through
    `use_legacy_shape` lacks its legacy-optional columns, mirroring a table
    created by an older deployment. Setting `available` to False makes every
    operation fail like an unreachable database.
    """

    def __init__(self, *, available: bool = True) -> None:
        self.available = available
        self._rows: dict[str, list[dict[str, Any]]] = {}
        self._shapes: dict[str, tuple[str, ...]] = {}
        self._next_id = 1
        self.ensure_calls = 0

    def _check_available(self) -> None:
        if not self.available:
            raise OperationalError(
                "SELECT 1", {}, ConnectionRefusedError("connection refused (in-memory store)")
            )

    def use_legacy_shape(self, table: TableSpec) -> None:
        """Register `table` without its legacy-optional columns."""
        self._shapes[table.name] = tuple(
            c for c in table.column_names if c not in table.legacy_optional
        )
        self._rows.setdefault(table.name, [])

    def ensure_schema(self, table: TableSpec) -> None:
        self._check_available()
        self.ensure_calls += 1
        self._shapes.setdefault(table.name, table.column_names)
        self._rows.setdefault(table.name, [])

    def insert(self, table: TableSpec, values: dict[str, Any]) -> int:
        self._check_available()
        shape = self._shapes.get(table.name)
        if shape is None:
            raise SchemaMismatchError(table.name, tuple(values))

        missing = [c for c in values if c not in shape]
        if missing:
            if any(c not in table.legacy_optional for c in missing):
                raise SchemaMismatchError(table.name, tuple(missing))
            values = {k: v for k, v in values.items() if k in shape}

        row: dict[str, Any] = {c: None for c in shape}
        row.update(values)
        row["id"] = self._next_id
        row["created_at"] = datetime.now(UTC)
        self._next_id += 1
        self._rows[table.name].append(row)
        return row["id"]

    def rows(self, table_name: str) -> list[dict[str, Any]]:
        """Return copies of stored rows for a table."""
        return [dict(r) for r in self._rows.get(table_name, [])]

    def clear(self) -> None:
        """Remove all rows and shapes. For testing only."""
        self._rows.clear()
        self._shapes.clear()
        self._next_id = 1
        self.ensure_calls = 0
