"""Idempotent schema evolution for SAT Vault tables.

SchemaEnsurer brings a table to at least its declared shape before each write:

1. CREATE TABLE IF NOT EXISTS with the minimum columns
2. ADD COLUMN IF NOT EXISTS for every declared column
3. Best-effort bytea -> text migration of columns that now hold base64 text

Every step is forward-only and tolerant of already-applied state, so concurrent
or repeated calls converge on the same shape. Columns are never dropped or
narrowed.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from satvault.persistence.errors import ErrorKind, classify_db_error

if TYPE_CHECKING:
    from sqlalchemy import Connection, Engine

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")


def quote_ident(name: str) -> str:
    """Quote a validated lower-case identifier."""
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return f'"{name}"'


@dataclass(frozen=True)
class ColumnSpec:
    """One column of a managed table.

    Attributes:
        name: Column name (lower-case identifier).
        sql_type: PostgreSQL type, e.g. "text" or "bytea".
        nullable: Whether NULL is allowed at CREATE time.
        default: Optional SQL default expression, e.g. "now()".
        primary_key: Whether this is the primary key.
    """

    name: str
    sql_type: str
    nullable: bool = True
    default: str | None = None
    primary_key: bool = False

    def create_ddl(self) -> str:
        parts = [quote_ident(self.name), self.sql_type]
        if self.primary_key:
            parts.append("primary key")
        elif not self.nullable:
            parts.append("not null")
        if self.default is not None:
            parts.append(f"default {self.default}")
        return " ".join(parts)

    def add_ddl(self) -> str:
        # Added columns stay nullable; existing rows have no value for them.
        parts = [quote_ident(self.name), self.sql_type]
        if self.default is not None:
            parts.append(f"default {self.default}")
        return " ".join(parts)


@dataclass(frozen=True)
class TableSpec:
    """Declared shape of a managed table.

    Attributes:
        name: Table name.
        columns: Minimum columns, in CREATE order.
        legacy_optional: Columns an older table may lack; inserts retry without them.
        text_migrations: Columns that may still be bytea and must become text.
    """

    name: str
    columns: tuple[ColumnSpec, ...]
    legacy_optional: tuple[str, ...] = ()
    text_migrations: tuple[str, ...] = field(default=())

    def __post_init__(self) -> None:
        quote_ident(self.name)
        names = {c.name for c in self.columns}
        for extra in (*self.legacy_optional, *self.text_migrations):
            if extra not in names:
                raise ValueError(f"{self.name}: {extra} is not a declared column")

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(c.name for c in self.columns)


def _base_columns(*fields: ColumnSpec) -> tuple[ColumnSpec, ...]:
    return (
        ColumnSpec("id", "bigserial", primary_key=True),
        *fields,
        ColumnSpec("password_enc", "text", nullable=False),
        ColumnSpec("iv", "text"),
        ColumnSpec("created_at", "timestamptz", nullable=False, default="now()"),
    )


CREDENTIALS_TABLE = TableSpec(
    name="sat_credentials",
    columns=_base_columns(ColumnSpec("rfc", "text", nullable=False)),
    legacy_optional=("iv",),
    text_migrations=("password_enc",),
)

FIEL_UPLOADS_TABLE = TableSpec(
    name="fiel_uploads",
    columns=_base_columns(
        ColumnSpec("cer", "bytea", nullable=False),
        ColumnSpec("key", "bytea", nullable=False),
    ),
    legacy_optional=("iv",),
)


_COLUMN_TYPES_SQL = text(
    """
    SELECT column_name, data_type
    FROM information_schema.columns
    WHERE table_schema = current_schema() AND table_name = :table_name
    """
)


def get_column_types(conn: Connection, table_name: str) -> dict[str, str]:
    """Return {column_name: data_type} for a table in the current schema."""
    rows = conn.execute(_COLUMN_TYPES_SQL, {"table_name": table_name}).fetchall()
    return {row[0]: row[1] for row in rows}


class SchemaEnsurer:
    """Brings tables to their declared shape. Safe to call on every request."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    def ensure(self, table: TableSpec) -> None:
        """Create or extend `table` so it has at least the declared columns.

        Args:
            table: Declared table shape.

        Raises:
            SQLAlchemyError: If the table cannot be created or extended for a
                reason other than already-applied state or missing privileges.
        """
        with self._engine.connect() as conn:
            self._create_table(conn, table)
            self._add_missing_columns(conn, table)
            if table.text_migrations:
                self._migrate_text_columns(conn, table)

    def _create_table(self, conn: Connection, table: TableSpec) -> None:
        columns = ",\n    ".join(c.create_ddl() for c in table.columns)
        ddl = f"CREATE TABLE IF NOT EXISTS {quote_ident(table.name)} (\n    {columns}\n)"
        try:
            with conn.begin():
                conn.execute(text(ddl))
        except DBAPIError as e:
            if classify_db_error(e) is not ErrorKind.DUPLICATE_OBJECT:
                raise
            logger.debug("Table %s created concurrently", table.name)

    def _add_missing_columns(self, conn: Connection, table: TableSpec) -> None:
        additions = ", ".join(
            f"ADD COLUMN IF NOT EXISTS {c.add_ddl()}" for c in table.columns if not c.primary_key
        )
        ddl = f"ALTER TABLE {quote_ident(table.name)} {additions}"
        try:
            with conn.begin():
                conn.execute(text(ddl))
        except DBAPIError as e:
            kind = classify_db_error(e)
            if kind is ErrorKind.DUPLICATE_OBJECT:
                logger.debug("Columns of %s added concurrently", table.name)
            elif kind is ErrorKind.INSUFFICIENT_PRIVILEGE:
                logger.warning(
                    "No privilege to extend table %s; inserts fall back to legacy columns",
                    table.name,
                )
            else:
                raise

    def _migrate_text_columns(self, conn: Connection, table: TableSpec) -> None:
        try:
            with conn.begin():
                types = get_column_types(conn, table.name)
        except SQLAlchemyError as e:
            logger.warning(
                "Could not inspect %s for text migration: %s", table.name, classify_db_error(e).value
            )
            return

        for column in table.text_migrations:
            if types.get(column) != "bytea":
                continue
            col = quote_ident(column)
            ddl = (
                f"ALTER TABLE {quote_ident(table.name)} "
                f"ALTER COLUMN {col} TYPE text USING encode({col}, 'base64')"
            )
            try:
                with conn.begin():
                    conn.execute(text(ddl))
                logger.info("Migrated %s.%s from bytea to base64 text", table.name, column)
            except SQLAlchemyError as e:
                # Another request may have migrated it first.
                logger.warning(
                    "Text migration of %s.%s skipped: %s",
                    table.name,
                    column,
                    classify_db_error(e).value,
                )
