"""Error-kind classification at the store-adapter boundary.

Driver exceptions carry a raw SQLSTATE. Callers branch on ErrorKind instead so
fallback and retry logic never depends on numeric codes.
"""

from __future__ import annotations

from enum import Enum

from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    InterfaceError,
    OperationalError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

UNDEFINED_COLUMN = "42703"
UNDEFINED_TABLE = "42P01"
DUPLICATE_TABLE = "42P07"
DUPLICATE_COLUMN = "42701"
DUPLICATE_OBJECT = "42710"
UNIQUE_VIOLATION = "23505"
INSUFFICIENT_PRIVILEGE = "42501"

# Concurrent CREATE TABLE IF NOT EXISTS can collide on the catalog entries
# for the row type or the relation itself.
PG_TYPE_UNIQUE_INDEX = "pg_type_typname_nsp_index"
PG_CLASS_UNIQUE_INDEX = "pg_class_relname_nsp_index"
CATALOG_RACE_INDEXES = frozenset({PG_TYPE_UNIQUE_INDEX, PG_CLASS_UNIQUE_INDEX})


class ErrorKind(str, Enum):
    """Semantic kinds of store failures."""

    UNDEFINED_COLUMN = "UNDEFINED_COLUMN"
    UNDEFINED_TABLE = "UNDEFINED_TABLE"
    DUPLICATE_OBJECT = "DUPLICATE_OBJECT"
    CONNECTION_FAILURE = "CONNECTION_FAILURE"
    CONSTRAINT_VIOLATION = "CONSTRAINT_VIOLATION"
    INSUFFICIENT_PRIVILEGE = "INSUFFICIENT_PRIVILEGE"
    OTHER = "OTHER"


def get_sqlstate(exc: BaseException) -> str | None:
    """Extract the SQLSTATE from a SQLAlchemy or DBAPI exception.

    Supports psycopg2 (`pgcode`) and psycopg 3 (`sqlstate`).
    """
    orig = getattr(exc, "orig", None) or exc
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    return str(code) if code else None


def _constraint_name(exc: BaseException) -> str | None:
    orig = getattr(exc, "orig", None) or exc
    diag = getattr(orig, "diag", None)
    return getattr(diag, "constraint_name", None) if diag is not None else None


def classify_db_error(exc: BaseException) -> ErrorKind:
    """Map a store exception to an ErrorKind.

    Args:
        exc: Exception raised by SQLAlchemy or the DBAPI driver.

    Returns:
        The semantic ErrorKind; OTHER when nothing more specific applies.
    """
    if isinstance(exc, (PoolTimeoutError, DisconnectionError)):
        return ErrorKind.CONNECTION_FAILURE

    code = get_sqlstate(exc)
    if code is not None:
        if code == UNDEFINED_COLUMN:
            return ErrorKind.UNDEFINED_COLUMN
        if code == UNDEFINED_TABLE:
            return ErrorKind.UNDEFINED_TABLE
        if code in (DUPLICATE_TABLE, DUPLICATE_COLUMN, DUPLICATE_OBJECT):
            return ErrorKind.DUPLICATE_OBJECT
        if code == UNIQUE_VIOLATION and _constraint_name(exc) in CATALOG_RACE_INDEXES:
            return ErrorKind.DUPLICATE_OBJECT
        if code == INSUFFICIENT_PRIVILEGE:
            return ErrorKind.INSUFFICIENT_PRIVILEGE
        if code.startswith("23"):
            return ErrorKind.CONSTRAINT_VIOLATION
        # Class 08 (connection exception), 57P0x (server shutdown)
        if code.startswith("08") or code in ("57P01", "57P02", "57P03"):
            return ErrorKind.CONNECTION_FAILURE
        return ErrorKind.OTHER

    if isinstance(exc, (OperationalError, InterfaceError)):
        return ErrorKind.CONNECTION_FAILURE
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return ErrorKind.CONNECTION_FAILURE
    return ErrorKind.OTHER
