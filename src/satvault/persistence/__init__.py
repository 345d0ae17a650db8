"""SAT Vault Persistence Module.

Provides PostgreSQL connectivity, error-kind classification and idempotent
schema evolution.
"""

from satvault.persistence.db import (
    begin_conn,
    create_store_engine,
    get_engine,
    normalize_database_url,
    reset_engine,
)
from satvault.persistence.errors import ErrorKind, classify_db_error
from satvault.persistence.schema import (
    CREDENTIALS_TABLE,
    FIEL_UPLOADS_TABLE,
    ColumnSpec,
    SchemaEnsurer,
    TableSpec,
)

__all__ = [
    "CREDENTIALS_TABLE",
    "FIEL_UPLOADS_TABLE",
    "ColumnSpec",
    "ErrorKind",
    "SchemaEnsurer",
    "TableSpec",
    "begin_conn",
    "classify_db_error",
    "create_store_engine",
    "get_engine",
    "normalize_database_url",
    "reset_engine",
]
