"""PostgreSQL connectivity for SAT Vault.

Provides engine creation over a small bounded pool and a transactional
connection helper.

Pool behaviour:
    - Capacity 1-3 connections, no overflow
    - Checkout blocks up to the configured connect timeout (default 5s)
    - TLS mode comes from configuration; a trailing `?sslmode=require` in the
      URL is stripped so it cannot conflict with the configured mode
"""

from __future__ import annotations

import logging
import re
from collections.abc import Generator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy import create_engine

from satvault.config import Settings

if TYPE_CHECKING:
    from sqlalchemy import Connection, Engine

logger = logging.getLogger(__name__)

POOL_RECYCLE_SECONDS = 300
DRIVER_SCHEME = "postgresql+psycopg2://"

_SSLMODE_SUFFIX = re.compile(r"\?sslmode=require$", re.IGNORECASE)

_engine: Engine | None = None


def normalize_database_url(url: str) -> str:
    """Prepare a configured URL for SQLAlchemy.

    - `postgres://` and `postgresql://` become `postgresql+psycopg2://` (pins the driver)
    - a trailing `?sslmode=require` is removed

    Args:
        url: Connection string as configured.

    Returns:
        URL suitable for create_engine().
    """
    for scheme in ("postgres://", "postgresql://"):
        if url.startswith(scheme):
            url = DRIVER_SCHEME + url[len(scheme) :]
            break
    return _SSLMODE_SUFFIX.sub("", url)


def create_store_engine(settings: Settings) -> Engine:
    """Create a SQLAlchemy engine sized for request-per-thread handling.

    Args:
        settings: Validated settings.

    Returns:
        New Engine. Callers own its lifetime.
    """
    engine = create_engine(
        normalize_database_url(settings.database_url),
        pool_size=settings.pool_size,
        max_overflow=0,
        pool_timeout=settings.connect_timeout,
        pool_recycle=POOL_RECYCLE_SECONDS,
        pool_pre_ping=True,
        connect_args={
            "sslmode": settings.sslmode,
            "connect_timeout": settings.connect_timeout,
        },
        echo=False,
    )
    logger.info(
        "Created store engine (pool_size=%d, timeout=%ds, sslmode=%s)",
        settings.pool_size,
        settings.connect_timeout,
        settings.sslmode,
    )
    return engine


def get_engine(settings: Settings) -> Engine:
    """Get or create the process-wide engine."""
    global _engine

    if _engine is None:
        _engine = create_store_engine(settings)

    return _engine


@contextmanager
def begin_conn(engine: Engine) -> Generator[Connection, None, None]:
    """Open a connection with a transaction; commit on success, roll back on error.

    Yields:
        SQLAlchemy Connection in a transaction.
    """
    with engine.connect() as conn, conn.begin():
        yield conn


def reset_engine() -> None:
    """Dispose the process-wide engine. Used by tests and CLI shutdown."""
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None
