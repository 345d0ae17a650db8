"""Runtime configuration for SAT Vault.

Environment Variables:
    DATABASE_URL: PostgreSQL connection string (required)
    PGP_SECRET: Master passphrase for secret encryption (required)
    PORT: HTTP port for `satvault serve` (default: 3000)
    SATVAULT_DB_POOL_SIZE: Connection pool capacity, clamped to 1-3 (default: 3)
    SATVAULT_DB_CONNECT_TIMEOUT: Seconds to wait for a connection (default: 5)
    SATVAULT_DB_SSLMODE: libpq sslmode (default: "require", no cert verification)
    SATVAULT_LOG_LEVEL: Root log level for the CLI (default: INFO)

Fail closed: a missing DATABASE_URL or PGP_SECRET raises ConfigError and the
process does not start.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

DATABASE_URL_ENV = "DATABASE_URL"
MASTER_SECRET_ENV = "PGP_SECRET"
PORT_ENV = "PORT"
POOL_SIZE_ENV = "SATVAULT_DB_POOL_SIZE"
CONNECT_TIMEOUT_ENV = "SATVAULT_DB_CONNECT_TIMEOUT"
SSLMODE_ENV = "SATVAULT_DB_SSLMODE"
LOG_LEVEL_ENV = "SATVAULT_LOG_LEVEL"

DEFAULT_PORT = 3000
DEFAULT_POOL_SIZE = 3
MIN_POOL_SIZE = 1
MAX_POOL_SIZE = 3
DEFAULT_CONNECT_TIMEOUT = 5
DEFAULT_SSLMODE = "require"
DEFAULT_LOG_LEVEL = "INFO"


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


@dataclass(frozen=True)
class Settings:
    """Validated process settings.

    Attributes:
        database_url: PostgreSQL connection string as configured.
        master_secret: Passphrase fed to the key deriver. Never logged.
        port: HTTP listen port.
        pool_size: Connection pool capacity (1-3).
        connect_timeout: Seconds to wait for pool checkout and TCP connect.
        sslmode: libpq sslmode passed to the driver.
        log_level: Root logger level name.
    """

    database_url: str
    master_secret: str
    port: int = DEFAULT_PORT
    pool_size: int = DEFAULT_POOL_SIZE
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT
    sslmode: str = DEFAULT_SSLMODE
    log_level: str = DEFAULT_LOG_LEVEL

    def __repr__(self) -> str:
        return (
            f"Settings(port={self.port}, pool_size={self.pool_size}, "
            f"connect_timeout={self.connect_timeout}, sslmode={self.sslmode!r})"
        )

    @property
    def master_secret_bytes(self) -> bytes:
        return self.master_secret.encode("utf-8")


def _get_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from None


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Load settings from the environment.

    Args:
        environ: Mapping to read from; defaults to os.environ.

    Returns:
        Validated Settings.

    Raises:
        ConfigError: If DATABASE_URL or PGP_SECRET is missing, or a numeric
            variable is malformed.
    """
    env = os.environ if environ is None else environ

    database_url = env.get(DATABASE_URL_ENV, "").strip()
    if not database_url:
        raise ConfigError(f"Missing {DATABASE_URL_ENV}")

    master_secret = env.get(MASTER_SECRET_ENV, "")
    if not master_secret:
        raise ConfigError(f"Missing {MASTER_SECRET_ENV}")

    pool_size = _get_int(env, POOL_SIZE_ENV, DEFAULT_POOL_SIZE)
    pool_size = max(MIN_POOL_SIZE, min(MAX_POOL_SIZE, pool_size))

    connect_timeout = _get_int(env, CONNECT_TIMEOUT_ENV, DEFAULT_CONNECT_TIMEOUT)
    if connect_timeout <= 0:
        raise ConfigError(f"{CONNECT_TIMEOUT_ENV} must be positive")

    return Settings(
        database_url=database_url,
        master_secret=master_secret,
        port=_get_int(env, PORT_ENV, DEFAULT_PORT),
        pool_size=pool_size,
        connect_timeout=connect_timeout,
        sslmode=env.get(SSLMODE_ENV, DEFAULT_SSLMODE).strip() or DEFAULT_SSLMODE,
        log_level=env.get(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL).strip().upper() or DEFAULT_LOG_LEVEL,
    )
