"""SAT Vault error taxonomy.

Every failure of a submission is normalized to one of these classes before it
reaches the HTTP boundary:

- ValidationError: missing or empty input, detected before any I/O
- StoreUnavailableError: schema ensure or connection step failed
- SchemaMismatchError: insert hit a missing column (recovered internally)
- InternalError: anything else (encryption failure, unexpected store error)
"""

from __future__ import annotations


class SatVaultError(Exception):
    """Base exception for submission failures.

    Attributes:
        message: Human-readable message safe to return to the caller.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(SatVaultError):
    """Raised when a required input field is missing or empty."""


class StoreUnavailableError(SatVaultError):
    """Raised when the backing store cannot be reached or prepared."""

    def __init__(self, message: str = "Base de datos no disponible. Intenta más tarde.") -> None:
        super().__init__(message)


class SchemaMismatchError(SatVaultError):
    """Raised when an insert references a column the table does not have.

    Recovered by the legacy insert path and never surfaced to callers.
    """

    def __init__(self, table: str, columns: tuple[str, ...]) -> None:
        self.table = table
        self.columns = columns
        super().__init__(f"Table {table} is missing column(s): {', '.join(columns)}")


class InternalError(SatVaultError):
    """Raised for unexpected failures; details stay in server logs."""

    def __init__(self, message: str = "Server error") -> None:
        super().__init__(message)
