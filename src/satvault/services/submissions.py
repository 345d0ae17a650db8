"""Submission pipeline: validate -> ensure schema -> encrypt -> insert.

Both HTTP endpoints (RFC credentials and FIEL uploads) go through
SubmissionService.submit() with their own TableSpec and fields.

Failure policy:
- ValidationError is raised before any encryption or I/O
- schema ensure failures short-circuit before key derivation runs
- connection failures on insert surface as StoreUnavailableError
- everything else is normalized to InternalError; details are logged only
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from satvault.crypto.codec import CodecError, SecretCodec
from satvault.errors import (
    InternalError,
    StoreUnavailableError,
    ValidationError,
)
from satvault.persistence.db import get_engine
from satvault.persistence.errors import ErrorKind, classify_db_error
from satvault.persistence.repositories.submissions import (
    PostgresSubmissionStore,
    SubmissionStore,
)
from satvault.persistence.schema import CREDENTIALS_TABLE, FIEL_UPLOADS_TABLE, TableSpec

if TYPE_CHECKING:
    from satvault.config import Settings

logger = logging.getLogger(__name__)

CREDENTIALS_REQUIRED_MESSAGE = "RFC and password are required"
FIEL_REQUIRED_MESSAGE = "Faltan archivos o contraseña"

REQUIRED_MESSAGES = {
    CREDENTIALS_TABLE.name: CREDENTIALS_REQUIRED_MESSAGE,
    FIEL_UPLOADS_TABLE.name: FIEL_REQUIRED_MESSAGE,
}


class SubmissionService:
    """Encrypts and stores submitted credentials."""

    def __init__(self, store: SubmissionStore, codec: SecretCodec, passphrase: bytes) -> None:
        """Initialize the service.

        Args:
            store: Persistence backend.
            codec: Secret codec.
            passphrase: Master passphrase; an empty value fails every submission
                with InternalError at encryption time.
        """
        self._store = store
        self._codec = codec
        self._passphrase = passphrase

    def submit_credentials(
        self,
        subject_id: str | None,
        password: str | None,
        *,
        request_id: str | None = None,
    ) -> int:
        """Store an RFC + password pair. Returns the new row id."""
        subject = (subject_id or "").strip()
        secret = password or ""
        if not subject or not secret:
            raise ValidationError(CREDENTIALS_REQUIRED_MESSAGE)

        return self.submit(
            CREDENTIALS_TABLE,
            {"rfc": subject},
            secret.encode("utf-8"),
            request_id=request_id,
        )

    def submit_fiel(
        self,
        cer: bytes | None,
        key: bytes | None,
        password: str | None,
        *,
        request_id: str | None = None,
    ) -> int:
        """Store a FIEL certificate/key pair with its password. Returns the new row id."""
        if not cer or not key or not password:
            raise ValidationError(FIEL_REQUIRED_MESSAGE)

        return self.submit(
            FIEL_UPLOADS_TABLE,
            {"cer": cer, "key": key},
            password.encode("utf-8"),
            request_id=request_id,
        )

    def submit(
        self,
        table: TableSpec,
        fields: dict[str, Any],
        secret: bytes,
        *,
        request_id: str | None = None,
    ) -> int:
        """Run the ensure -> encrypt -> insert sequence for one submission.

        Args:
            table: Target table.
            fields: Plain (non-secret) column values.
            secret: Secret bytes to encrypt into password_enc/iv.
            request_id: Correlation id for logs.

        Returns:
            The new row id.

        Raises:
            ValidationError: If secret is empty; the message is the one
                registered for the table in REQUIRED_MESSAGES.
            StoreUnavailableError: If the store cannot be reached or prepared.
            InternalError: For any other failure.
        """
        if not secret:
            raise ValidationError(
                REQUIRED_MESSAGES.get(table.name, CREDENTIALS_REQUIRED_MESSAGE)
            )

        log_extra = {"request_id": request_id}

        try:
            self._store.ensure_schema(table)
        except Exception as e:
            logger.error(
                "DB ensure error for %s: %s", table.name, type(e).__name__, extra=log_extra
            )
            raise StoreUnavailableError() from e

        try:
            encoded = self._codec.encrypt(secret, self._passphrase)
        except CodecError as e:
            logger.error("Encryption failed for %s: %s", table.name, e, extra=log_extra)
            raise InternalError() from e

        values = {**fields, "password_enc": encoded.payload, "iv": encoded.iv}

        try:
            row_id = self._store.insert(table, values)
        except SQLAlchemyError as e:
            kind = classify_db_error(e)
            if kind is ErrorKind.CONNECTION_FAILURE:
                logger.error("Store unavailable on insert into %s", table.name, extra=log_extra)
                raise StoreUnavailableError() from e
            logger.exception(
                "Insert into %s failed (%s)", table.name, kind.value, extra=log_extra
            )
            raise InternalError() from e
        except Exception as e:
            logger.exception("Insert into %s failed", table.name, extra=log_extra)
            raise InternalError() from e

        logger.info("Stored submission in %s (id=%d)", table.name, row_id, extra=log_extra)
        return row_id


def build_submission_service(settings: Settings) -> SubmissionService:
    """Wire a PostgreSQL-backed service from settings."""
    store = PostgresSubmissionStore(get_engine(settings))
    return SubmissionService(store, SecretCodec(), settings.master_secret_bytes)
