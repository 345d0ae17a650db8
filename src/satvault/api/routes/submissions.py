"""Submission routes for the SAT Vault API.

- POST /api/credentials: JSON or urlencoded/multipart form {subjectId | rfc, password}
- POST /api/upload-fiel: multipart with files `cer`, `key` and field `password`

Both delegate to SubmissionService; sync DB and key-derivation work runs in a
worker thread.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, Request
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from starlette.datastructures import UploadFile

from satvault.errors import ValidationError
from satvault.services.submissions import CREDENTIALS_REQUIRED_MESSAGE, SubmissionService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Submissions"])

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class SubmissionAck(BaseModel):
    """Successful submission acknowledgement."""

    ok: bool = True


class CredentialsSubmission(BaseModel):
    """Body of POST /api/credentials.

    The tax identifier is accepted as `subjectId`, `subject_id` or `rfc`.
    Missing and falsy values (null, false, 0) become ""; other non-string
    scalars are coerced to strings. `true` and containers are rejected.
    """

    model_config = ConfigDict(extra="ignore")

    subject_id: str = Field(
        default="",
        validation_alias=AliasChoices("subjectId", "subject_id", "rfc"),
    )
    password: str = ""

    @field_validator("subject_id", "password", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if isinstance(value, bool) and value:
            raise ValueError("must not be a boolean")
        if isinstance(value, (dict, list)):
            raise ValueError("must be a scalar")
        if not value:
            return ""
        return str(value)


def get_submission_service(request: Request) -> SubmissionService:
    service: SubmissionService = request.app.state.submission_service
    return service


async def _read_body(request: Request) -> dict[str, Any]:
    content_type = request.headers.get("content-type", "").split(";")[0].strip().lower()

    if content_type in FORM_CONTENT_TYPES:
        form = await request.form()
        return {k: v for k, v in form.items() if isinstance(v, str)}

    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON body") from None
    return body if isinstance(body, dict) else {}


@router.post("/api/credentials", response_model=SubmissionAck)
async def submit_credentials(request: Request) -> SubmissionAck:
    """Encrypt and store an RFC + password pair."""
    body = await _read_body(request)
    try:
        submission = CredentialsSubmission.model_validate(body)
    except ValueError:
        raise ValidationError(CREDENTIALS_REQUIRED_MESSAGE) from None

    service = get_submission_service(request)
    await asyncio.to_thread(
        service.submit_credentials,
        submission.subject_id,
        submission.password,
        request_id=getattr(request.state, "request_id", None),
    )
    return SubmissionAck()


async def _read_file_part(part: Any) -> bytes:
    if isinstance(part, UploadFile):
        return await part.read()
    return b""


@router.post("/api/upload-fiel", response_model=SubmissionAck)
async def upload_fiel(request: Request) -> SubmissionAck:
    """Encrypt the FIEL password and store it with the certificate and key files.

    Parts of the wrong kind (text where a file is expected, or the reverse)
    count as missing.
    """
    form = await request.form()
    cer_bytes = await _read_file_part(form.get("cer"))
    key_bytes = await _read_file_part(form.get("key"))
    password = form.get("password")
    if not isinstance(password, str):
        password = ""

    service = get_submission_service(request)
    await asyncio.to_thread(
        service.submit_fiel,
        cer_bytes,
        key_bytes,
        password,
        request_id=getattr(request.state, "request_id", None),
    )
    return SubmissionAck()
