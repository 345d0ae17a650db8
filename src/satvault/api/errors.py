"""SAT Vault API error handling.

Maps the submission error taxonomy and framework errors onto the JSON error
envelope from error_model.

Global exception handlers:
- SatVaultError: ValidationError -> 400, StoreUnavailableError -> 503, other -> 500
- HTTPException: Starlette/FastAPI HTTP exceptions (404, 405 with Allow)
- RequestValidationError: malformed form/multipart input -> 400
- Exception: Catch-all for unhandled exceptions (fail closed, no stack traces)
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from satvault.api.error_model import get_error_code_for_status, make_error_response
from satvault.errors import (
    InternalError,
    SatVaultError,
    StoreUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def status_for_error(exc: SatVaultError) -> tuple[int, str]:
    """Return (http_status, code) for a taxonomy error."""
    if isinstance(exc, ValidationError):
        return 400, "VALIDATION_FAILED"
    if isinstance(exc, StoreUnavailableError):
        return 503, "STORE_UNAVAILABLE"
    return 500, "INTERNAL_ERROR"


async def satvault_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for SatVaultError.

    Internal errors always use the generic message; their cause is logged
    where they were raised.
    """
    assert isinstance(exc, SatVaultError)

    http_status, code = status_for_error(exc)
    message = exc.message if http_status != 500 else InternalError().message

    return make_error_response(request, code=code, message=message, http_status=http_status)


async def http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for HTTPException.

    Keeps exception headers so 405 responses carry Allow.
    """
    assert isinstance(exc, HTTPException)

    code = get_error_code_for_status(exc.status_code)
    message = str(exc.detail) if exc.detail else f"HTTP {exc.status_code}"

    return make_error_response(
        request,
        code=code,
        message=message,
        http_status=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def request_validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """FastAPI exception handler for RequestValidationError.

    Does not expose raw validation internals.
    """
    assert isinstance(exc, RequestValidationError)

    fields = sorted(
        {str(err.get("loc", ("request",))[-1]) for err in exc.errors()},
    )
    logger.info(
        "Rejected request with invalid fields: %s",
        ", ".join(fields),
        extra={"request_id": getattr(request.state, "request_id", None)},
    )

    return make_error_response(
        request,
        code="VALIDATION_FAILED",
        message="Invalid request",
        http_status=400,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler for unhandled exceptions.

    Fails closed: returns 500 with a generic message and logs the exception.
    """
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        "Unhandled exception: %s",
        type(exc).__name__,
        extra={"request_id": request_id},
    )

    return make_error_response(
        request,
        code="INTERNAL_ERROR",
        message=InternalError().message,
        http_status=500,
    )
