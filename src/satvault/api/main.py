"""SAT Vault FastAPI application factory.

This module provides the create_app() factory for bootstrapping the API.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException

from satvault import __version__
from satvault.api.errors import (
    generic_exception_handler,
    http_exception_handler,
    request_validation_error_handler,
    satvault_error_handler,
)
from satvault.api.middleware.request_id import RequestIdMiddleware
from satvault.api.routes.health import router as health_router
from satvault.api.routes.submissions import router as submissions_router
from satvault.config import Settings, load_settings
from satvault.errors import SatVaultError
from satvault.persistence.db import reset_engine
from satvault.services.submissions import SubmissionService, build_submission_service

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    submission_service: SubmissionService | None = None,
) -> FastAPI:
    """Create and configure the SAT Vault FastAPI application.

    When no submission_service is injected, settings are loaded from the
    environment and a PostgreSQL-backed service is wired. Missing DATABASE_URL
    or PGP_SECRET raises ConfigError, so the app refuses to start.

    Args:
        settings: Optional pre-loaded settings.
        submission_service: Optional service for testing (e.g., in-memory store).

    Returns:
        Configured FastAPI application instance.

    Raises:
        ConfigError: If required configuration is missing.
    """
    owns_engine = submission_service is None
    if submission_service is None:
        settings = settings or load_settings()
        submission_service = build_submission_service(settings)
        logger.info("Submission service wired to PostgreSQL (%r)", settings)

    app = FastAPI(
        title="SAT Vault API",
        description="Encrypted storage for SAT credentials and FIEL uploads",
        version=__version__,
    )

    app.state.submission_service = submission_service

    app.add_middleware(RequestIdMiddleware)

    if owns_engine:

        @app.on_event("shutdown")
        async def shutdown_event() -> None:
            """Release pooled connections on shutdown."""
            reset_engine()

    app.add_exception_handler(SatVaultError, satvault_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(health_router)
    app.include_router(submissions_router)

    return app
