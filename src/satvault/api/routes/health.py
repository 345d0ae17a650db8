"""Health check endpoint for the SAT Vault API."""

from datetime import UTC, datetime

from fastapi import APIRouter
from pydantic import BaseModel

from satvault import __version__

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response schema."""

    ok: bool
    status: str
    time: str
    version: str


@router.get("/health", response_model=HealthResponse)
def get_health() -> HealthResponse:
    """Liveness check; does not touch the database."""
    return HealthResponse(
        ok=True,
        status="ok",
        time=datetime.now(UTC).isoformat(),
        version=__version__,
    )
