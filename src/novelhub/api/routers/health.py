"""Health check endpoints."""

from datetime import UTC, datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    server: str
    database: str
    timestamp: datetime


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Check application health status.

    Reports ``degraded`` while the database is disconnected; the process
    keeps serving requests either way.
    """
    database = request.app.state.database.health()

    return HealthResponse(
        status="ok" if database == "connected" else "degraded",
        server="running",
        database=database,
        timestamp=datetime.now(UTC),
    )
