"""
Health check endpoints.
"""

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from taskflow import __version__
from taskflow.database import get_db
from taskflow.realtime.events import utc_timestamp

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    backend: str
    timestamp: str
    database: str
    websocket_connections: int
    online_users: int


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.
    Returns server status, database connectivity and live socket counts.
    """
    db_status = "connected"
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        db_status = f"error: {str(e)}"

    registry = request.app.state.registry
    return HealthResponse(
        status="ok",
        version=__version__,
        backend="python-fastapi",
        timestamp=utc_timestamp(),
        database=db_status,
        websocket_connections=registry.connection_count(),
        online_users=registry.online_user_count(),
    )


@router.get("/api/health")
async def api_health_check(request: Request, db: AsyncSession = Depends(get_db)):
    """
    API prefixed health check (for consistency with /api/* routes).
    """
    return await health_check(request, db)
