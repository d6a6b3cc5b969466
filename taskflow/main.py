"""
Main FastAPI application entry point.
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from taskflow import __version__
from taskflow.config import Settings, configure_logging, get_settings
from taskflow.database import close_db, init_db
from taskflow.realtime import ConnectionRegistry, EventGateway, RoomBroadcaster
from taskflow.services.auth import TokenVerifier
from taskflow.services.membership import MembershipResolver, SqlMembershipResolver

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.
    Initializes database on startup and closes connections on shutdown.
    """
    settings: Settings = app.state.settings
    logger.info("Starting %s v%s (debug=%s)", settings.app_name, __version__, settings.debug)

    await init_db()

    yield

    await close_db()
    logger.info("%s shutdown complete", settings.app_name)


class TimingMiddleware(BaseHTTPMiddleware):
    """Log slow HTTP requests."""

    async def dispatch(self, request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration = (time.perf_counter() - start) * 1000
        if duration > 100:  # Only log slow requests (>100ms)
            logger.warning("SLOW REQUEST: %s %s took %.0fms", request.method, request.url.path, duration)
        return response


def create_app(
    settings: Settings | None = None,
    membership_resolver: MembershipResolver | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    The realtime components are built here and attached to ``app.state``
    so each application (and each test) gets its own isolated registry.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        description="Task board API with real-time collaboration",
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
    )

    # Realtime wiring
    registry = ConnectionRegistry()
    resolver = membership_resolver or SqlMembershipResolver()
    broadcaster = RoomBroadcaster(registry, resolver)

    app.state.settings = settings
    app.state.token_verifier = TokenVerifier(settings)
    app.state.membership_resolver = resolver
    app.state.registry = registry
    app.state.broadcaster = broadcaster
    app.state.event_gateway = EventGateway(broadcaster)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials="*" not in settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )
    app.add_middleware(TimingMiddleware)

    # Include routers
    from taskflow.realtime import router as realtime_router
    from taskflow.routers import health, presence

    app.include_router(health.router, tags=["Health"])
    app.include_router(presence.router, prefix="/api", tags=["Presence"])
    app.include_router(realtime_router, tags=["Realtime"])

    # Unknown API routes
    @app.api_route("/api/{full_path:path}", methods=["GET", "POST", "PUT", "DELETE"])
    async def api_not_found(full_path: str):
        return JSONResponse(status_code=404, content={"error": "Not found", "path": f"/api/{full_path}"})

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": str(exc) if settings.debug else "Internal server error"},
        )

    return app


# Create app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "taskflow.main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
    )
