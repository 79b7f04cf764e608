"""
FastAPI application factory for EventSquare.

This module creates the main FastAPI app with:
- CORS configuration for browser clients
- Store, identity resolver and access policies on app state
- Error translation (denied -> 403, missing -> 404, conflict -> 409)
- API routes under /api
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..access.policies import event_policy, invitation_policy, rsvp_policy
from ..config import ServerConfig
from ..errors import (
    AccessDeniedError,
    AuthenticationRequiredError,
    ConflictError,
    EventSquareError,
    InvalidRecordError,
    RecordNotFoundError,
)
from ..identity import IdentityResolver
from ..store.event_store import EventStore
from .config import Settings
from .routes import router

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    AuthenticationRequiredError: 401,
    AccessDeniedError: 403,
    RecordNotFoundError: 404,
    ConflictError: 409,
    InvalidRecordError: 400,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Prepare the store before serving requests."""
    app.state.store.initialize()
    app.state.config.log_config()
    logger.info("EventSquare API started", extra={"version": __version__})

    yield

    logger.info("EventSquare API stopped")


def create_app(
    config: ServerConfig | None = None,
    settings: Settings | None = None,
    store: EventStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Server configuration (loaded from env if not provided)
        settings: HTTP settings (loaded from env if not provided)
        store: Store to serve from (built from config if not provided)

    Returns:
        Configured FastAPI application
    """
    config = config or ServerConfig.from_env()
    settings = settings or Settings()
    store = store or EventStore(
        config.storage.database_path,
        wal_mode=config.storage.wal_mode,
        busy_timeout_ms=config.storage.busy_timeout_ms,
        page_size=config.storage.page_size,
    )

    app = FastAPI(
        title=settings.title,
        description="Calendar events, invitations and RSVPs with per-record access control.",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.settings = settings
    app.state.store = store
    app.state.identity = IdentityResolver(store, header_name=config.identity.user_header)
    app.state.policies = {
        "event": event_policy(store),
        "invitation": invitation_policy(),
        "rsvp": rsvp_policy(store),
    }

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(EventSquareError)
    async def eventsquare_error_handler(request: Request, exc: EventSquareError) -> JSONResponse:
        status_code = 500
        for error_type, code in ERROR_STATUS.items():
            if isinstance(exc, error_type):
                status_code = code
                break
        if status_code == 500:
            logger.error(f"Unhandled service error: {exc}", exc_info=exc)
        return JSONResponse(
            {"error": exc.message, "error_code": exc.code},
            status_code=status_code,
        )

    @app.exception_handler(Exception)
    async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"HTTP handler error: {exc}", exc_info=exc)
        return JSONResponse(
            {"error": "Internal server error", "error_code": "INTERNAL"},
            status_code=500,
        )

    app.include_router(router, prefix="/api")

    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": "eventsquare", "version": __version__}

    return app
