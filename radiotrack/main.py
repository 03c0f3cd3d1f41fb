"""
RadioTrack Backend — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() builds the settings, the database and the
       notification dispatcher, stores them on `app.state`, and wires
       middleware, exception handlers and routes.
Who:   uvicorn (`uvicorn radiotrack.main:create_app --factory`), the
       `radiotrack` console script, and the test suite.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                   FastAPI App                       │
    │                                                     │
    │  app.state: settings · db (Database) · dispatcher   │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌─────────────────┐ ┌──────┐ ┌──────┐ │
    │  │  Req ID  │→│  Logging        │→│ GZip │→│ CORS │ │
    │  └──────────┘ └─────────────────┘ └──────┘ └──────┘ │
    │                                                     │
    │  Routes:                                            │
    │  /api/pacientes/...   GET /   GET /health           │
    │                                                     │
    │  Exception Handlers:                                │
    │  Validation→400 │ NotFound→404 │ Database→500       │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  configure logging, validate notification credentials,
              optionally create tables
    Shutdown: dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from radiotrack import __version__
from radiotrack.config import Settings, get_settings
from radiotrack.database import Database
from radiotrack.exceptions import (
    DatabaseError,
    NotFoundError,
    RadioTrackError,
    ValidationError,
)
from radiotrack.middleware.logging import RequestLoggingMiddleware
from radiotrack.middleware.request_id import RequestIDMiddleware, request_id_var
from radiotrack.routes import health, patients, status_page
from radiotrack.services.notification_service import NotificationDispatcher, build_dispatcher

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(settings: Settings) -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s on stdout.
    Called once during startup, before anything else logs.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries that log every request/query
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("twilio.http_client").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings

    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging(settings)
    logger.info("RadioTrack Backend starting up...")

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # The server still starts; unconfigured channels log instead of sending
        logger.error("Configuration error: %s", str(e))

    if settings.auto_create_tables:
        await app.state.db.create_all()
        logger.info("Database tables ensured")

    logger.info("Notification transport: %s", settings.notification_transport)
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("RadioTrack Backend shutting down...")
    await app.state.db.dispose()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Validation failed"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid value")
    return f"{location}: {message}" if location else message


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP status codes and a single error format.

    Handler hierarchy:
        ValidationError / RequestValidationError → 400 Bad Request
        NotFoundError                            → 404 Not Found
        DatabaseError                            → 500 Internal Server Error
        RadioTrackError (base)                   → 500 Internal Server Error
        Exception (fallback)                     → 500 Internal Server Error
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        rid = request_id_var.get("")
        logger.warning("[%s] Validation error: %s", rid, exc.message)
        return JSONResponse(
            status_code=400,
            content={
                "error": "validation_error",
                "message": exc.message,
                "details": exc.context,
                "request_id": rid,
            },
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        """Schema validation failures use the first error's message, as a 400."""
        rid = request_id_var.get("")
        message = _first_validation_message(exc)
        logger.warning("[%s] Request validation error: %s", rid, message)
        return JSONResponse(
            status_code=400,
            content={
                "error": "validation_error",
                "message": message,
                "details": {"errors": len(exc.errors())},
                "request_id": rid,
            },
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        rid = request_id_var.get("")
        return JSONResponse(
            status_code=404,
            content={
                "error": "not_found",
                "message": exc.message,
                "request_id": rid,
            },
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        rid = request_id_var.get("")
        logger.error("[%s] Database error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": "database_error",
                "message": exc.message,
                "request_id": rid,
            },
        )

    @app.exception_handler(RadioTrackError)
    async def handle_app_error(request: Request, exc: RadioTrackError):
        rid = request_id_var.get("")
        logger.error("[%s] Application error: %s | Context: %s", rid, exc.message, exc.context)
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "message": exc.message,
                "request_id": rid,
            },
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Stack trace is logged server-side only."""
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings:   Defaults to the environment-derived settings
        database:   Defaults to a Database built from settings
        dispatcher: Defaults to build_dispatcher(settings)

    Nothing here opens a connection; the engine connects on first use.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="RadioTrack API",
        description=(
            "Radiograph status tracking for clinic patients. Patients are notified "
            "by SMS and/or email when a radiograph is ready for review."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.db = database or Database(settings)
    app.state.dispatcher = dispatcher or build_dispatcher(settings)

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(patients.router)
    app.include_router(status_page.router)
    app.include_router(health.router)

    return app


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "radiotrack.main:create_app",
        factory=True,
        host=settings.backend_host,
        port=settings.backend_port,
    )
