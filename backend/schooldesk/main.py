"""
SchoolDesk Backend — FastAPI Application Factory
===================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes app configuration, middleware registration, route mounting,
       and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Run by uvicorn (`uvicorn schooldesk.main:app`) or the `schooldesk`
       console script.

Application Architecture:
    ┌──────────────────────────────────────────────────────┐
    │                    FastAPI App                       │
    │                                                      │
    │  Middleware Chain:                                   │
    │  ┌──────────┐ ┌──────────┐ ┌──────┐ ┌──────┐         │
    │  │  Req ID  │→│ Logging  │→│ GZip │→│ CORS │         │
    │  └──────────┘ └──────────┘ └──────┘ └──────┘         │
    │                                                      │
    │  Routes:                                             │
    │  ┌──────────────┐ ┌─────────────┐ ┌────────────────┐ │
    │  │ /api/schools │ │ /api/health │ │ /schoolImages  │ │
    │  └──────────────┘ └─────────────┘ └────────────────┘ │
    │                                                      │
    │  Exception Handlers:                                 │
    │  ┌────────────────────────────────────────────────┐  │
    │  │ Validation/Duplicate→400 │ NotFound→404 │ →500 │  │
    │  └────────────────────────────────────────────────┘  │
    └──────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Validate configuration (logged, not fatal)
    3. Build repository + image store + SchoolService, initialize them

    Shutdown:
    1. Close repository connections and the image store client
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
from starlette.exceptions import HTTPException as StarletteHTTPException

from schooldesk import __version__
from schooldesk.config import settings
from schooldesk.dependencies import build_school_service, close_school_service
from schooldesk.exceptions import (
    DuplicateEmailError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from schooldesk.middleware.logging import RequestLoggingMiddleware
from schooldesk.middleware.request_id import RequestIDMiddleware, request_id_var
from schooldesk.routes import health, images, schools

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: 2024-01-15T12:00:00 [INFO] schooldesk.services.school_service: School created: ...
    When:   Called once during startup, before anything else logs.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Reduce noise from third-party libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Build the backends on startup and release them on shutdown.

    The SchoolService lives on `app.state.school_service`; routes reach it
    through the `get_school_service` dependency.
    """
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("SchoolDesk Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Not fatal: health checks still answer and the log says what to fix
        logger.error("Configuration error: %s", str(e))

    service = build_school_service(settings)
    await service.repository.initialize()
    app.state.school_service = service

    logger.info(
        "Backends: database=%s images=%s",
        settings.database_backend,
        settings.image_storage,
    )
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("SchoolDesk Backend shutting down...")
    await close_school_service(service)
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_response(status_code: int, message: str, error: str) -> JSONResponse:
    """Uniform error body: {success: false, message, error, request_id}."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": message,
            "error": error,
            "request_id": request_id_var.get(""),
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP status codes and the uniform error body.

    Handler hierarchy:
        ValidationError         → 400 validation_error
        DuplicateEmailError     → 400 duplicate_email
        NotFoundError           → 404 not_found
        InternalError           → 500 server_error (generic message)
        RequestValidationError  → 400 validation_error (malformed request)
        StarletteHTTPException  → its own status (unknown route → 404)
        Exception (fallback)    → 500 internal_server_error

    Security: 500 responses never carry driver messages, paths or stack
    traces. Details are logged server-side with the request ID.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return error_response(400, exc.message, "validation_error")

    @app.exception_handler(DuplicateEmailError)
    async def handle_duplicate_email(request: Request, exc: DuplicateEmailError):
        logger.warning("[%s] Duplicate email: %s", request_id_var.get(""), exc.context.get("email_id"))
        return error_response(400, exc.message, "duplicate_email")

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return error_response(404, exc.message, "not_found")

    @app.exception_handler(InternalError)
    async def handle_internal_error(request: Request, exc: InternalError):
        logger.error(
            "[%s] %s: %s | Context: %s",
            request_id_var.get(""),
            type(exc).__name__,
            exc.message,
            exc.context,
        )
        return error_response(500, "Internal server error", "server_error")

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        messages = []
        for err in exc.errors():
            field = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "path", "query"))
            messages.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
        return error_response(400, ", ".join(messages) or "Invalid request", "validation_error")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return error_response(404, "Route not found", "not_found")
        return error_response(exc.status_code, str(exc.detail), "http_error")

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return error_response(500, "Internal server error", "internal_server_error")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(serve_local_images: Optional[bool] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        serve_local_images: Mount the image-serving route. Defaults to
            IMAGE_STORAGE == "local".
    """
    app = FastAPI(
        title="SchoolDesk API",
        description=(
            "School directory API: list, search, add, update and delete schools, "
            "each with a contact number, email and a photo."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition:
    # RequestID → Logging → GZip → CORS → routes
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        # Browsers reject credentials with a wildcard origin
        allow_credentials="*" not in settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(health.router)
    app.include_router(schools.router)
    if serve_local_images is None:
        serve_local_images = settings.image_storage == "local"
    if serve_local_images:
        app.include_router(images.build_router(settings.images_url_path))

    return app


# uvicorn expects `schooldesk.main:app` to be importable
app = create_app()


def serve() -> None:
    """Console entry point: run the app with uvicorn on the configured host/port."""
    import uvicorn

    uvicorn.run(
        "schooldesk.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        log_level=settings.log_level.lower(),
    )
