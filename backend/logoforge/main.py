"""
LogoForge Backend — FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers;
       lifespan() configures logging on startup and disposes the engine on
       shutdown.
Who:   uvicorn (`uvicorn logoforge.main:app`), and the test suite.

Application Architecture:
    ┌────────────────────────────────────────────────────────────┐
    │                        FastAPI App                         │
    │                                                            │
    │  Middleware:  Rate Limit → Request ID → Logging → CORS     │
    │                                                            │
    │  Routes:      /api/logos   /api/layers   /api/templates    │
    │               /api/assets  /api/fonts    /media   /health  │
    │                                                            │
    │  Exception Handlers (LogoForgeError subclasses):           │
    │    400 Validation/OutOfRange   404 NotFound   409 Conflict │
    │    429 RateLimit   500 Database   502 UpstreamMedia        │
    │    503 CircuitOpen   504 RenderTimeout                     │
    └────────────────────────────────────────────────────────────┘
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Dict, Tuple, Type

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from logoforge import __version__
from logoforge.config import settings
from logoforge.database import dispose_engine
from logoforge.exceptions import (
    CircuitBreakerOpenError,
    ConflictError,
    DatabaseError,
    LogoForgeError,
    NotFoundError,
    OutOfRangeError,
    RateLimitExceededError,
    RenderTimeoutError,
    UpstreamMediaError,
    ValidationError,
)
from logoforge.middleware.logging import RequestLoggingMiddleware
from logoforge.middleware.rate_limit import RateLimitMiddleware
from logoforge.middleware.request_id import RequestIDFilter, RequestIDMiddleware, request_id_var
from logoforge.routes import assets, export, health, layers, logos, templates

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, at startup.

    Format: 2026-10-17T12:00:00 [INFO] logoforge.services.zorder [1f0c2d9a] message
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIDFilter())
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # Third-party loggers are chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("LogoForge Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: editing and health checks work without the media host
        logger.error("Configuration error: %s", str(e))
        logger.error("Uploads and PNG exports will fail until the configuration is fixed.")

    if settings.media_backend == "local":
        storage = Path(settings.storage_root)
        storage.mkdir(parents=True, exist_ok=True)
        logger.info("Local media storage: %s", storage.resolve())
    logger.info("Media backend: %s", settings.media_backend)
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("LogoForge Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

# What: HTTP status and machine-readable error code per exception type.
# Looked up along the MRO, so subclasses inherit their parent's mapping.
ERROR_RESPONSES: Dict[Type[LogoForgeError], Tuple[int, str]] = {
    ValidationError: (400, "validation_error"),
    OutOfRangeError: (400, "out_of_range"),
    NotFoundError: (404, "not_found"),
    ConflictError: (409, "conflict"),
    RateLimitExceededError: (429, "rate_limit_exceeded"),
    DatabaseError: (500, "server_error"),
    UpstreamMediaError: (502, "upstream_media_error"),
    CircuitBreakerOpenError: (503, "service_unavailable"),
    RenderTimeoutError: (504, "render_timeout"),
    LogoForgeError: (500, "server_error"),
}


def error_response_for(exc: LogoForgeError) -> Tuple[int, str]:
    for cls in type(exc).__mro__:
        if cls in ERROR_RESPONSES:
            return ERROR_RESPONSES[cls]
    return 500, "server_error"


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map every LogoForgeError to `{error, message, details, request_id}`.

    Security: 5xx responses never carry the exception context (SQL errors,
    provider payloads); it is logged server-side only. DatabaseError and the
    catch-all also replace the message with a generic one.
    """

    @app.exception_handler(LogoForgeError)
    async def handle_logoforge_error(request: Request, exc: LogoForgeError):
        rid = request_id_var.get("")
        status_code, code = error_response_for(exc)

        if status_code >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        else:
            logger.warning("[%s] %s: %s", rid, type(exc).__name__, exc.message)

        message = exc.message
        if isinstance(exc, DatabaseError) or type(exc) is LogoForgeError:
            message = "An internal error occurred. Please try again later."

        content = {"error": code, "message": message, "request_id": rid}
        if status_code < 500:
            content["details"] = exc.context
        elif isinstance(exc, CircuitBreakerOpenError):
            content["details"] = {"recovery_time": exc.recovery_time}

        headers = {}
        retry_after = getattr(exc, "retry_after", None) or getattr(exc, "recovery_time", None)
        if retry_after:
            headers["Retry-After"] = str(retry_after)

        return JSONResponse(status_code=status_code, content=content, headers=headers)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Catch-all: the stack trace is logged, never returned."""
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

def create_app() -> FastAPI:
    app = FastAPI(
        title="LogoForge API",
        description=(
            "Layered logo documents: layers with typed payloads, dense z-ordering, "
            "templates, version history, media assets and SVG/PNG export."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After", "Content-Disposition"],
    )
    # SVG exports and layer stacks compress well
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(logos.router)
    app.include_router(export.router)
    app.include_router(layers.router)
    app.include_router(templates.router)
    app.include_router(assets.router)
    app.include_router(assets.fonts_router)
    app.include_router(assets.media_router)
    app.include_router(health.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
app = create_app()
