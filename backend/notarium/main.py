"""
Notarium Backend: FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers;
       the lifespan sets up logging and bootstraps the schema.
Who:   uvicorn (uvicorn notarium.main:app) and the HTTP tests.

Lifecycle:
    Startup:
    1. Configure logging
    2. init_schema() when settings.db_auto_init is on (create tables, seed
       subjects, reconcile counters; idempotent)

    Shutdown:
    1. Dispose database engine (close all pooled connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from notarium import __version__
from notarium.config import settings
from notarium.database import dispose_engine, init_schema
from notarium.exceptions import (
    AlreadyPublishedError,
    ForbiddenError,
    NotariumError,
    NotFoundError,
    OversizeError,
    StorageError,
    ValidationError,
)
from notarium.middleware.logging import RequestLoggingMiddleware
from notarium.middleware.request_id import RequestIDMiddleware, request_id_var
from notarium.routes import admin, health, notes, subjects

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """Configure the root logger once, before anything else logs."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # The access middleware already logs every request.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("Notarium backend %s starting up", __version__)

    if settings.db_auto_init:
        await init_schema()
    else:
        logger.info("Schema bootstrap disabled; expecting Alembic-managed tables")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Notarium backend shutting down")
    await dispose_engine()


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _request_id(request: Request) -> str:
    return request_id_var.get("") or getattr(request.state, "request_id", "")


def _error_body(request: Request, exc: NotariumError, details=None) -> dict:
    body = {
        "error": type(exc).__name__,
        "message": exc.message,
        "request_id": _request_id(request),
    }
    if details:
        body["details"] = details
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map application exceptions to HTTP responses.

    Handler hierarchy:
        ValidationError         → 400
        AlreadyPublishedError   → 400
        ForbiddenError          → 403
        NotFoundError           → 404
        OversizeError           → 413 (sizes and created ids in details)
        StorageError            → 500 (generic message, context logged)
        NotariumError (base)    → 500
        Exception (fallback)    → 500

    Internal details (SQL, stack traces) are logged server-side only.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", _request_id(request), exc.message)
        return JSONResponse(status_code=400, content=_error_body(request, exc, exc.context))

    @app.exception_handler(AlreadyPublishedError)
    async def handle_already_published(request: Request, exc: AlreadyPublishedError):
        return JSONResponse(status_code=400, content=_error_body(request, exc, exc.context))

    @app.exception_handler(ForbiddenError)
    async def handle_forbidden(request: Request, exc: ForbiddenError):
        logger.warning("[%s] Forbidden: %s", _request_id(request), exc.message)
        return JSONResponse(status_code=403, content=_error_body(request, exc))

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content=_error_body(request, exc))

    @app.exception_handler(OversizeError)
    async def handle_oversize(request: Request, exc: OversizeError):
        logger.warning(
            "[%s] Oversize part %d: %d > %d bytes",
            _request_id(request),
            exc.part_number,
            exc.actual_size,
            exc.max_size,
        )
        return JSONResponse(status_code=413, content=_error_body(request, exc, exc.context))

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        logger.error(
            "[%s] Storage error: %s | Context: %s", _request_id(request), exc.message, exc.context
        )
        return JSONResponse(status_code=500, content=_error_body(request, exc))

    @app.exception_handler(NotariumError)
    async def handle_notarium_error(request: Request, exc: NotariumError):
        logger.error("[%s] Unhandled application error: %s", _request_id(request), exc.message)
        return JSONResponse(status_code=500, content=_error_body(request, exc))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s", _request_id(request), str(exc), exc_info=True
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "InternalServerError",
                "message": "An unexpected error occurred. Please try again later.",
                "request_id": _request_id(request),
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="Notarium API",
        description=(
            "Note sharing backend: chunked multi-image note ingestion, draft "
            "publication, class visibility and relevance search."
        ),
        version=__version__,
        lifespan=lifespan,
    )

    # Last added runs first: RequestID → Logging → CORS.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(notes.router)
    app.include_router(subjects.router)
    app.include_router(admin.router)
    app.include_router(health.router)

    return app


app = create_app()
