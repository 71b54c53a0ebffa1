"""
SubDesk Backend — FastAPI Application Factory
===============================================

What:  Creates and configures the FastAPI application instance.
Who:   uvicorn (uvicorn subdesk.main:app).

Application Architecture:
    Middleware:  RateLimit → RequestID → Logging → SecurityHeaders → GZip → CORS
    Routes:      subscribers, auth, blogs, location, cron, health
    Errors:      SubDeskError subclasses → {error, message, details, request_id}

Lifecycle:
    Startup:  logging, config validation (warn, don't exit), optional
              in-process daily scheduler
    Shutdown: stop the scheduler, dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from subdesk import __version__
from subdesk.config import settings
from subdesk.database import dispose_engine
from subdesk.exceptions import (
    AuthenticationError,
    CircuitBreakerOpenError,
    ConflictError,
    DatabaseError,
    ForbiddenError,
    LocationServiceError,
    NotFoundError,
    RateLimitExceededError,
    SubDeskError,
    ValidationError,
)
from subdesk.middleware.logging import RequestLoggingMiddleware
from subdesk.middleware.rate_limit import RateLimitMiddleware
from subdesk.middleware.request_id import RequestIDMiddleware, request_id_var
from subdesk.middleware.security_headers import SecurityHeadersMiddleware
from subdesk.routes import auth, blogs, cron, health, location, subscribers
from subdesk.services.scheduler import build_scheduler

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════

class RequestIDFilter(logging.Filter):
    """Adds the current request ID to every record as %(request_id)s."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get("") or "-"
        return True


def setup_logging() -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIDFilter())
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # Third-party chatter
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)


# ══════════════════════════════════════════════════════════════════════════
# Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("SubDesk Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving; health checks and public pages still work
        logger.error("Configuration error: %s", str(e))

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = build_scheduler()
        scheduler.start()
    else:
        logger.info("In-process scheduler disabled; expecting /cron/* triggers")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("SubDesk Backend shutting down...")
    if scheduler is not None:
        await scheduler.stop()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "details": details or None,
            "request_id": request_id_var.get("") or None,
        },
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Handler map:
        ValidationError, RequestValidationError → 400
        AuthenticationError                     → 401 (+ WWW-Authenticate)
        ForbiddenError                          → 403
        NotFoundError                           → 404
        ConflictError                           → 409
        RateLimitExceededError                  → 429 (+ Retry-After)
        LocationServiceError                    → 503
        CircuitBreakerOpenError                 → 503 (+ Retry-After)
        DatabaseError, SubDeskError, Exception  → 500 (no internals exposed)
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("Validation error: %s", exc.message)
        return error_response(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        # Malformed bodies use the same 400 envelope as business-rule errors
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ())[1:]) or None
        message = first.get("msg", "Invalid request")
        logger.warning("Request validation failed: %s (%s)", message, field)
        return error_response(
            400, "validation_error", message, {"field": field, "errors": len(errors)}
        )

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        logger.warning("Authentication failed on %s: %s", request.url.path, exc.message)
        return error_response(
            401, "unauthorized", exc.message, exc.context,
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(ForbiddenError)
    async def handle_forbidden(request: Request, exc: ForbiddenError):
        logger.warning("Forbidden on %s: %s", request.url.path, exc.message)
        return error_response(403, "forbidden", exc.message, exc.context)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return error_response(404, "not_found", exc.message, exc.context)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return error_response(409, "conflict", exc.message, exc.context)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return error_response(
            429, "rate_limit_exceeded", exc.message, exc.context,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("Circuit breaker open: %s", exc.message)
        return error_response(
            503, "service_unavailable", exc.message, {"recovery_time": exc.recovery_time},
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(LocationServiceError)
    async def handle_location_error(request: Request, exc: LocationServiceError):
        headers = {"Retry-After": str(exc.retry_after)} if exc.retry_after else None
        return error_response(
            503, "location_service_error", exc.message, exc.context, headers=headers
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("Database error: %s | Context: %s", exc.message, exc.context)
        return error_response(
            500, "server_error", "An internal error occurred. Please try again later."
        )

    @app.exception_handler(SubDeskError)
    async def handle_subdesk_error(request: Request, exc: SubDeskError):
        logger.error("Unhandled %s: %s | %s", type(exc).__name__, exc.message, exc.context)
        return error_response(500, "server_error", exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return error_response(
            exc.status_code,
            "http_error",
            str(exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unexpected error: %s", str(exc), exc_info=True)
        return error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="SubDesk API",
        description=(
            "Subscription desk backend: plan signups with invoice numbers, "
            "admin status management, automatic lapse handling, renewal "
            "reminders, and the marketing blog."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Last added runs first: RateLimit → RequestID → Logging → SecurityHeaders → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(subscribers.router)
    app.include_router(auth.router)
    app.include_router(blogs.router)
    app.include_router(location.router)
    app.include_router(cron.router)
    app.include_router(health.router)

    return app


app = create_app()
