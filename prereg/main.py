"""FastAPI application entry point.

Pre-registration API: sign-up with referral codes, two-level referral
networks, reward tiers, a live registration counter and magic-link sign-in.
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from prereg import __version__
from prereg.api import (
    auth_router,
    referral_router,
    registration_router,
    rewards_router,
    stats_router,
)
from prereg.api.deps import status_for_error, user_message_for
from prereg.config import get_settings
from prereg.logging_config import bind_context, clear_context, configure_logging, get_logger
from prereg.middleware.prometheus import setup_prometheus
from prereg.middleware.rate_limit import RateLimitMiddleware
from prereg.middleware.sentry import init_sentry
from prereg.services.live_feed import RegistrationFeed, set_registration_feed
from prereg.services.rate_limit import create_rate_limiter, set_rate_limiter
from prereg.utils.db import close_db, db_status, init_db
from prereg.utils.errors import PreRegError, RateLimitExceededError
from prereg.utils.http_client import close_http_client
from prereg.utils.json_utils import ORJSONResponse
from prereg.utils.redis_client import close_redis, get_redis_client, init_redis, redis_status
from prereg.ws import router as ws_router

settings = get_settings()

configure_logging(
    log_level=settings.log_level,
    json_logs=settings.app_env == "production",
    app_env=settings.app_env,
)
logger = get_logger(__name__)

sentry_enabled = init_sentry(settings)
if sentry_enabled:
    logger.info("Sentry error tracking initialized")
elif settings.app_env == "production":
    logger.warning("Sentry DSN not configured - error tracking disabled")


# =============================================================================
# Lifespan Events
# =============================================================================


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Application lifespan handler for startup and shutdown events."""
    logger.info("Starting application...")

    logger.info("Initializing database connection...")
    await init_db()
    logger.info("Database connection established")

    redis_instance = None
    try:
        logger.info("Initializing Redis connection...")
        redis_instance = await init_redis()
        logger.info("Redis connection established")
    except (RedisError, OSError) as e:
        # Registration works without Redis; the feed and limiter stay local
        logger.warning("redis_unavailable", error=str(e))
        await close_redis()

    feed = RegistrationFeed(redis_client=redis_instance)
    try:
        await feed.start()
    except RedisError as e:
        logger.warning("live_feed_local_only", error=str(e))
    set_registration_feed(feed)

    set_rate_limiter(create_rate_limiter(redis_instance, settings))
    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")
    try:
        await feed.stop()
        set_registration_feed(None)
        set_rate_limiter(None)

        await close_http_client()

        logger.info("Closing database connection...")
        await close_db()

        logger.info("Closing Redis connection...")
        await close_redis()

        logger.info("Application shutdown complete")
    except Exception:
        logger.exception("shutdown_failed")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Pre-registration API",
    version=__version__,
    description="Pre-registration, referral and reward API",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
)

prometheus_instrumentator = setup_prometheus(app, app_version=__version__)


# =============================================================================
# Middleware
# =============================================================================


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware to add X-Request-ID header to all requests and responses."""

    async def dispatch(self, request: Request, call_next):
        # BaseHTTPMiddleware doesn't handle WebSocket upgrades
        if request.headers.get("upgrade", "").lower() == "websocket":
            return await call_next(request)

        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        request.state.start_time = datetime.now(timezone.utc)

        clear_context()
        bind_context(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        duration = (datetime.now(timezone.utc) - request.state.start_time).total_seconds()
        logger.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration=round(duration, 3),
        )
        return response


app.add_middleware(RequestIDMiddleware)

cors_origins = [origin.strip() for origin in settings.cors_origins.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Accept-Language", "X-Request-ID", "X-Trace-ID"],
    expose_headers=["X-Request-ID", "Retry-After"],
)

# Per-IP throttling; skipped until Redis is up
app.add_middleware(RateLimitMiddleware, redis_getter=get_redis_client)


# =============================================================================
# Error Handlers
# =============================================================================


def get_request_id(request: Request) -> str:
    """Get request ID from request state or headers."""
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return request.headers.get("X-Request-ID", str(uuid.uuid4()))


def create_error_response(
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    trace_id: str | None = None,
) -> dict[str, Any]:
    """Create standardized error response."""
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details or {},
        },
        "traceId": trace_id,
    }


@app.exception_handler(PreRegError)
async def prereg_error_handler(request: Request, exc: PreRegError) -> ORJSONResponse:
    """Handle domain errors that escaped a route."""
    trace_id = get_request_id(request)
    status_code = status_for_error(exc.code)

    logger.warning("domain_error", code=exc.code, message=exc.message, trace_id=trace_id)

    headers = None
    if isinstance(exc, RateLimitExceededError):
        headers = {"Retry-After": str(exc.retry_after_seconds)}

    return ORJSONResponse(
        status_code=status_code,
        content=create_error_response(
            code=exc.code,
            message=user_message_for(exc, request.headers.get("Accept-Language", "")[:2]),
            details=exc.details,
            trace_id=trace_id,
        ),
        headers=headers,
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> ORJSONResponse:
    """Handle HTTP exceptions."""
    trace_id = get_request_id(request)

    # Routes raise with the envelope already built
    if isinstance(exc.detail, dict) and "error" in exc.detail:
        content = exc.detail
        content.setdefault("traceId", trace_id)
    else:
        content = create_error_response(
            code="HTTP_ERROR",
            message=str(exc.detail),
            trace_id=trace_id,
        )

    return ORJSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    """Handle malformed request bodies and parameters."""
    trace_id = get_request_id(request)
    fields = {
        ".".join(str(part) for part in error["loc"] if part != "body"): error["msg"]
        for error in exc.errors()
    }
    return ORJSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=create_error_response(
            code="VALIDATION_ERROR",
            message="Invalid request",
            details={"fields": fields},
            trace_id=trace_id,
        ),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> ORJSONResponse:
    """Handle unexpected exceptions."""
    trace_id = get_request_id(request)

    logger.error(
        "unexpected_error",
        error_type=type(exc).__name__,
        error_message=str(exc),
        trace_id=trace_id,
        exc_info=True,
    )

    # Don't expose internal error details in production
    message = "Internal server error"
    if settings.app_debug:
        message = f"{type(exc).__name__}: {exc}"

    return ORJSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=create_error_response(
            code="INTERNAL_ERROR",
            message=message,
            trace_id=trace_id,
        ),
    )


# =============================================================================
# Health Check Endpoints
# =============================================================================


@app.get(
    "/health",
    tags=["Health"],
    summary="Health check endpoint",
    response_model=dict,
)
async def health_check() -> dict[str, Any]:
    """Check application health status.

    Returns:
        Health status including database and Redis connectivity.
    """
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "services": {
            "database": "unknown",
            "redis": "unknown",
        },
    }
    overall_healthy = True

    db_health = await db_status()
    health_status["services"]["database"] = db_health
    if db_health != "healthy":
        overall_healthy = False
        logger.error("database_health_check_failed", status=db_health)

    redis_health = await redis_status()
    health_status["services"]["redis"] = redis_health
    if redis_health != "healthy":
        overall_healthy = False
        logger.warning("redis_health_check_failed", status=redis_health)

    if not overall_healthy:
        health_status["status"] = "degraded"

    return health_status


# =============================================================================
# API Routers
# =============================================================================

API_V1_PREFIX = "/api/v1"

app.include_router(registration_router, prefix=API_V1_PREFIX)
app.include_router(referral_router, prefix=API_V1_PREFIX)
app.include_router(rewards_router, prefix=API_V1_PREFIX)
app.include_router(stats_router, prefix=API_V1_PREFIX)
app.include_router(auth_router, prefix=API_V1_PREFIX)

# WebSocket router (no prefix - endpoint is /ws/registrations)
app.include_router(ws_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "prereg.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_debug,
        log_level=settings.log_level.lower(),
    )
