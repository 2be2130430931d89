"""Main FastAPI application for the refledger API."""

import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from refledger import __version__
from refledger.api.rate_limit import limiter
from refledger.api.request_info import client_ip
from refledger.api.v1.ads import router as ads_router
from refledger.api.v1.referral import router as referral_router
from refledger.api.v1.webhooks import router as webhooks_router
from refledger.logging_config import configure_logging, get_logger
from refledger.settings import settings
from refledger.storage.db import db

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id and client IP to every log event of a request.

    Also sets the security headers on each response and echoes the id as
    ``X-Request-ID``.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            client_ip=client_ip(request),
            path=request.url.path,
        )

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("app_starting", env=settings.env, version=__version__)
    db.create_tables()
    yield
    logger.info("app_shutting_down")


def create_app() -> FastAPI:
    """Create and configure FastAPI application.

    Returns:
        Configured FastAPI app
    """
    configure_logging()
    is_production = settings.env == "production"

    app = FastAPI(
        title="refledger API",
        description="Referral attribution, referral earnings and ad tracking",
        version=__version__,
        docs_url=None if is_production else "/api/docs",
        redoc_url=None if is_production else "/api/redoc",
        openapi_url=None if is_production else "/api/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)

    # CORS middleware - never allow wildcard in production
    allowed_origins = [
        origin.strip()
        for origin in settings.allowed_origins.split(",")
        if origin.strip()
    ]
    if is_production and "*" in allowed_origins:
        logger.error("cors_wildcard_blocked", message="Wildcard CORS not allowed in production")
        allowed_origins = []

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        max_age=3600,
    )

    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={"detail": "Too many requests. Please try again later."},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError):
        logger.info("request_validation_failed", path=request.url.path, errors=jsonable_errors(exc))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Invalid request", "errors": jsonable_errors(exc)},
        )

    app.include_router(referral_router, prefix="/api/v1")
    app.include_router(webhooks_router, prefix="/api/v1")
    app.include_router(ads_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": __version__,
            "env": settings.env,
        }

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    """Validation errors reduced to JSON-safe location/message pairs."""
    return [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": str(error.get("msg", ""))}
        for error in exc.errors()
    ]


# Create app instance
app = create_app()
