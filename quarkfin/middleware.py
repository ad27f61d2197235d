"""Structured logging setup and development-backend middleware."""

from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from quarkfin.config import Settings
from quarkfin.store import user_id_for_token

logger = structlog.get_logger()


def _service_fields(settings: Settings):
    def add_service(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", "quarkfin-backend")
        event_dict.setdefault("environment", settings.environment)
        return event_dict

    return add_service


def configure_structured_logging(settings: Settings) -> None:
    """Configure structlog; events carry the request context bound by the middleware."""
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        _service_fields(settings),
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_limiter(settings: Settings) -> Limiter:
    """Create a rate limiter instance."""
    return Limiter(
        key_func=get_remote_address,
        default_limits=[settings.rate_limit_default],
    )


def configure_cors(app: FastAPI, settings: Settings) -> None:
    """Add CORS middleware to the application."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "HEAD", "PATCH"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Request-ID", "X-RateLimit-Remaining"],
    )


def configure_rate_limiting(app: FastAPI, settings: Settings) -> None:
    """Apply the default rate limit to every route."""
    limiter = get_limiter(settings)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)


async def logging_middleware(request: Request, call_next) -> Response:
    """Log every request under a request id, with the platform user it acted for."""
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:16]
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    user_id = user_id_for_token(token.strip()) if scheme.lower() == "bearer" and token.strip() else None

    structlog.contextvars.bind_contextvars(request_id=request_id, user_id=user_id)
    start_time = time.monotonic()
    try:
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start_time) * 1000, 2)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            "backend_request",
            request_id=request_id,
            user_id=user_id,
            method=request.method,
            route=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )
        return response
    finally:
        structlog.contextvars.clear_contextvars()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and log startup and shutdown."""
    settings = app.state.settings
    configure_structured_logging(settings)

    logger.info("backend_starting", version=settings.app_version, environment=settings.environment)
    yield
    logger.info("backend_shutting_down")
