"""Health check endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Request

from quarkfin.schemas.health import HealthResponse, PingResponse

router = APIRouter(tags=["health"])


@router.get("/ping", response_model=PingResponse)
async def ping(request: Request) -> PingResponse:
    """Liveness check."""
    settings = request.app.state.settings
    return PingResponse(
        message="pong from development backend",
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=settings.app_version,
    )


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Detailed health; the in-memory store is always connected."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        services={"database": "connected", "auth": "operational"},
    )
