"""Schemas for health check endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class PingResponse(BaseModel):
    """Liveness answer from ``/ping``."""

    message: str
    status: str
    timestamp: datetime | None = None
    version: str | None = None


class HealthResponse(BaseModel):
    """Detailed backend health."""

    status: str
    timestamp: datetime
    services: dict[str, str]
