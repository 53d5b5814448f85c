"""Pydantic models for health endpoints."""

from typing import Optional

from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    """Response model for service health checks."""

    status: str = "healthy"
    database: str = "ok"
    environment: Optional[str] = None
    error: Optional[str] = None
