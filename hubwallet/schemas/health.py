"""Pydantic models for health endpoints."""

from typing import Optional
from pydantic import BaseModel


class HealthCheckResponse(BaseModel):
    """Response model for service health checks."""

    status: str = "healthy"
    service: str = "hubwallet"
    database: Optional[str] = None
    error: Optional[str] = None
