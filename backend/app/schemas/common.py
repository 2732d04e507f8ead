from datetime import datetime
from typing import Any

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Liveness probe result."""

    status: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Body of every failed request."""

    success: bool = False
    error: str
    details: Any | None = None
    request_id: str | None = None
