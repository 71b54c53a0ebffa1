"""
SubDesk Backend — Shared Response Schemas
===========================================

Error envelope, health check, and the small payloads shared by several routes.
"""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field


class MessageResponse(BaseModel):
    message: str = Field(description="Human-readable outcome")


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.
    Why:   Clients need a consistent structure to parse errors programmatically.

    Example:
        {
            "error": "validation_error",
            "message": "Phone number already registered",
            "details": {"field": "phone"},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    location: str = Field(description="Geolocation lookup: available, circuit_open")
    uptime_seconds: float = Field(description="Seconds since service started")


class LocationResponse(BaseModel):
    country: Optional[str] = Field(default=None, description="ISO country code of the caller")


class ReconcileResponse(BaseModel):
    demoted: int = Field(description="Subscribers moved back to 'pending'")
    ids: List[int] = Field(default_factory=list)


class ReminderDetail(BaseModel):
    subscriber_id: int
    email: str
    due_date: date
    status: str = Field(description="sent, failed, or skipped")


class ReminderRunResponse(BaseModel):
    checked: int
    sent: int
    failed: int
    skipped: int
    summary_sent: bool
    details: List[ReminderDetail] = Field(default_factory=list)
