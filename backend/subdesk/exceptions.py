"""
SubDesk Backend — Custom Exception Hierarchy
==============================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Custom exceptions enable targeted error handling with appropriate HTTP
       status codes and user-friendly messages.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services, security helpers, and middleware; caught by global handlers.

Exception Hierarchy:
    SubDeskError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── AuthenticationError      → 401 Unauthorized
    ├── ForbiddenError           → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── DatabaseError            → 500 Internal Server Error
    ├── LocationServiceError     → 503 Service Unavailable
    ├── CircuitBreakerOpenError  → 503 Service Unavailable (circuit open)
    └── MailDeliveryError        → never surfaced (logged by MailService.send_quietly)

The subscription lifecycle engine raises none of these: it answers
"no due date" with None instead.
"""

from typing import Any, Dict, Optional


class SubDeskError(Exception):
    """
    Base exception for all SubDesk application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only where the handler allows)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(SubDeskError):
    """
    Raised when client input fails a business rule.

    HTTP: 400 Bad Request

    FastAPI already answers schema violations with 422; this one covers the
    rules a schema cannot express (duplicate email/phone, unknown invoice
    status, blog without sections).

    Example response:
        {
            "error": "validation_error",
            "message": "Email already registered",
            "details": {"field": "email"}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class AuthenticationError(SubDeskError):
    """
    Raised when admin credentials or bearer tokens are missing or invalid.

    HTTP: 401 Unauthorized (with WWW-Authenticate: Bearer)
    """

    def __init__(
        self,
        message: str = "Invalid credentials",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(SubDeskError):
    """
    Raised when a shared-secret check fails (the /cron routes).

    HTTP: 403 Forbidden
    """

    def __init__(
        self,
        message: str = "Forbidden",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(SubDeskError):
    """
    Raised when a requested resource does not exist.

    HTTP: 404 Not Found

    SQLAlchemy returns None for missing rows; services convert that into
    this exception so routes never check for None themselves.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ConflictError(SubDeskError):
    """
    Raised when a create would duplicate a unique resource (e.g. blog title).

    HTTP: 409 Conflict
    """

    def __init__(
        self,
        message: str = "Resource already exists",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(SubDeskError):
    """
    Raised when database operations fail unexpectedly.

    HTTP: 500 Internal Server Error

    The message returned to the client is always generic. Detailed error
    info is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class MailDeliveryError(SubDeskError):
    """
    Raised by MailService.send when the SMTP exchange fails.

    Never reaches an HTTP client: request paths use send_quietly, which
    logs and drops it. Sends are not retried.
    """

    def __init__(
        self,
        message: str = "Email delivery failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class LocationServiceError(SubDeskError):
    """
    Raised when the IP geolocation lookup fails after all retries.

    HTTP: 503 Service Unavailable
    """

    def __init__(
        self,
        message: str = "Failed to fetch location",
        retry_after: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if retry_after:
            ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class CircuitBreakerOpenError(SubDeskError):
    """
    Raised when the location lookup circuit breaker is OPEN.

    HTTP: 503 Service Unavailable

    State machine:
        CLOSED → (threshold failures) → OPEN → (recovery timeout) → HALF_OPEN
        HALF_OPEN → success → CLOSED, failure → OPEN
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            "Location service is temporarily unavailable due to repeated failures. "
            f"Retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, context=ctx)
        self.recovery_time = recovery_time


class RateLimitExceededError(SubDeskError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    HTTP: 429 Too Many Requests (with Retry-After header)
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Too many requests, try again in {retry_after} seconds."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
