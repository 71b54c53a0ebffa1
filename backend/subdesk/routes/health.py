"""
SubDesk Backend — Health Check Route
======================================

Probed by Docker and the load balancer. The database is critical (503 when
unreachable); the geolocation lookup is not, so an open circuit breaker
only marks the service 'degraded'. ipinfo itself is never called here; the
breaker state already reflects recent lookups.
"""

import logging
import time

from fastapi import APIRouter, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from subdesk import __version__
from subdesk.database import engine
from subdesk.schemas.common import HealthResponse
from subdesk.services.location_service import CircuitBreaker, location_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check(response: Response) -> HealthResponse:
    db_status = "connected"
    location_status = "available"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    if location_service.circuit_breaker.state == CircuitBreaker.OPEN:
        location_status = "circuit_open"
        if overall == "healthy":
            overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        location=location_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
