"""
SubDesk Backend — IP Geolocation Service
==========================================

What:  Resolves the caller's country through the ipinfo.io JSON API.
Why:   The storefront picks currency and pricing by country.
Who:   routes/location.py (GET /get-location); health check reads the breaker.

Resilience Strategy:
    1. Tenacity retry with exponential backoff + jitter on transport errors
       and 5xx responses (4xx are not retried)
    2. Circuit breaker so a dead upstream fails fast instead of stacking
       slow requests
    3. One shared httpx timeout for connect and read

Client IP:
    The socket peer address. With TRUSTED_PROXY=true the first
    X-Forwarded-For entry wins; enable it only behind a proxy that
    overwrites the header, since clients can set it to anything. The value
    must parse as an IP address before it is put into the ipinfo URL.
"""

import ipaddress
import logging
import time
from typing import Optional

import httpx
from fastapi import Request
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from subdesk.config import settings
from subdesk.exceptions import CircuitBreakerOpenError, LocationServiceError

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """
    State Machine:
        CLOSED → failure_count reaches threshold → OPEN
        OPEN   → calls rejected with CircuitBreakerOpenError until
                 recovery_timeout elapses → HALF_OPEN
        HALF_OPEN → one trial call; success → CLOSED, failure → OPEN

    Not thread-safe; uvicorn async workers share one event loop per process.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time: Optional[float] = None

    def can_execute(self) -> bool:
        """
        Raises:
            CircuitBreakerOpenError: OPEN and the recovery timeout has not elapsed.
        """
        if self.state == self.OPEN:
            elapsed = time.time() - (self.last_failure_time or 0)
            if elapsed < self.recovery_timeout:
                raise CircuitBreakerOpenError(
                    recovery_time=int(self.recovery_timeout - elapsed)
                )
            logger.info("Location circuit breaker HALF_OPEN after %.1fs", elapsed)
            self.state = self.HALF_OPEN
        return True

    def record_success(self) -> None:
        if self.state == self.HALF_OPEN:
            logger.info("Location circuit breaker CLOSED (upstream recovered)")
        self.failure_count = 0
        self.state = self.CLOSED
        self.last_failure_time = None

    def record_failure(self) -> None:
        self.failure_count += 1
        self.last_failure_time = time.time()

        if self.state == self.HALF_OPEN:
            logger.warning("Location circuit breaker back to OPEN (trial call failed)")
            self.state = self.OPEN
        elif self.failure_count >= self.failure_threshold:
            logger.warning(
                "Location circuit breaker OPENING after %d consecutive failures",
                self.failure_count,
            )
            self.state = self.OPEN


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


def client_ip_from(request: Request) -> str:
    """Peer address, or the first X-Forwarded-For entry behind a trusted proxy."""
    forwarded = request.headers.get("x-forwarded-for") if settings.trusted_proxy else None
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


class LocationService:

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.transport = transport
        self.base_url = (base_url or settings.ipinfo_base_url).rstrip("/")
        self.token = token if token is not None else settings.ipinfo_token
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=settings.cb_failure_threshold,
            recovery_timeout=settings.cb_recovery_timeout,
        )

    async def country_for(self, ip: str) -> str:
        """
        Country code reported by ipinfo for `ip` (e.g. "IN", "US").

        Raises:
            CircuitBreakerOpenError: too many recent failures
            LocationServiceError:    not an IP address, lookup failed after
                                     retries, or no country
        """
        try:
            ip = str(ipaddress.ip_address(ip))
        except ValueError:
            logger.warning("Refusing location lookup for non-IP value %r", ip)
            raise LocationServiceError(context={"reason": "invalid_ip"})

        self.circuit_breaker.can_execute()

        try:
            payload = await self._fetch_with_retry(ip)
        except (httpx.HTTPError, ValueError) as e:
            self.circuit_breaker.record_failure()
            logger.error("Location lookup failed for %s: %s", ip, str(e))
            raise LocationServiceError(
                retry_after=self.circuit_breaker.recovery_timeout,
                context={"error_type": type(e).__name__},
            )

        self.circuit_breaker.record_success()
        country = payload.get("country") if isinstance(payload, dict) else None
        if not country:
            # Private and loopback addresses come back without a country
            logger.warning("No country in ipinfo response for %s", ip)
            raise LocationServiceError()
        return country

    @retry(
        retry=retry_if_exception(_is_transient),
        stop=stop_after_attempt(settings.retry_max_attempts),
        wait=wait_exponential_jitter(
            initial=settings.retry_min_wait,
            max=settings.retry_max_wait,
            jitter=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _fetch_with_retry(self, ip: str) -> dict:
        start_time = time.time()
        params = {"token": self.token} if self.token else None
        async with httpx.AsyncClient(
            timeout=settings.ipinfo_timeout, transport=self.transport
        ) as client:
            response = await client.get(f"{self.base_url}/{ip}/json", params=params)
            response.raise_for_status()
        logger.debug(
            "ipinfo lookup for %s took %.0fms", ip, (time.time() - start_time) * 1000
        )
        return response.json()


location_service = LocationService()
