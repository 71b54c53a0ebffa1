"""
SubDesk Backend — Admin Authentication Helpers
================================================

What:  Password hashing, access-token issuance, and the `require_admin`
       dependency that guards every admin route.
How:   bcrypt hashes through passlib's CryptContext; HS256 JWTs through PyJWT.
       Tokens carry the admin id and email and expire after
       settings.jwt_expires_minutes (default 1 hour).

Failure responses (via AuthenticationError → 401):
    no bearer token      → "Access denied, token required"
    bad/expired token    → "Invalid token"
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from subdesk.config import settings
from subdesk.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# auto_error=False: a missing header reaches require_admin so the response
# goes through our error envelope instead of FastAPI's default 403.
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """False for a wrong password or an unreadable hash."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        logger.warning("Stored password hash could not be parsed")
        return False


def create_access_token(
    admin_id: int,
    email: str,
    expires_minutes: Optional[int] = None,
    now: Optional[datetime] = None,
) -> str:
    issued = now or datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes or settings.jwt_expires_minutes)
    payload: Dict[str, Any] = {
        "sub": str(admin_id),
        "id": admin_id,
        "email": email,
        "iat": int(issued.timestamp()),
        "exp": int((issued + lifetime).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Raises:
        AuthenticationError: signature, expiry, or format problems.
    """
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])
    except jwt.PyJWTError as e:
        raise AuthenticationError(
            message="Invalid token",
            context={"reason": type(e).__name__},
        )


async def require_admin(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Dict[str, Any]:
    """
    FastAPI dependency: decoded token claims of the calling admin.

    Usage:
        @router.get("/get-users")
        async def get_users(admin: dict = Depends(require_admin)): ...
    """
    if creds is None or not creds.credentials:
        raise AuthenticationError(message="Access denied, token required")
    return decode_token(creds.credentials)
