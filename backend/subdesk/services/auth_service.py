"""
SubDesk Backend — Admin Auth Service
======================================

Checks admin credentials and issues access tokens. Unknown email and wrong
password produce the same 401 so the endpoint does not reveal which admin
emails exist.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from subdesk.exceptions import AuthenticationError, DatabaseError
from subdesk.models.admin import Admin
from subdesk.schemas.auth import LoginRequest, LoginResponse
from subdesk.security import create_access_token, verify_password

logger = logging.getLogger(__name__)


class AuthService:

    async def login(self, db: AsyncSession, payload: LoginRequest) -> LoginResponse:
        """
        Raises:
            AuthenticationError: unknown email or wrong password
            DatabaseError:       lookup failed
        """
        email = str(payload.email)
        try:
            result = await db.execute(select(Admin).where(Admin.email == email))
            admin = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("DB error during admin login: %s", str(e), exc_info=True)
            raise DatabaseError(context={"operation": "admin_login"})

        if admin is None or not verify_password(payload.password, admin.password_hash):
            logger.warning("Failed admin login for %s", email)
            raise AuthenticationError(message="Invalid credentials")

        token = create_access_token(admin_id=admin.id, email=admin.email)
        logger.info("Admin %s logged in", admin.id)
        return LoginResponse(token=token)


auth_service = AuthService()
