"""SubDesk Backend — Admin Login Route"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from subdesk.database import get_db_session
from subdesk.schemas.auth import LoginRequest, LoginResponse
from subdesk.schemas.common import ErrorResponse
from subdesk.services.auth_service import auth_service

router = APIRouter(tags=["Auth"])


@router.post(
    "/admin-login",
    response_model=LoginResponse,
    responses={401: {"description": "Invalid credentials", "model": ErrorResponse}},
    summary="Exchange admin credentials for a bearer token",
)
async def admin_login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> LoginResponse:
    return await auth_service.login(db, payload)
