"""
SubDesk Backend — Subscriber Route Handlers
=============================================

Public signup plus the admin subscriber table. Admin routes require a
bearer token from POST /admin-login.
"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from subdesk.database import get_db_session
from subdesk.schemas.common import ErrorResponse, MessageResponse
from subdesk.schemas.subscriber import (
    SubmitUserRequest,
    SubmitUserResponse,
    SubscriberListResponse,
    UpdateStatusRequest,
)
from subdesk.security import require_admin
from subdesk.services.subscriber_service import subscriber_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Subscribers"])

ADMIN_ERRORS = {
    401: {"description": "Missing or invalid token", "model": ErrorResponse},
    404: {"description": "Subscriber not found", "model": ErrorResponse},
}


@router.post(
    "/submit-user",
    response_model=SubmitUserResponse,
    responses={400: {"description": "Email or phone already registered", "model": ErrorResponse}},
    summary="Sign up for a plan",
)
async def submit_user(
    payload: SubmitUserRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db_session),
) -> SubmitUserResponse:
    """
    Creates the subscriber with a fresh invoice number and emails the
    purchase confirmation in the background. "Free Trial" signups start as
    'Free', everything else as 'pending' until the operator marks it paid.
    """
    return await subscriber_service.submit(db, payload, background_tasks)


@router.get(
    "/get-users",
    response_model=SubscriberListResponse,
    responses={401: ADMIN_ERRORS[401]},
    summary="List all subscribers",
)
async def get_users(
    db: AsyncSession = Depends(get_db_session),
    admin: dict = Depends(require_admin),
) -> SubscriberListResponse:
    # Lapsed subscribers are demoted before the list is read
    return await subscriber_service.list_subscribers(db)


@router.put(
    "/update-status/{subscriber_id}",
    response_model=MessageResponse,
    responses={400: {"description": "Unknown status", "model": ErrorResponse}, **ADMIN_ERRORS},
    summary="Change a subscriber's invoice status",
)
async def update_status(
    subscriber_id: int,
    payload: UpdateStatusRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db_session),
    admin: dict = Depends(require_admin),
) -> MessageResponse:
    logger.info("Admin %s sets subscriber %s to %s", admin.get("id"), subscriber_id, payload.status)
    return await subscriber_service.update_status(
        db, subscriber_id, payload.status, background_tasks
    )


@router.delete(
    "/delete-user/{subscriber_id}",
    response_model=MessageResponse,
    responses=ADMIN_ERRORS,
    summary="Delete a subscriber and email the cancellation",
)
async def delete_user(
    subscriber_id: int,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db_session),
    admin: dict = Depends(require_admin),
) -> MessageResponse:
    logger.info("Admin %s deletes subscriber %s", admin.get("id"), subscriber_id)
    return await subscriber_service.delete_subscriber(db, subscriber_id, background_tasks)
