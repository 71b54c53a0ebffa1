"""
SubDesk Backend — Cron Trigger Routes
=======================================

Entry points for an external daily scheduler (platform cron, GitHub
Actions, etc.). Both require ?key=<CRON_SECRET>; when CRON_SECRET is unset
the routes refuse every call.

    POST /cron/reconcile       demote lapsed subscribers to 'pending'
    POST /cron/send-reminders  email subscribers due in REMINDER_LEAD_DAYS

Run reconcile before send-reminders. Both are safe to repeat.
"""

import secrets

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from subdesk.config import settings
from subdesk.database import get_db_session
from subdesk.exceptions import ForbiddenError
from subdesk.schemas.common import ReconcileResponse, ReminderRunResponse
from subdesk.services.reminder_service import reminder_service
from subdesk.services.subscriber_service import subscriber_service

router = APIRouter(prefix="/cron", tags=["Cron"])


def verify_cron_key(key: str = Query(default="")) -> None:
    expected = settings.cron_secret
    if not expected or not secrets.compare_digest(key.encode(), expected.encode()):
        raise ForbiddenError(context={"reason": "bad_cron_key"})


@router.post(
    "/reconcile",
    response_model=ReconcileResponse,
    dependencies=[Depends(verify_cron_key)],
    summary="Demote lapsed subscribers",
)
async def cron_reconcile(db: AsyncSession = Depends(get_db_session)) -> ReconcileResponse:
    ids = await subscriber_service.reconcile_lapsed(db)
    return ReconcileResponse(demoted=len(ids), ids=ids)


@router.post(
    "/send-reminders",
    response_model=ReminderRunResponse,
    dependencies=[Depends(verify_cron_key)],
    summary="Send renewal reminders",
)
async def cron_send_reminders(
    db: AsyncSession = Depends(get_db_session),
) -> ReminderRunResponse:
    return await reminder_service.send_reminders(db)
