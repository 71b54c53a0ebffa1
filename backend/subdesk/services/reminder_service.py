"""
SubDesk Backend — Renewal Reminder Service
============================================

What:  Daily sweep emailing paid subscribers whose period ends soon, plus a
       summary of upcoming payments to the operator inbox.
Who:   routes/cron.py (external trigger) and services/scheduler.py (in-process).
When:  Once per day.

Flow:
    1. Read every 'paid' subscriber
    2. For each: due date from the lifecycle engine
         exact mode (default): due - today == lead days
         catch-up mode:        0 < due - today <= lead days
    3. Skip when reminded_for already equals that due date (re-runs are safe)
    4. Send the reminder; on success record reminded_for = due
    5. A failed send is logged and counted; the sweep continues
    6. If anything was due, send one summary email to the operator

Sends are sequential and never retried.
"""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from subdesk.config import settings
from subdesk.exceptions import DatabaseError, MailDeliveryError
from subdesk.models.subscriber import Subscriber
from subdesk.schemas.common import ReminderDetail, ReminderRunResponse
from subdesk.services import email_templates
from subdesk.services.email_templates import UpcomingPayment
from subdesk.services.lifecycle import (
    InvoiceStatus,
    business_today,
    business_tz,
    compute_due_date,
    is_reminder_due,
    is_within_reminder_window,
)
from subdesk.services.mail_service import mail_service
from subdesk.services.subscriber_service import stored_plan_kind

logger = logging.getLogger(__name__)


class ReminderService:

    def __init__(self, lead_days: Optional[int] = None, catch_up: Optional[bool] = None):
        self.lead_days = lead_days if lead_days is not None else settings.reminder_lead_days
        self.catch_up = catch_up if catch_up is not None else settings.reminder_catch_up

    def _is_due(self, plan_kind, changed_at, today: date, tz) -> bool:
        rule = is_within_reminder_window if self.catch_up else is_reminder_due
        return rule(plan_kind, changed_at, today, self.lead_days, tz=tz)

    async def send_reminders(
        self, db: AsyncSession, today: Optional[date] = None
    ) -> ReminderRunResponse:
        tz = business_tz(settings.business_timezone)
        today = today or business_today(tz)

        try:
            result = await db.execute(
                select(Subscriber)
                .where(Subscriber.invoice_status == InvoiceStatus.PAID.value)
                .order_by(Subscriber.id)
            )
            subscribers = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("DB error loading paid subscribers: %s", str(e), exc_info=True)
            raise DatabaseError(context={"operation": "send_reminders"})

        sent = failed = skipped = 0
        details: List[ReminderDetail] = []
        upcoming: List[UpcomingPayment] = []

        for subscriber in subscribers:
            kind = stored_plan_kind(subscriber)
            if not self._is_due(kind, subscriber.updated_at, today, tz):
                continue
            due = compute_due_date(InvoiceStatus.PAID, kind, subscriber.updated_at, tz=tz)

            if subscriber.reminded_for == due:
                skipped += 1
                details.append(self._detail(subscriber, due, "skipped"))
                continue

            message = email_templates.renewal_reminder(
                to=subscriber.email, name=subscriber.name, due=due
            )
            try:
                await mail_service.send(message)
            except MailDeliveryError as e:
                failed += 1
                logger.error(
                    "Failed to send reminder to %s: %s | %s",
                    subscriber.email, e.message, e.context,
                )
                details.append(self._detail(subscriber, due, "failed"))
            else:
                sent += 1
                subscriber.reminded_for = due
                logger.info("Reminder sent to %s (due %s)", subscriber.email, due)
                details.append(self._detail(subscriber, due, "sent"))

            upcoming.append(
                UpcomingPayment(
                    name=subscriber.name,
                    email=subscriber.email,
                    plan=subscriber.plan,
                    phone=subscriber.phone,
                    due=due,
                )
            )

        if sent:
            try:
                await db.flush()
            except SQLAlchemyError as e:
                logger.error("Could not record reminder markers: %s", str(e), exc_info=True)
                raise DatabaseError(context={"operation": "send_reminders.mark"})

        summary_sent = False
        if upcoming:
            summary_sent = await mail_service.send_quietly(
                email_templates.upcoming_payments_summary(
                    to=settings.operator_inbox, payments=upcoming,
                    lead_days=self.lead_days,
                    catch_up=self.catch_up,
                )
            )

        logger.info(
            "Reminder sweep for %s: checked=%d sent=%d failed=%d skipped=%d",
            today, len(subscribers), sent, failed, skipped,
        )
        return ReminderRunResponse(
            checked=len(subscribers),
            sent=sent,
            failed=failed,
            skipped=skipped,
            summary_sent=summary_sent,
            details=details,
        )

    @staticmethod
    def _detail(subscriber, due: date, status: str) -> ReminderDetail:
        return ReminderDetail(
            subscriber_id=subscriber.id, email=subscriber.email, due_date=due, status=status
        )


reminder_service = ReminderService()
