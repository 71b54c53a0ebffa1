"""
SubDesk Backend — Subscriber Service
======================================

What:  Signup, admin listing, status changes, and deletion of subscribers.
Why:   Keeps persistence and email orchestration out of the route handlers
       and routes every due-date decision through the lifecycle engine.
Who:   routes/subscribers.py, routes/cron.py, services/scheduler.py.

Lapse reconciliation:
    reconcile_lapsed() demotes every 'paid'/'Free' subscriber whose due date
    is strictly before today to 'pending' with one bulk UPDATE. It is
    idempotent and runs both from the daily job and at the start of
    list_subscribers(), so the admin table never shows a lapsed subscriber
    as paid even when the daily job has not run yet.

    Demotion leaves updated_at untouched: it is not an operator action.

Error Handling:
    Business rule violations → ValidationError / NotFoundError
    SQLAlchemy failures      → DatabaseError (details logged, not returned)
    Email failures           → logged by MailService, never raised here
"""

import logging
import secrets
import time
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import BackgroundTasks
from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from subdesk.config import settings
from subdesk.exceptions import DatabaseError, NotFoundError, ValidationError
from subdesk.models.subscriber import Subscriber
from subdesk.schemas.common import MessageResponse
from subdesk.schemas.subscriber import (
    SubmitUserRequest,
    SubmitUserResponse,
    SubscriberItem,
    SubscriberListResponse,
)
from subdesk.services import email_templates
from subdesk.services.lifecycle import (
    InvoiceStatus,
    PlanKind,
    business_today,
    business_tz,
    classify_plan,
    has_lapsed,
    initial_status,
    normalize_status,
    validity_window,
)
from subdesk.services.mail_service import mail_service

logger = logging.getLogger(__name__)


def generate_invoice_number(now_ms: Optional[int] = None) -> str:
    """INV-<epoch milliseconds>-<4 random digits>, e.g. INV-1717171717171-4821."""
    timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"INV-{timestamp}-{1000 + secrets.randbelow(9000)}"


def stored_plan_kind(subscriber) -> PlanKind:
    """
    PlanKind saved at signup; falls back to classifying the raw name for
    rows written before plan_kind existed.
    """
    try:
        return PlanKind(subscriber.plan_kind)
    except ValueError:
        return classify_plan(subscriber.plan)


class SubscriberService:
    """Stateless; every method receives its session."""

    async def submit(
        self,
        db: AsyncSession,
        payload: SubmitUserRequest,
        background_tasks: BackgroundTasks,
        now: Optional[datetime] = None,
    ) -> SubmitUserResponse:
        """
        Register a new subscriber and queue the purchase confirmation email.

        Raises:
            ValidationError: email and/or phone already registered
                             (field = "both" | "email" | "phone")
            DatabaseError:   insert failed
        """
        now = now or datetime.now(timezone.utc)
        email = str(payload.email)

        try:
            result = await db.execute(
                select(Subscriber.email, Subscriber.phone).where(
                    or_(Subscriber.email == email, Subscriber.phone == payload.phone)
                )
            )
            existing = result.all()
        except SQLAlchemyError as e:
            logger.error("Duplicate check failed: %s", str(e), exc_info=True)
            raise DatabaseError(context={"operation": "submit.check"})

        self._reject_duplicates(existing, email, payload.phone)

        kind = classify_plan(payload.plan)
        status = initial_status(kind)
        invoice = generate_invoice_number(int(now.timestamp() * 1000))

        subscriber = Subscriber(
            name=payload.name,
            email=email,
            phone=payload.phone,
            plan=payload.plan,
            plan_kind=kind.value,
            price=payload.price,
            invoice=invoice,
            invoice_status=status.value,
            created_at=now,
            updated_at=now,
        )
        try:
            db.add(subscriber)
            await db.flush()
        except IntegrityError:
            # Lost a race with a concurrent signup using the same email/phone
            raise ValidationError(
                message="Email or phone number already registered",
                field="both",
            )
        except SQLAlchemyError as e:
            logger.error("Insert Error: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Insert failed",
                context={"operation": "submit.insert"},
            )

        logger.info(
            "Subscriber %s created: plan_kind=%s status=%s invoice=%s",
            subscriber.id, kind.value, status.value, invoice,
        )

        mail_service.dispatch(
            email_templates.purchase_confirmation(
                to=email,
                name=payload.name,
                invoice=invoice,
                plan=payload.plan,
                price=payload.price,
            ),
            background_tasks,
        )
        return SubmitUserResponse(invoice=invoice)

    @staticmethod
    def _reject_duplicates(existing, email: str, phone: str) -> None:
        email_taken = any(row.email == email for row in existing)
        phone_taken = any(row.phone == phone for row in existing)
        if email_taken and phone_taken:
            raise ValidationError(
                message="Email and phone are already registered", field="both"
            )
        if email_taken:
            raise ValidationError(message="Email already registered", field="email")
        if phone_taken:
            raise ValidationError(message="Phone number already registered", field="phone")

    async def reconcile_lapsed(
        self, db: AsyncSession, today: Optional[date] = None
    ) -> List[int]:
        """
        Demote lapsed 'paid'/'Free' subscribers to 'pending'.

        Returns:
            IDs that were demoted (empty when nothing lapsed).
        """
        tz = business_tz(settings.business_timezone)
        today = today or business_today(tz)

        try:
            result = await db.execute(
                select(Subscriber).where(
                    Subscriber.invoice_status.in_(
                        [InvoiceStatus.PAID.value, InvoiceStatus.FREE.value]
                    )
                )
            )
            candidates = list(result.scalars().all())

            lapsed = [
                s.id
                for s in candidates
                if has_lapsed(
                    s.invoice_status,
                    stored_plan_kind(s),
                    s.updated_at,
                    today,
                    tz=tz,
                    free_trial_days=settings.free_trial_days,
                )
            ]

            if lapsed:
                await db.execute(
                    update(Subscriber)
                    .where(Subscriber.id.in_(lapsed))
                    .values(invoice_status=InvoiceStatus.PENDING.value)
                    .execution_options(synchronize_session=False)
                )
                await db.flush()
                logger.info("Lapsed subscribers demoted to pending: %s", lapsed)
            return lapsed

        except SQLAlchemyError as e:
            logger.error("Lapse reconciliation failed: %s", str(e), exc_info=True)
            raise DatabaseError(context={"operation": "reconcile_lapsed"})

    async def list_subscribers(
        self, db: AsyncSession, today: Optional[date] = None
    ) -> SubscriberListResponse:
        """All subscribers, after reconciling lapses as of `today`."""
        await self.reconcile_lapsed(db, today=today)
        try:
            result = await db.execute(select(Subscriber).order_by(Subscriber.id))
            subscribers = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Query error listing subscribers: %s", str(e), exc_info=True)
            raise DatabaseError(context={"operation": "list_subscribers"})

        return SubscriberListResponse(
            users=[SubscriberItem.model_validate(s) for s in subscribers]
        )

    async def _get(self, db: AsyncSession, subscriber_id: int) -> Subscriber:
        try:
            subscriber = await db.get(Subscriber, subscriber_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching subscriber %s: %s", subscriber_id, str(e))
            raise DatabaseError(context={"subscriber_id": subscriber_id})
        if subscriber is None:
            raise NotFoundError(resource="User", resource_id=str(subscriber_id))
        return subscriber

    async def update_status(
        self,
        db: AsyncSession,
        subscriber_id: int,
        status: Optional[str],
        background_tasks: BackgroundTasks,
        now: Optional[datetime] = None,
    ) -> MessageResponse:
        """
        Operator status change.

        Resets updated_at (the start of the new period) and the reminder
        marker. Moving to 'paid' queues the payment confirmation email
        quoting the validity window the engine computes for the plan.

        Raises:
            ValidationError: status missing or not one of Free/pending/paid
            NotFoundError:   no such subscriber
        """
        if not status:
            raise ValidationError(message="Invoice status required", field="status")
        try:
            new_status = normalize_status(status)
        except ValueError as e:
            raise ValidationError(message=str(e), field="status")

        now = now or datetime.now(timezone.utc)
        subscriber = await self._get(db, subscriber_id)

        previous = subscriber.invoice_status
        subscriber.invoice_status = new_status.value
        subscriber.updated_at = now
        subscriber.reminded_for = None
        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Update failed for subscriber %s: %s", subscriber_id, str(e))
            raise DatabaseError(message="Update failed", context={"subscriber_id": subscriber_id})

        logger.info(
            "Subscriber %s status %s -> %s", subscriber_id, previous, new_status.value
        )

        if new_status is not InvoiceStatus.PAID:
            return MessageResponse(message="Status updated")

        window = validity_window(
            stored_plan_kind(subscriber), now, tz=business_tz(settings.business_timezone)
        )
        if window is None:
            logger.warning(
                "Subscriber %s marked paid on unrecognized plan '%s'; no confirmation sent",
                subscriber_id, subscriber.plan,
            )
            return MessageResponse(message="Status updated")

        start, end = window
        mail_service.dispatch(
            email_templates.payment_confirmed(
                to=subscriber.email, name=subscriber.name, start=start, end=end
            ),
            background_tasks,
        )
        return MessageResponse(message="Status updated and email sent")

    async def delete_subscriber(
        self,
        db: AsyncSession,
        subscriber_id: int,
        background_tasks: BackgroundTasks,
    ) -> MessageResponse:
        """Delete unconditionally and queue the cancellation email."""
        subscriber = await self._get(db, subscriber_id)
        email, name = subscriber.email, subscriber.name
        try:
            await db.delete(subscriber)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Delete failed for subscriber %s: %s", subscriber_id, str(e))
            raise DatabaseError(message="Delete failed", context={"subscriber_id": subscriber_id})

        logger.info("Subscriber %s deleted", subscriber_id)
        mail_service.dispatch(email_templates.cancellation(to=email, name=name), background_tasks)
        return MessageResponse(message="User deleted and cancellation email sent")


# ── Singleton Instance ────────────────────────────────────────────────────
subscriber_service = SubscriberService()
