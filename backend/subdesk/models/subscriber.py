"""
SubDesk Backend — Subscriber SQLAlchemy Model
===============================================

What:  ORM model for the `subscribers` table (one row per customer subscription).
Why:   Holds the three inputs of the lifecycle engine: plan, invoice status,
       and the timestamp of the last status change.
Who:   SubscriberService (signup, listing, status updates, deletion) and
       ReminderService (daily sweep).

Table Design Rationale:
    - Integer primary key: the admin UI addresses subscribers as /update-status/<id>
    - plan + plan_kind: the raw name is what the customer picked and what emails
      quote; plan_kind is the classified variant the engine works from, decided
      once at signup so it never has to be re-derived from free text
    - updated_at: "status changed at". Written on signup and on operator status
      changes only. There is deliberately no onupdate hook: recording a
      reminder or a lapse must not move the billing period.
    - reminded_for: due date of the last reminder sent, makes the daily sweep
      idempotent across re-runs

    Index on invoice_status:
        The reminder sweep reads only paid subscribers every day.
"""

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import Date, DateTime, Index, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from subdesk.database import Base
from subdesk.services.lifecycle import InvoiceStatus, PlanKind


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Subscriber(Base):
    """
    A customer's subscription record.

    Lifecycle:
        1. Created at signup: invoice_status = 'Free' (Free Trial) or 'pending'
        2. Operator sets a status → updated_at = now
        3. Due date passes → reconciliation demotes 'paid'/'Free' to 'pending'
        4. Deleted by the operator (cancellation email sent)
    """

    __tablename__ = "subscribers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)

    plan: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Plan name as chosen by the customer",
    )
    plan_kind: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PlanKind.UNKNOWN.value,
        server_default=text(f"'{PlanKind.UNKNOWN.value}'"),
        comment="Classified plan: monthly, six_month, yearly, free_trial, unknown",
    )
    price: Mapped[str] = mapped_column(String(20), nullable=False)

    invoice: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        unique=True,
        comment="Invoice number INV-<epoch ms>-<4 digits>",
    )
    invoice_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=InvoiceStatus.PENDING.value,
        server_default=text(f"'{InvoiceStatus.PENDING.value}'"),
        comment="Billing state: Free, pending, paid",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
        comment="When invoice_status was last set by signup or by the operator",
    )

    reminded_for: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
        default=None,
        comment="Due date the last renewal reminder was sent for",
    )

    __table_args__ = (
        Index("idx_subscribers_invoice_status", "invoice_status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Subscriber(id={self.id}, plan='{self.plan}', "
            f"invoice_status='{self.invoice_status}')>"
        )
