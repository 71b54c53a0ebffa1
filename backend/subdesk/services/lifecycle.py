"""
SubDesk Backend — Subscription Lifecycle Engine
=================================================

What:  Pure functions deriving due dates, lapse and reminder decisions from
       (invoice status, plan, status-changed-at, today).
Why:   The same rule feeds three call sites (listing reconciliation, the
       payment confirmation email, the daily reminder sweep). Keeping it in
       one place keeps all three on the same calendar.
How:   Plans are classified once into a PlanKind; durations are calendar
       offsets (dateutil.relativedelta); every comparison is done on
       calendar dates, never on datetimes.
Who:   SubscriberService, ReminderService.

Rules:
    paid                → due = day(changed_at) + plan duration
    Free + Free Trial   → due = day(changed_at) + 7 days
    anything else       → no due date (never lapses, never reminded)

    lapsed        ⇔ due < today                  (due == today is NOT lapsed)
    reminder due  ⇔ due - today == lead days     (exact match by default)

Calendar rollover:
    relativedelta clamps to the last valid day of the target month:
        2024-01-31 + 1 month  = 2024-02-29
        2023-08-31 + 6 months = 2024-02-29
        2024-02-29 + 1 year   = 2025-02-28

Nothing here reads the clock. Callers pass `today`; business_today() is the
helper the edges use to produce it.
"""

import enum
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional, Tuple, Union
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

DayLike = Union[date, datetime]

FREE_TRIAL_PLAN = "Free Trial"
FREE_TRIAL_DAYS = 7
REMINDER_LEAD_DAYS = 2


class InvoiceStatus(str, enum.Enum):
    """Coarse billing state of a subscriber."""

    FREE = "Free"
    PENDING = "pending"
    PAID = "paid"


class PlanKind(str, enum.Enum):
    """
    Tagged plan variant, decided once when a subscriber is created.

    UNKNOWN keeps subscribers with unrecognized plan names representable;
    they simply never get a due date.
    """

    MONTHLY = "monthly"
    SIX_MONTH = "six_month"
    YEARLY = "yearly"
    FREE_TRIAL = "free_trial"
    UNKNOWN = "unknown"


# Substring keyword → kind, checked in this order
_PLAN_KEYWORDS = (
    ("Monthly", PlanKind.MONTHLY),
    ("6-Month", PlanKind.SIX_MONTH),
    ("Yearly", PlanKind.YEARLY),
)

_PLAN_DURATIONS = {
    PlanKind.MONTHLY: relativedelta(months=1),
    PlanKind.SIX_MONTH: relativedelta(months=6),
    PlanKind.YEARLY: relativedelta(years=1),
}


def classify_plan(plan: Union[str, PlanKind, None]) -> PlanKind:
    """
    Map a free-text plan name to its PlanKind.

    "Premium Monthly Plan" → MONTHLY, "6-Month Plan" → SIX_MONTH,
    "Yearly" → YEARLY, exactly "Free Trial" → FREE_TRIAL, else UNKNOWN.
    A name containing two keywords resolves to the first in that order.
    """
    if isinstance(plan, PlanKind):
        return plan
    if not plan:
        return PlanKind.UNKNOWN
    for keyword, kind in _PLAN_KEYWORDS:
        if keyword in plan:
            return kind
    if plan == FREE_TRIAL_PLAN:
        return PlanKind.FREE_TRIAL
    return PlanKind.UNKNOWN


def initial_status(plan: Union[str, PlanKind]) -> InvoiceStatus:
    """Status a brand-new subscriber starts in."""
    if classify_plan(plan) is PlanKind.FREE_TRIAL:
        return InvoiceStatus.FREE
    return InvoiceStatus.PENDING


def normalize_status(value: Union[str, InvoiceStatus]) -> InvoiceStatus:
    """
    Validate an operator-supplied status against the canonical states.

    Raises:
        ValueError: for anything other than "Free", "pending", "paid".
    """
    if isinstance(value, InvoiceStatus):
        return value
    try:
        return InvoiceStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in InvoiceStatus)
        raise ValueError(f"Invalid invoice status '{value}'. Must be one of: {allowed}")


def plan_duration(plan: Union[str, PlanKind, None]) -> Optional[relativedelta]:
    """Calendar length of one billing period, or None for plans without one."""
    return _PLAN_DURATIONS.get(classify_plan(plan))


def to_day(value: DayLike, tz: Optional[tzinfo] = None) -> date:
    """
    Truncate a timestamp to its calendar day.

    Aware datetimes are first converted to `tz` (when given) so the day is
    the business day, not the UTC day. Naive datetimes are taken as-is.
    """
    if isinstance(value, datetime):
        if tz is not None and value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    return value


def compute_due_date(
    invoice_status: Union[str, InvoiceStatus],
    plan: Union[str, PlanKind, None],
    status_changed_at: DayLike,
    *,
    tz: Optional[tzinfo] = None,
    free_trial_days: int = FREE_TRIAL_DAYS,
) -> Optional[date]:
    """
    Due date of the current paid or trial period.

    Returns None when the combination has no due date: pending subscribers,
    paid subscribers on an unrecognized plan, and Free subscribers whose
    plan is not the Free Trial.
    """
    start = to_day(status_changed_at, tz)
    kind = classify_plan(plan)

    if invoice_status == InvoiceStatus.PAID:
        duration = _PLAN_DURATIONS.get(kind)
        if duration is None:
            return None
        return start + duration

    if invoice_status == InvoiceStatus.FREE and kind is PlanKind.FREE_TRIAL:
        return start + timedelta(days=free_trial_days)

    return None


def has_lapsed(
    invoice_status: Union[str, InvoiceStatus],
    plan: Union[str, PlanKind, None],
    status_changed_at: DayLike,
    today: DayLike,
    *,
    tz: Optional[tzinfo] = None,
    free_trial_days: int = FREE_TRIAL_DAYS,
) -> bool:
    """True iff a due date exists and is strictly before today."""
    due = compute_due_date(
        invoice_status, plan, status_changed_at, tz=tz, free_trial_days=free_trial_days
    )
    return due is not None and due < to_day(today, tz)


def days_until_due(
    plan: Union[str, PlanKind, None],
    status_changed_at: DayLike,
    today: DayLike,
    *,
    tz: Optional[tzinfo] = None,
) -> Optional[int]:
    """Whole days from today to a paid subscriber's due date (negative once past)."""
    due = compute_due_date(InvoiceStatus.PAID, plan, status_changed_at, tz=tz)
    if due is None:
        return None
    return (due - to_day(today, tz)).days


def is_reminder_due(
    plan: Union[str, PlanKind, None],
    status_changed_at: DayLike,
    today: DayLike,
    lead_days: int = REMINDER_LEAD_DAYS,
    *,
    tz: Optional[tzinfo] = None,
) -> bool:
    """
    Exact-day reminder rule for paid subscribers.

    Fires only when the due date is exactly `lead_days` away; 1 or 3 days
    out does not fire. A skipped daily run therefore skips that cycle's
    reminder, see is_within_reminder_window for the catch-up variant.
    """
    return days_until_due(plan, status_changed_at, today, tz=tz) == lead_days


def is_within_reminder_window(
    plan: Union[str, PlanKind, None],
    status_changed_at: DayLike,
    today: DayLike,
    lead_days: int = REMINDER_LEAD_DAYS,
    *,
    tz: Optional[tzinfo] = None,
) -> bool:
    """Catch-up rule: 0 < days until due <= lead_days."""
    remaining = days_until_due(plan, status_changed_at, today, tz=tz)
    return remaining is not None and 0 < remaining <= lead_days


def validity_window(
    plan: Union[str, PlanKind, None],
    changed_at: DayLike,
    *,
    tz: Optional[tzinfo] = None,
) -> Optional[Tuple[date, date]]:
    """(start, end) quoted to a customer whose payment was just confirmed."""
    end = compute_due_date(InvoiceStatus.PAID, plan, changed_at, tz=tz)
    if end is None:
        return None
    return to_day(changed_at, tz), end


# ── Clock helpers (edges only) ────────────────────────────────────────────

def business_tz(name: str) -> tzinfo:
    return ZoneInfo(name)


def business_today(tz: tzinfo) -> date:
    """Current calendar day in the business timezone."""
    return datetime.now(timezone.utc).astimezone(tz).date()
