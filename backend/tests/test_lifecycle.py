"""
SubDesk Backend — Lifecycle Rule Tests
========================================

Pure functions, no fixtures needed: plan classification, due dates, lapse
and reminder decisions, and the calendar rollover policy.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest
from dateutil.relativedelta import relativedelta

from subdesk.services.lifecycle import (
    InvoiceStatus,
    PlanKind,
    classify_plan,
    compute_due_date,
    days_until_due,
    has_lapsed,
    initial_status,
    is_reminder_due,
    is_within_reminder_window,
    normalize_status,
    plan_duration,
    to_day,
    validity_window,
)


class TestClassifyPlan:

    @pytest.mark.parametrize(
        "plan, expected",
        [
            ("Premium Monthly Plan", PlanKind.MONTHLY),
            ("6-Month Plan", PlanKind.SIX_MONTH),
            ("Yearly", PlanKind.YEARLY),
            ("Free Trial", PlanKind.FREE_TRIAL),
            ("Lifetime", PlanKind.UNKNOWN),
            ("", PlanKind.UNKNOWN),
            (None, PlanKind.UNKNOWN),
        ],
    )
    def test_known_names(self, plan, expected):
        assert classify_plan(plan) is expected

    def test_monthly_wins_over_yearly(self):
        assert classify_plan("Yearly or Monthly") is PlanKind.MONTHLY

    def test_six_month_wins_over_yearly(self):
        assert classify_plan("6-Month Yearly bundle") is PlanKind.SIX_MONTH

    def test_free_trial_needs_exact_name(self):
        assert classify_plan("free trial") is PlanKind.UNKNOWN
        assert classify_plan("Free Trial Extended") is PlanKind.UNKNOWN

    def test_matching_is_case_sensitive(self):
        assert classify_plan("monthly") is PlanKind.UNKNOWN

    def test_plan_kind_passes_through(self):
        assert classify_plan(PlanKind.YEARLY) is PlanKind.YEARLY

    def test_durations(self):
        assert plan_duration("Monthly") == relativedelta(months=1)
        assert plan_duration("6-Month") == relativedelta(months=6)
        assert plan_duration("Yearly") == relativedelta(years=1)
        assert plan_duration("Free Trial") is None
        assert plan_duration("Weekly") is None


class TestStatuses:

    def test_free_trial_starts_free(self):
        assert initial_status("Free Trial") is InvoiceStatus.FREE

    def test_other_plans_start_pending(self):
        assert initial_status("Premium Monthly Plan") is InvoiceStatus.PENDING
        assert initial_status("Something else") is InvoiceStatus.PENDING

    def test_normalize_accepts_canonical_values(self):
        assert normalize_status("paid") is InvoiceStatus.PAID
        assert normalize_status("Free") is InvoiceStatus.FREE
        assert normalize_status("pending") is InvoiceStatus.PENDING

    @pytest.mark.parametrize("value", ["Paid", "free", "cancelled", ""])
    def test_normalize_rejects_others(self, value):
        with pytest.raises(ValueError, match="Must be one of: Free, pending, paid"):
            normalize_status(value)


class TestComputeDueDate:

    def test_monthly_from_jan_31_clamps_to_leap_day(self):
        assert compute_due_date("paid", "Monthly Plan", date(2024, 1, 31)) == date(2024, 2, 29)

    def test_monthly_from_jan_31_non_leap_year(self):
        assert compute_due_date("paid", "Monthly Plan", date(2023, 1, 31)) == date(2023, 2, 28)

    def test_yearly_from_leap_day(self):
        assert compute_due_date("paid", "Yearly", date(2024, 2, 29)) == date(2025, 2, 28)

    def test_six_month(self):
        assert compute_due_date("paid", "6-Month Plan", date(2024, 1, 1)) == date(2024, 7, 1)

    def test_free_trial_is_seven_days(self):
        assert compute_due_date("Free", "Free Trial", date(2024, 5, 1)) == date(2024, 5, 8)

    def test_free_trial_length_is_configurable(self):
        due = compute_due_date("Free", "Free Trial", date(2024, 5, 1), free_trial_days=14)
        assert due == date(2024, 5, 15)

    def test_free_status_on_other_plan_has_no_due_date(self):
        assert compute_due_date("Free", "Premium Monthly Plan", date(2024, 5, 1)) is None

    def test_paid_free_trial_has_no_due_date(self):
        assert compute_due_date("paid", "Free Trial", date(2024, 5, 1)) is None

    def test_paid_unknown_plan_has_no_due_date(self):
        assert compute_due_date("paid", "Lifetime", date(2024, 5, 1)) is None

    @pytest.mark.parametrize("plan", ["Yearly", "Monthly", "Free Trial", "Lifetime"])
    def test_pending_never_has_due_date(self, plan):
        assert compute_due_date("pending", plan, date(2020, 1, 1)) is None

    def test_time_of_day_is_ignored(self):
        morning = datetime(2024, 3, 10, 0, 1, tzinfo=timezone.utc)
        night = datetime(2024, 3, 10, 23, 59, tzinfo=timezone.utc)
        assert compute_due_date("paid", "Monthly", morning) == compute_due_date(
            "paid", "Monthly", night
        )

    def test_business_timezone_decides_the_day(self):
        # 20:00 UTC on the 10th is already the 11th in Kolkata
        changed = datetime(2024, 3, 10, 20, 0, tzinfo=timezone.utc)
        kolkata = ZoneInfo("Asia/Kolkata")
        assert to_day(changed, kolkata) == date(2024, 3, 11)
        assert compute_due_date("paid", "Monthly", changed, tz=kolkata) == date(2024, 4, 11)

    def test_due_date_never_before_start(self):
        start = date(2024, 1, 1)
        for offset in range(0, 366, 7):
            changed = start + timedelta(days=offset)
            for plan in ("Monthly", "6-Month", "Yearly"):
                assert compute_due_date("paid", plan, changed) > changed


class TestHasLapsed:

    def test_monthly_lapsed_after_clamped_due_date(self):
        assert has_lapsed("paid", "Monthly Plan", date(2024, 1, 31), date(2024, 3, 2)) is True

    def test_due_today_is_not_lapsed(self):
        assert has_lapsed("Free", "Free Trial", date(2024, 5, 1), date(2024, 5, 8)) is False

    def test_day_after_due_is_lapsed(self):
        assert has_lapsed("Free", "Free Trial", date(2024, 5, 1), date(2024, 5, 9)) is True

    def test_pending_never_lapses(self):
        assert has_lapsed("pending", "Yearly", date(2000, 1, 1), date(2024, 1, 1)) is False

    def test_unknown_plan_never_lapses(self):
        assert has_lapsed("paid", "Lifetime", date(2000, 1, 1), date(2024, 1, 1)) is False

    def test_lapse_is_monotonic(self):
        changed = date(2024, 1, 15)
        first_lapsed = date(2024, 2, 16)
        for extra in range(0, 400, 13):
            assert has_lapsed("paid", "Monthly", changed, first_lapsed + timedelta(days=extra))


class TestReminders:

    def test_six_month_reminder_fires_two_days_before(self):
        assert is_reminder_due("6-Month Plan", date(2024, 1, 1), date(2024, 6, 29)) is True

    @pytest.mark.parametrize("today", [date(2024, 6, 28), date(2024, 6, 30), date(2024, 7, 1)])
    def test_six_month_reminder_exact_day_only(self, today):
        assert is_reminder_due("6-Month Plan", date(2024, 1, 1), today) is False

    def test_custom_lead_days(self):
        assert is_reminder_due("Monthly", date(2024, 3, 1), date(2024, 3, 25), lead_days=7)

    def test_unknown_plan_never_reminded(self):
        assert is_reminder_due("Lifetime", date(2024, 1, 1), date(2024, 1, 1)) is False

    def test_days_until_due(self):
        assert days_until_due("Monthly", date(2024, 3, 1), date(2024, 3, 28)) == 4
        assert days_until_due("Monthly", date(2024, 3, 1), date(2024, 4, 3)) == -2
        assert days_until_due("Free Trial", date(2024, 3, 1), date(2024, 3, 2)) is None

    def test_catch_up_window(self):
        changed = date(2024, 3, 1)  # due 2024-04-01
        assert is_within_reminder_window("Monthly", changed, date(2024, 3, 30))
        assert is_within_reminder_window("Monthly", changed, date(2024, 3, 31))
        assert not is_within_reminder_window("Monthly", changed, date(2024, 3, 29))
        assert not is_within_reminder_window("Monthly", changed, date(2024, 4, 1))


class TestValidityWindow:

    def test_window_matches_due_date(self):
        start, end = validity_window("Yearly", date(2024, 6, 15))
        assert start == date(2024, 6, 15)
        assert end == date(2025, 6, 15)

    def test_no_window_for_unknown_plan(self):
        assert validity_window("Lifetime", date(2024, 6, 15)) is None
