"""
SubDesk Backend — Subscriber Service Unit Tests
=================================================

Mocked session and mail service; verifies signup duplicate handling,
lapse reconciliation, status changes and deletion.
"""

from datetime import date, datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from subdesk.exceptions import DatabaseError, NotFoundError, ValidationError
from subdesk.schemas.subscriber import SubmitUserRequest
from subdesk.services.lifecycle import PlanKind
from subdesk.services.subscriber_service import (
    SubscriberService,
    generate_invoice_number,
    stored_plan_kind,
)


def _payload(**overrides):
    data = {
        "name": "Asha Rao",
        "email": "asha@example.com",
        "phone": "+919800000001",
        "plan": "Premium Monthly Plan",
        "Price": "$10",
    }
    data.update(overrides)
    return SubmitUserRequest(**data)


class TestInvoiceNumber:

    def test_format(self):
        invoice = generate_invoice_number(now_ms=1717171717171)
        prefix, stamp, suffix = invoice.split("-")
        assert prefix == "INV"
        assert stamp == "1717171717171"
        assert 1000 <= int(suffix) <= 9999

    def test_stored_plan_kind_falls_back_to_name(self, make_subscriber):
        legacy = make_subscriber(plan="Yearly", plan_kind="garbage")
        assert stored_plan_kind(legacy) is PlanKind.YEARLY


class TestSubmit:

    def setup_method(self):
        self.service = SubscriberService()

    @pytest.mark.asyncio
    async def test_creates_subscriber_and_queues_email(self, mock_db_session, result_with):
        mock_db_session.execute.return_value = result_with(rows=[])
        background = MagicMock()

        with patch("subdesk.services.subscriber_service.mail_service") as mock_mail:
            result = await self.service.submit(mock_db_session, _payload(), background)

        assert result.invoice.startswith("INV-")
        assert result.message == "Invoice generated and email sent"

        created = mock_db_session.add.call_args[0][0]
        assert created.invoice_status == "pending"
        assert created.plan_kind == "monthly"
        assert created.updated_at == created.created_at
        mock_db_session.flush.assert_awaited_once()

        message = mock_mail.dispatch.call_args[0][0]
        assert message.to == "asha@example.com"
        assert result.invoice in message.html

    @pytest.mark.asyncio
    async def test_free_trial_starts_free(self, mock_db_session, result_with):
        mock_db_session.execute.return_value = result_with(rows=[])

        with patch("subdesk.services.subscriber_service.mail_service"):
            await self.service.submit(
                mock_db_session, _payload(plan="Free Trial", Price="0"), MagicMock()
            )

        created = mock_db_session.add.call_args[0][0]
        assert created.invoice_status == "Free"
        assert created.plan_kind == "free_trial"

    @pytest.mark.asyncio
    async def test_invoice_stamp_uses_given_clock(self, mock_db_session, result_with):
        mock_db_session.execute.return_value = result_with(rows=[])
        now = datetime(2024, 5, 31, 12, 0, tzinfo=timezone.utc)

        with patch("subdesk.services.subscriber_service.mail_service"):
            result = await self.service.submit(mock_db_session, _payload(), MagicMock(), now=now)

        assert result.invoice.split("-")[1] == str(int(now.timestamp() * 1000))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "existing, field",
        [
            ([("asha@example.com", "+919800000001")], "both"),
            ([("asha@example.com", "+10000"), ("x@example.com", "+919800000001")], "both"),
            ([("asha@example.com", "+10000")], "email"),
            ([("other@example.com", "+919800000001")], "phone"),
        ],
    )
    async def test_duplicates_rejected(self, mock_db_session, result_with, existing, field):
        rows = [MagicMock(email=e, phone=p) for e, p in existing]
        mock_db_session.execute.return_value = result_with(rows=rows)

        with patch("subdesk.services.subscriber_service.mail_service") as mock_mail:
            with pytest.raises(ValidationError) as exc_info:
                await self.service.submit(mock_db_session, _payload(), MagicMock())

        assert exc_info.value.context["field"] == field
        mock_db_session.add.assert_not_called()
        mock_mail.dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_unique_violation_race_maps_to_validation_error(
        self, mock_db_session, result_with
    ):
        mock_db_session.execute.return_value = result_with(rows=[])
        mock_db_session.flush.side_effect = IntegrityError("INSERT", {}, Exception("dup"))

        with patch("subdesk.services.subscriber_service.mail_service"):
            with pytest.raises(ValidationError) as exc_info:
                await self.service.submit(mock_db_session, _payload(), MagicMock())

        assert exc_info.value.context["field"] == "both"

    @pytest.mark.asyncio
    async def test_database_failure(self, mock_db_session):
        mock_db_session.execute.side_effect = OperationalError("SELECT", {}, Exception("down"))

        with pytest.raises(DatabaseError):
            await self.service.submit(mock_db_session, _payload(), MagicMock())


class TestReconcileLapsed:

    def setup_method(self):
        self.service = SubscriberService()

    @pytest.mark.asyncio
    async def test_demotes_only_lapsed(self, mock_db_session, result_with, make_subscriber):
        lapsed = make_subscriber(
            id=1, updated_at=datetime(2024, 1, 31, tzinfo=timezone.utc)
        )
        current = make_subscriber(
            id=2, updated_at=datetime(2024, 2, 20, tzinfo=timezone.utc)
        )
        trial_over = make_subscriber(
            id=3,
            plan="Free Trial",
            plan_kind="free_trial",
            invoice_status="Free",
            updated_at=datetime(2024, 2, 20, tzinfo=timezone.utc),
        )
        mock_db_session.execute.side_effect = [
            result_with(scalars=[lapsed, current, trial_over]),
            MagicMock(),
        ]

        ids = await self.service.reconcile_lapsed(mock_db_session, today=date(2024, 3, 2))

        assert ids == [1, 3]
        assert mock_db_session.execute.await_count == 2
        mock_db_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_nothing_lapsed_issues_no_update(
        self, mock_db_session, result_with, make_subscriber
    ):
        mock_db_session.execute.return_value = result_with(
            scalars=[make_subscriber(updated_at=datetime(2024, 3, 1, tzinfo=timezone.utc))]
        )

        ids = await self.service.reconcile_lapsed(mock_db_session, today=date(2024, 3, 2))

        assert ids == []
        assert mock_db_session.execute.await_count == 1
        mock_db_session.flush.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_list_reconciles_first(self, mock_db_session, result_with, make_subscriber):
        row = make_subscriber(invoice_status="pending")
        with patch.object(self.service, "reconcile_lapsed") as mock_reconcile:
            mock_reconcile.return_value = [1]
            mock_db_session.execute.return_value = result_with(scalars=[row])

            response = await self.service.list_subscribers(mock_db_session, today=date(2024, 3, 2))

        mock_reconcile.assert_awaited_once_with(mock_db_session, today=date(2024, 3, 2))
        assert len(response.users) == 1
        assert response.users[0].invoice_status == "pending"
        assert response.users[0].phone == row.phone


class TestUpdateStatus:

    def setup_method(self):
        self.service = SubscriberService()

    @pytest.mark.asyncio
    async def test_paid_sets_timestamp_and_sends_confirmation(
        self, mock_db_session, make_subscriber
    ):
        subscriber = make_subscriber(invoice_status="pending", reminded_for=date(2024, 1, 1))
        mock_db_session.get.return_value = subscriber
        now = datetime(2024, 1, 31, 12, 0, tzinfo=timezone.utc)

        with patch("subdesk.services.subscriber_service.mail_service") as mock_mail:
            result = await self.service.update_status(
                mock_db_session, 1, "paid", MagicMock(), now=now
            )

        assert result.message == "Status updated and email sent"
        assert subscriber.invoice_status == "paid"
        assert subscriber.updated_at == now
        assert subscriber.reminded_for is None
        message = mock_mail.dispatch.call_args[0][0]
        assert "Wed Jan 31 2024" in message.html
        assert "Thu Feb 29 2024" in message.html

    @pytest.mark.asyncio
    async def test_pending_sends_nothing(self, mock_db_session, make_subscriber):
        mock_db_session.get.return_value = make_subscriber()

        with patch("subdesk.services.subscriber_service.mail_service") as mock_mail:
            result = await self.service.update_status(mock_db_session, 1, "pending", MagicMock())

        assert result.message == "Status updated"
        mock_mail.dispatch.assert_not_called()

    @pytest.mark.asyncio
    async def test_paid_on_unknown_plan_sends_nothing(self, mock_db_session, make_subscriber):
        mock_db_session.get.return_value = make_subscriber(plan="Lifetime", plan_kind="unknown")

        with patch("subdesk.services.subscriber_service.mail_service") as mock_mail:
            result = await self.service.update_status(mock_db_session, 1, "paid", MagicMock())

        assert result.message == "Status updated"
        mock_mail.dispatch.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [None, "", "cancelled", "PAID"])
    async def test_invalid_status_rejected(self, mock_db_session, status):
        with pytest.raises(ValidationError):
            await self.service.update_status(mock_db_session, 1, status, MagicMock())
        mock_db_session.get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_subscriber(self, mock_db_session):
        mock_db_session.get.return_value = None

        with pytest.raises(NotFoundError):
            await self.service.update_status(mock_db_session, 99, "paid", MagicMock())


class TestDelete:

    @pytest.mark.asyncio
    async def test_deletes_and_queues_cancellation(self, mock_db_session, make_subscriber):
        subscriber = make_subscriber()
        mock_db_session.get.return_value = subscriber

        with patch("subdesk.services.subscriber_service.mail_service") as mock_mail:
            result = await SubscriberService().delete_subscriber(mock_db_session, 1, MagicMock())

        assert result.message == "User deleted and cancellation email sent"
        mock_db_session.delete.assert_awaited_once_with(subscriber)
        assert mock_mail.dispatch.call_args[0][0].subject == "Your Subscription is Cancelled"

    @pytest.mark.asyncio
    async def test_missing_subscriber(self, mock_db_session):
        mock_db_session.get.return_value = None

        with pytest.raises(NotFoundError):
            await SubscriberService().delete_subscriber(mock_db_session, 99, MagicMock())
