"""
SubDesk Backend — Mail Service and Template Tests
===================================================

smtplib is patched; nothing leaves the process.
"""

import smtplib
from datetime import date
from unittest.mock import MagicMock, patch

import pytest

from subdesk.exceptions import MailDeliveryError
from subdesk.services import email_templates
from subdesk.services.email_templates import UpcomingPayment
from subdesk.services.mail_service import EmailMessage, MailService


def _mailer(**overrides):
    options = {
        "host": "smtp.test",
        "port": 587,
        "username": "bot",
        "password": "secret",
        "use_tls": True,
        "from_name": "SubDesk",
        "from_address": "billing@subdesk.test",
    }
    options.update(overrides)
    return MailService(**options)


MESSAGE = EmailMessage(to="asha@example.com", subject="Hello", html="<p>hi</p>")


class TestMailService:

    @pytest.mark.asyncio
    async def test_send_uses_starttls_and_login(self):
        with patch("subdesk.services.mail_service.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            await _mailer().send(MESSAGE)

        smtp_cls.assert_called_once()
        assert smtp_cls.call_args[0][:2] == ("smtp.test", 587)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("bot", "secret")
        sent = server.send_message.call_args[0][0]
        assert sent["To"] == "asha@example.com"
        assert "billing@subdesk.test" in sent["From"]

    @pytest.mark.asyncio
    async def test_smtp_failure_raises(self):
        with patch("subdesk.services.mail_service.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            server.send_message.side_effect = smtplib.SMTPRecipientsRefused({})
            with pytest.raises(MailDeliveryError):
                await _mailer().send(MESSAGE)

    @pytest.mark.asyncio
    async def test_unconfigured_transport_raises(self):
        with pytest.raises(MailDeliveryError, match="not configured"):
            await _mailer(host="").send(MESSAGE)

    @pytest.mark.asyncio
    async def test_send_quietly_swallows_failure(self):
        assert await _mailer(host="").send_quietly(MESSAGE) is False

    def test_dispatch_queues_background_task(self):
        mailer = _mailer()
        background = MagicMock()
        mailer.dispatch(MESSAGE, background)
        background.add_task.assert_called_once_with(mailer.send_quietly, MESSAGE)


class TestTemplates:

    def test_purchase_confirmation_links_whatsapp(self):
        message = email_templates.purchase_confirmation(
            to="a@example.com", name="Asha", invoice="INV-1-2345", plan="Yearly", price="$99"
        )
        assert message.subject == "Thank you for your purchase!"
        assert "INV-1-2345" in message.html
        assert "https://wa.me/" in message.html
        assert "INV-1-2345" in message.html.split("wa.me/")[1]

    def test_customer_values_are_escaped(self):
        message = email_templates.cancellation(to="a@example.com", name="<script>x</script>")
        assert "<script>" not in message.html
        assert "&lt;script&gt;" in message.html

    def test_payment_confirmed_dates(self):
        message = email_templates.payment_confirmed(
            to="a@example.com", name="Asha", start=date(2024, 1, 31), end=date(2024, 2, 29)
        )
        assert "Wed Jan 31 2024" in message.html
        assert "Thu Feb 29 2024" in message.html

    def test_operator_summary_lists_every_payment(self):
        payments = [
            UpcomingPayment("Asha", "a@example.com", "Monthly", "+91 1", date(2024, 7, 1)),
            UpcomingPayment("Ravi", "r@example.com", "Yearly", "+91 2", date(2024, 7, 1)),
        ]
        message = email_templates.upcoming_payments_summary(
            to="ops@example.com", payments=payments, lead_days=2
        )
        assert message.subject == "Reminder: Upcoming Subscription Payments (in 2 days)"
        assert message.html.count("<li>") == 2

    def test_catch_up_summary_says_within(self):
        payments = [UpcomingPayment("Asha", "a@example.com", "Monthly", "+91 1", date(2024, 7, 1))]
        message = email_templates.upcoming_payments_summary(
            to="ops@example.com", payments=payments, lead_days=2, catch_up=True
        )
        assert message.subject == "Reminder: Upcoming Subscription Payments (within 2 days)"
        assert "Upcoming Payments within 2 Days" in message.html
