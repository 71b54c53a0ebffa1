"""
SubDesk Backend — Email Templates
===================================

Builders returning EmailMessage objects for every email the service sends.
All interpolated customer data is HTML-escaped. Dates are rendered like
"Thu Feb 29 2024".
"""

from dataclasses import dataclass
from datetime import date
from html import escape
from typing import Iterable
from urllib.parse import quote

from subdesk.config import settings
from subdesk.services.mail_service import EmailMessage


def format_day(day: date) -> str:
    return day.strftime("%a %b %d %Y")


def _signature() -> str:
    return f"<p>Regards,<br/>{escape(settings.mail_from_name)}</p>"


def purchase_confirmation(
    to: str, name: str, invoice: str, plan: str, price: str
) -> EmailMessage:
    whatsapp_text = quote(f"Hi, my invoice number is {invoice}")
    link = f"https://wa.me/{settings.whatsapp_number}?text={whatsapp_text}"
    html = f"""
      <h3>Hi {escape(name)},</h3>
      <p>Thank you for choosing our service!</p>
      <p><strong>Invoice Number:</strong> {escape(invoice)}</p>
      <p>Plan: {escape(plan)}</p>
      <p>Price: {escape(price)}</p>
      <br />
      <p>Next step: Click the link below to send your invoice via WhatsApp:</p>
      <a href="{escape(link)}" target="_blank">Send Invoice on WhatsApp</a>
      <br/><br/>
      {_signature()}
    """
    return EmailMessage(to=to, subject="Thank you for your purchase!", html=html)


def payment_confirmed(to: str, name: str, start: date, end: date) -> EmailMessage:
    html = f"""
      <h3>Hi {escape(name)},</h3>
      <p>Thank you for your payment!</p>
      <p>Your subscription is now active and valid from
         <strong>{format_day(start)}</strong> to <strong>{format_day(end)}</strong>.</p>
      <p>Enjoy our service!</p>
    """
    return EmailMessage(to=to, subject="Your Payment is Confirmed!", html=html)


def cancellation(to: str, name: str) -> EmailMessage:
    html = f"""
      <h3>Hi {escape(name)},</h3>
      <p>We're sorry to inform you that your subscription has been cancelled.</p>
      <p>If you wish to re-subscribe in the future, please feel free to reach out to us!</p>
    """
    return EmailMessage(to=to, subject="Your Subscription is Cancelled", html=html)


def renewal_reminder(to: str, name: str, due: date) -> EmailMessage:
    html = f"""
      <h3>Hi {escape(name)},</h3>
      <p>This is a friendly reminder that your subscription is ending on
         <strong>{format_day(due)}</strong>.</p>
      <p>To avoid service interruption, please renew your plan in time.</p>
      <p>Thanks,<br/>{escape(settings.mail_from_name)}</p>
    """
    return EmailMessage(to=to, subject="Subscription Renewal Reminder", html=html)


@dataclass(frozen=True)
class UpcomingPayment:
    name: str
    email: str
    plan: str
    phone: str
    due: date


def upcoming_payments_summary(
    to: str, payments: Iterable[UpcomingPayment], lead_days: int, catch_up: bool = False
) -> EmailMessage:
    # Catch-up sweeps also list payments due sooner than lead_days
    when = "within" if catch_up else "in"
    items = "".join(
        f"<li><strong>Name:</strong> {escape(p.name)}<br/>"
        f"<strong>Email:</strong> {escape(p.email)}<br/>"
        f"<strong>Plan:</strong> {escape(p.plan)}<br/>"
        f"<strong>Due Date:</strong> {format_day(p.due)}<br/>"
        f"<strong>Phone no:</strong> {escape(p.phone)}</li><br/>"
        for p in payments
    )
    html = f"""
      <h2>Upcoming Payments {when} {lead_days} Days</h2>
      <ul>{items}</ul>
    """
    return EmailMessage(
        to=to,
        subject=f"Reminder: Upcoming Subscription Payments ({when} {lead_days} days)",
        html=html,
    )
