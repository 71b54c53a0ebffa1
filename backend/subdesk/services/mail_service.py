"""
SubDesk Backend — Mail Service
================================

What:  Sends HTML emails over SMTP.
Why:   Every customer-facing state change (signup, payment, cancellation,
       renewal reminder) ends in an email; the operator gets a daily summary.
How:   smtplib in a worker thread (asyncio.to_thread) so a slow SMTP server
       never blocks the event loop. STARTTLS and login when configured.

Delivery contract:
    send()          raises MailDeliveryError, used where the caller counts outcomes
    send_quietly()  logs and returns False, never raises
    dispatch()      queues send_quietly as a FastAPI background task, so the
                    HTTP response does not wait for SMTP

    Sends are never retried. A failure for one recipient never affects
    another, nor the HTTP response that triggered it.
"""

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Optional

from fastapi import BackgroundTasks

from subdesk.config import settings
from subdesk.exceptions import MailDeliveryError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str


class MailService:
    """SMTP sender configured from settings at construction time."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: Optional[bool] = None,
        from_name: Optional[str] = None,
        from_address: Optional[str] = None,
    ):
        self.host = host if host is not None else settings.smtp_host
        self.port = port if port is not None else settings.smtp_port
        self.username = username if username is not None else settings.smtp_username
        self.password = password if password is not None else settings.smtp_password
        self.use_tls = use_tls if use_tls is not None else settings.smtp_use_tls
        self.from_name = from_name if from_name is not None else settings.mail_from_name
        self.from_address = (
            from_address if from_address is not None else settings.sender_address
        )

    def _build(self, message: EmailMessage) -> MIMEMultipart:
        mime = MIMEMultipart("alternative")
        mime["Subject"] = message.subject
        mime["From"] = formataddr((self.from_name, self.from_address))
        mime["To"] = message.to
        mime.attach(MIMEText(message.html, "html", "utf-8"))
        return mime

    def _send_sync(self, message: EmailMessage) -> None:
        mime = self._build(message)
        with smtplib.SMTP(self.host, self.port, timeout=settings.smtp_timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(mime)

    async def send(self, message: EmailMessage) -> None:
        """
        Raises:
            MailDeliveryError: configuration missing or SMTP exchange failed.
        """
        if not self.host or not self.from_address:
            raise MailDeliveryError(
                message="Mail transport is not configured",
                context={"to": message.to},
            )
        try:
            await asyncio.to_thread(self._send_sync, message)
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(
                context={"to": message.to, "error_type": type(e).__name__, "error": str(e)},
            ) from e
        logger.info("Email sent to %s: %s", message.to, message.subject)

    async def send_quietly(self, message: EmailMessage) -> bool:
        """Fire-and-forget variant: True on success, False (logged) on failure."""
        try:
            await self.send(message)
            return True
        except MailDeliveryError as e:
            logger.error("Email sending error to %s: %s | %s", message.to, e.message, e.context)
            return False

    def dispatch(self, message: EmailMessage, background_tasks: BackgroundTasks) -> None:
        """Queue delivery after the response has been sent."""
        background_tasks.add_task(self.send_quietly, message)


# ── Singleton Instance ────────────────────────────────────────────────────
mail_service = MailService()
