"""
Email delivery.

``EmailSender.send`` never raises: delivery problems are logged and reported
as ``False`` so that a failed email never fails the operation that triggered it.
``notify`` additionally records every message in the notifications outbox.
"""

import asyncio
import smtplib
from email.message import EmailMessage
from typing import Optional

from loguru import logger

from projectflow_api.settings import Settings
from projectflow_api.workspace.enums import NotificationType


class EmailSender:
    """SMTP sender configured from settings."""

    def __init__(self, settings: Settings):
        self.host = settings.smtp_host
        self.port = settings.smtp_port
        self.username = settings.smtp_username
        self.password = settings.smtp_password
        self.use_tls = settings.smtp_use_tls
        self.from_email = settings.notification_from_email

    @property
    def configured(self) -> bool:
        return bool(self.host and self.from_email)

    def _deliver(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.from_email
        message["To"] = to
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=10) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)

    async def send(self, to: str, subject: str, body: str) -> bool:
        """
        Send one plain-text email.

        Returns:
            True when the SMTP server accepted the message
        """
        if not self.configured:
            logger.warning("SMTP not configured, email not sent", recipient=to, subject=subject)
            return False
        try:
            await asyncio.to_thread(self._deliver, to, subject, body)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email: {e}", recipient=to, subject=subject)
            return False
        logger.info("Email sent", recipient=to, subject=subject)
        return True


async def notify(
    store,
    email_sender,
    notification_type: NotificationType,
    to: str,
    subject: str,
    body: str,
    company_name: Optional[str] = None,
) -> bool:
    """
    Record a notification in the outbox, send it and mark the outcome.

    Outbox failures are logged like delivery failures; nothing is raised.
    """
    notification_id = None
    try:
        notification_id = await store.notifications.create(
            notification_type=notification_type.value,
            recipient_email=to,
            subject=subject,
            body=body,
            company_name=company_name,
        )
    except Exception as e:
        logger.error(f"Failed to record notification: {e}", notification_type=notification_type.value)

    sent = await email_sender.send(to, subject, body)

    if notification_id is not None:
        try:
            if sent:
                await store.notifications.mark_sent(notification_id)
            else:
                await store.notifications.mark_failed(notification_id, "Delivery failed")
        except Exception as e:
            logger.error(f"Failed to update notification {notification_id}: {e}")
    return sent
