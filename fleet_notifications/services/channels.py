"""
Notification channels: one sender per delivery mechanism.

Each channel takes an already rendered notification and reports
``(success, error_message)``. Channels may raise on unexpected errors;
the orchestrator converts those into failed deliveries.
"""

import html
import logging
from abc import ABC, abstractmethod

from ..models import Notification, NotificationCategory
from .mail import MailTransport
from .sms import SmsService


logger = logging.getLogger(__name__)


class NotificationChannel(ABC):
    """Abstract base for notification delivery channels."""

    @abstractmethod
    async def send(self, notification: Notification) -> tuple[bool, str | None]:
        """
        Send a notification.

        Returns:
            (success, error_message)
        """
        pass


class EmailChannel(NotificationChannel):
    """Email notification channel."""

    def __init__(self, transport: MailTransport):
        self._transport = transport

    async def send(self, notification: Notification) -> tuple[bool, str | None]:
        if not notification.recipient_email:
            return False, "Recipient has no email address"

        html_body = self._build_email_html(notification)
        sent = await self._transport.send_mail(
            to_address=notification.recipient_email,
            subject=notification.subject,
            html_body=html_body,
            text_body=notification.message,
        )
        if not sent:
            return False, "Mail transport rejected the message"

        logger.info(
            f"[EMAIL] Notification {notification.id} sent to {notification.recipient_email}, "
            f"Subject: {notification.subject}"
        )
        return True, None

    def _build_email_html(self, notification: Notification) -> str:
        """Build HTML email body around the rendered message."""
        data = notification.data or {}
        action_url = data.get("action_url") or data.get("view_url")

        if notification.category == NotificationCategory.EMERGENCY:
            accent_color = "#DC2626"  # Red
        elif notification.category in (
            NotificationCategory.PAYMENT_DUE,
            NotificationCategory.INVOICE,
        ):
            accent_color = "#F59E0B"  # Amber
        else:
            accent_color = "#5C2C86"

        action_button = ""
        if action_url:
            action_button = f"""
        <div style="margin-top: 24px;">
            <a href="{html.escape(str(action_url), quote=True)}" style="display: inline-block; background-color: {accent_color};
                              color: white; padding: 12px 24px; text-decoration: none; border-radius: 6px;">
                View Details
            </a>
        </div>
"""

        return f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{html.escape(notification.subject)}</title>
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif;
             line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">

    <div style="border-bottom: 2px solid {accent_color}; padding-bottom: 16px; margin-bottom: 24px;">
        <h1 style="margin: 0; font-size: 18px;">{html.escape(notification.subject)}</h1>
    </div>

    <div style="font-size: 16px; line-height: 1.8; white-space: pre-wrap;">{html.escape(notification.message)}</div>
{action_button}
    <hr style="border: none; border-top: 1px solid #E0E0E0; margin: 24px 0;">

    <p style="color: #9CA3AF; font-size: 12px;">
        You are receiving this {notification.category.label.lower()} notification because of your account with us.
    </p>
</body>
</html>
"""


class SmsChannel(NotificationChannel):
    """SMS notification channel."""

    def __init__(self, sms_service: SmsService):
        self._sms_service = sms_service

    async def send(self, notification: Notification) -> tuple[bool, str | None]:
        if not notification.recipient_phone:
            return False, "Recipient has no phone number"

        if await self._sms_service.send(notification.recipient_phone, notification.message):
            return True, None
        return False, "SMS provider did not accept the message"


class PushChannel(NotificationChannel):
    """Push notifications are not available yet; every send fails."""

    async def send(self, notification: Notification) -> tuple[bool, str | None]:
        return False, "Push notifications are not implemented"


class InAppChannel(NotificationChannel):
    """The stored notification is the delivery; the dashboard reads it later."""

    async def send(self, notification: Notification) -> tuple[bool, str | None]:
        return True, None
