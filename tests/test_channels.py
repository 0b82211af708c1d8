"""Tests for delivery channels, mail transports and the retry policy."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

from fleet_notifications.core.config import Settings
from fleet_notifications.models import (
    Notification,
    NotificationCategory,
    NotificationStatus,
    NotificationType,
    RecipientType,
)
from fleet_notifications.services import mail
from fleet_notifications.services.channels import EmailChannel, SmsChannel
from fleet_notifications.services.mail import (
    EmailConfig,
    LogMailTransport,
    SmtpMailTransport,
    build_mail_transport,
)
from fleet_notifications.services.retry_policy import RetryPolicy
from fleet_notifications.services.sms import SmsService

from .conftest import RecordingMailTransport, RecordingSmsProvider


def build_notification(**overrides) -> Notification:
    values = dict(
        id=uuid4(),
        company_id=uuid4(),
        type=NotificationType.EMAIL,
        category=NotificationCategory.EMERGENCY,
        status=NotificationStatus.PENDING,
        recipient_type=RecipientType.CUSTOMER,
        recipient_id=uuid4(),
        recipient_email="dana@example.com",
        recipient_phone="5551234567",
        subject="Road closed <today>",
        message="Collections are delayed.",
        data={"action_url": "/customer/alerts/1"},
    )
    values.update(overrides)
    return Notification(**values)


class TestEmailChannel:
    async def test_wraps_message_in_html(self):
        transport = RecordingMailTransport()

        success, error = await EmailChannel(transport).send(build_notification())

        assert (success, error) == (True, None)
        sent = transport.sent[0]
        assert sent["text"] == "Collections are delayed."
        assert "Road closed &lt;today&gt;" in sent["html"]
        assert "#DC2626" in sent["html"]
        assert 'href="/customer/alerts/1"' in sent["html"]

    async def test_escapes_message_body(self):
        transport = RecordingMailTransport()

        await EmailChannel(transport).send(
            build_notification(message="Hello <script>alert(1)</script>")
        )

        sent = transport.sent[0]
        assert "<script>" not in sent["html"]
        assert "Hello &lt;script&gt;alert(1)&lt;/script&gt;" in sent["html"]
        assert sent["text"] == "Hello <script>alert(1)</script>"

    async def test_rejected_by_transport(self):
        success, error = await EmailChannel(RecordingMailTransport(succeed=False)).send(build_notification())

        assert success is False
        assert error == "Mail transport rejected the message"

    async def test_no_address(self):
        success, error = await EmailChannel(RecordingMailTransport()).send(
            build_notification(recipient_email=None)
        )
        assert (success, error) == (False, "Recipient has no email address")


class TestSmsChannel:
    async def test_provider_refusal(self):
        channel = SmsChannel(SmsService(RecordingSmsProvider(succeed=False)))

        success, error = await channel.send(build_notification(type=NotificationType.SMS))

        assert success is False
        assert error == "SMS provider did not accept the message"


class TestMailTransports:
    async def test_smtp_transport_builds_message(self, monkeypatch):
        captured = {}

        async def fake_send(message, **kwargs):
            captured["message"] = message
            captured.update(kwargs)

        monkeypatch.setattr(mail.aiosmtplib, "send", fake_send)
        transport = SmtpMailTransport(EmailConfig(smtp_host="smtp.example.com", smtp_port=2525))

        assert await transport.send_mail("dana@example.com", "Hi", "<p>Hi</p>", "Hi") is True

        message = captured["message"]
        assert message["To"] == "dana@example.com"
        assert message["Subject"] == "Hi"
        assert captured["hostname"] == "smtp.example.com"
        assert captured["port"] == 2525

    def test_driver_selection(self):
        assert isinstance(build_mail_transport(Settings(mail_driver="log")), LogMailTransport)
        assert isinstance(build_mail_transport(Settings(mail_driver="smtp")), SmtpMailTransport)


class TestRetryPolicy:
    def test_exponential_backoff(self):
        policy = RetryPolicy(backoff_seconds=60, multiplier=2.0)
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)

        assert policy.next_retry_at(0, 3, now) == now + timedelta(seconds=60)
        assert policy.next_retry_at(1, 3, now) == now + timedelta(seconds=120)
        assert policy.next_retry_at(2, 3, now) == now + timedelta(seconds=240)

    def test_budget_spent(self):
        assert RetryPolicy().next_retry_at(3, 3, datetime.now(timezone.utc)) is None

    def test_from_settings(self):
        policy = RetryPolicy.from_settings(
            Settings(notification_max_retries=5, notification_retry_backoff_seconds=30)
        )
        assert policy.max_retries == 5
        assert policy.backoff_seconds == 30
