"""Business logic services for Fleet Notifications."""

from .channels import (
    EmailChannel,
    InAppChannel,
    NotificationChannel,
    PushChannel,
    SmsChannel,
)
from .invoice_events import InvoiceNotifier
from .mail import LogMailTransport, MailTransport, SmtpMailTransport
from .notification_scheduler import NotificationScheduler, SweepResult
from .notification_service import (
    NotificationError,
    NotificationNotFoundError,
    NotificationService,
    NotificationStats,
    TenantMismatchError,
    build_notification_service,
)
from .recipients import Customer, Driver, User
from .retry_policy import RetryPolicy
from .sms import (
    LogSmsProvider,
    SmsService,
    TextLocalSmsProvider,
    TwilioSmsProvider,
)
from .template_renderer import TemplateRenderer

__all__ = [
    # Notification service
    "NotificationService",
    "NotificationStats",
    "NotificationError",
    "NotificationNotFoundError",
    "TenantMismatchError",
    "build_notification_service",
    # Scheduling
    "NotificationScheduler",
    "SweepResult",
    "RetryPolicy",
    # Invoice events
    "InvoiceNotifier",
    # Channels
    "NotificationChannel",
    "EmailChannel",
    "SmsChannel",
    "PushChannel",
    "InAppChannel",
    # Transports
    "MailTransport",
    "SmtpMailTransport",
    "LogMailTransport",
    "SmsService",
    "TwilioSmsProvider",
    "TextLocalSmsProvider",
    "LogSmsProvider",
    # Recipients
    "Customer",
    "Driver",
    "User",
    "TemplateRenderer",
]
