"""SQLAlchemy ORM Models for Fleet Notifications.

Notifications, the templates they are rendered from, and per-recipient
delivery preferences. Business entities (customers, drivers, invoices,
work orders) live in the host application and are referenced by id only.
"""

from datetime import datetime
from enum import Enum as PyEnum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Enum,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, JSONType, TimestampMixin, UUIDMixin


def _enum_column(enum_cls: type[PyEnum], name: str) -> Enum:
    return Enum(enum_cls, name=name, values_callable=lambda x: [e.value for e in x])


# =============================================================================
# ENUMS
# =============================================================================


class NotificationType(str, PyEnum):
    """Delivery channel of a notification."""
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    IN_APP = "in_app"


class NotificationCategory(str, PyEnum):
    """Domain classification used for preferences and priority."""
    SERVICE_REMINDER = "service_reminder"
    PAYMENT_DUE = "payment_due"
    EMERGENCY = "emergency"
    DISPATCH = "dispatch"
    MARKETING = "marketing"
    SYSTEM_UPDATE = "system_update"
    INVOICE = "invoice"
    QUOTE = "quote"
    MAINTENANCE = "maintenance"
    DELIVERY = "delivery"
    PICKUP = "pickup"

    @property
    def label(self) -> str:
        return _CATEGORY_LABELS[self]

    @property
    def priority(self) -> int:
        """Lower is more urgent."""
        return _CATEGORY_PRIORITIES[self]


_CATEGORY_LABELS = {
    NotificationCategory.SERVICE_REMINDER: "Service Reminder",
    NotificationCategory.PAYMENT_DUE: "Payment Due",
    NotificationCategory.EMERGENCY: "Emergency Alert",
    NotificationCategory.DISPATCH: "Dispatch Notification",
    NotificationCategory.MARKETING: "Marketing Message",
    NotificationCategory.SYSTEM_UPDATE: "System Update",
    NotificationCategory.INVOICE: "Invoice",
    NotificationCategory.QUOTE: "Quote",
    NotificationCategory.MAINTENANCE: "Maintenance",
    NotificationCategory.DELIVERY: "Delivery",
    NotificationCategory.PICKUP: "Pickup",
}

_CATEGORY_PRIORITIES = {
    NotificationCategory.EMERGENCY: 1,
    NotificationCategory.DISPATCH: 2,
    NotificationCategory.PAYMENT_DUE: 3,
    NotificationCategory.SERVICE_REMINDER: 4,
    NotificationCategory.MAINTENANCE: 5,
    NotificationCategory.DELIVERY: 6,
    NotificationCategory.PICKUP: 6,
    NotificationCategory.INVOICE: 7,
    NotificationCategory.QUOTE: 8,
    NotificationCategory.SYSTEM_UPDATE: 9,
    NotificationCategory.MARKETING: 10,
}


class NotificationStatus(str, PyEnum):
    """Status of notification delivery.

    DELIVERED, BOUNCED and CANCELLED are set by receipt callbacks or
    administrators, never by the delivery pipeline itself.
    """
    PENDING = "pending"
    SCHEDULED = "scheduled"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    BOUNCED = "bounced"
    CANCELLED = "cancelled"


class RecipientType(str, PyEnum):
    """Kind of entity a notification targets."""
    CUSTOMER = "customer"
    DRIVER = "driver"
    USER = "user"


class FailureKind(str, PyEnum):
    """Why the last delivery attempt failed."""
    VALIDATION = "validation"  # Missing contact info for the channel
    PREFERENCE = "preference"  # Recipient opted out, retrying cannot help
    TRANSPORT = "transport"  # Provider/network error, retryable


# =============================================================================
# NOTIFICATIONS
# =============================================================================


class Notification(Base, UUIDMixin, TimestampMixin):
    """One notification and the state of its delivery."""

    __tablename__ = "notifications"

    company_id: Mapped[UUID] = mapped_column(nullable=False)
    type: Mapped[NotificationType] = mapped_column(
        _enum_column(NotificationType, "notification_type"), nullable=False
    )
    category: Mapped[NotificationCategory] = mapped_column(
        _enum_column(NotificationCategory, "notification_category"), nullable=False
    )
    priority: Mapped[int] = mapped_column(
        Integer, nullable=False, default=10,
        comment="Denormalized category priority, lower is more urgent"
    )
    status: Mapped[NotificationStatus] = mapped_column(
        _enum_column(NotificationStatus, "notification_status"),
        default=NotificationStatus.PENDING,
        nullable=False,
    )

    # Recipient, resolved once at creation time
    recipient_type: Mapped[RecipientType] = mapped_column(
        _enum_column(RecipientType, "recipient_type"), nullable=False
    )
    recipient_id: Mapped[UUID] = mapped_column(nullable=False)
    recipient_email: Mapped[str | None] = mapped_column(String(255))
    recipient_phone: Mapped[str | None] = mapped_column(String(50))

    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict] = mapped_column(JSONType, default=dict)

    scheduled_at: Mapped[datetime | None] = mapped_column()
    sent_at: Mapped[datetime | None] = mapped_column()
    read_at: Mapped[datetime | None] = mapped_column()
    last_attempt_at: Mapped[datetime | None] = mapped_column()

    # Retry bookkeeping
    retry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    max_retries: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    next_retry_at: Mapped[datetime | None] = mapped_column()
    failure_reason: Mapped[str | None] = mapped_column(Text)
    failure_kind: Mapped[FailureKind | None] = mapped_column(
        _enum_column(FailureKind, "notification_failure_kind"), nullable=True
    )
    lock_version: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False,
        comment="Bumped by every claim so concurrent workers cannot both send"
    )

    __table_args__ = (
        Index("idx_notifications_company", "company_id", "created_at"),
        Index("idx_notifications_recipient", "recipient_type", "recipient_id"),
        Index("idx_notifications_due", "status", "priority", "scheduled_at"),
        Index("idx_notifications_retry", "status", "next_retry_at"),
    )

    @property
    def is_read(self) -> bool:
        return self.read_at is not None

    @property
    def can_retry(self) -> bool:
        return (
            self.status == NotificationStatus.FAILED
            and self.failure_kind != FailureKind.PREFERENCE
            and self.retry_count < self.max_retries
        )


class NotificationTemplate(Base, UUIDMixin, TimestampMixin):
    """Reusable subject/body pattern with {{placeholder}} tokens.

    Templates without a company are system templates shared by every tenant.
    """

    __tablename__ = "notification_templates"

    company_id: Mapped[UUID | None] = mapped_column(nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[NotificationType] = mapped_column(
        _enum_column(NotificationType, "notification_type"), nullable=False
    )
    category: Mapped[NotificationCategory] = mapped_column(
        _enum_column(NotificationCategory, "notification_category"), nullable=False
    )
    subject_template: Mapped[str | None] = mapped_column(String(500))
    body_template: Mapped[str | None] = mapped_column(Text)
    available_variables: Mapped[list] = mapped_column(JSONType, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint("company_id", "slug"),
        Index("idx_notification_templates_slug", "slug"),
    )


class NotificationPreference(Base, UUIDMixin, TimestampMixin):
    """Which channels and categories a recipient wants to receive."""

    __tablename__ = "notification_preferences"

    company_id: Mapped[UUID] = mapped_column(nullable=False)
    recipient_type: Mapped[RecipientType] = mapped_column(
        _enum_column(RecipientType, "recipient_type"), nullable=False
    )
    recipient_id: Mapped[UUID] = mapped_column(nullable=False)

    # Channels
    email_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sms_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    push_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Categories
    service_reminders: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    payment_reminders: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    emergency_alerts: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    dispatch_notifications: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    marketing_messages: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    system_updates: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint("company_id", "recipient_type", "recipient_id"),
    )

    def allows_type(self, notification_type: NotificationType) -> bool:
        if notification_type == NotificationType.EMAIL:
            return self.email_enabled
        if notification_type == NotificationType.SMS:
            return self.sms_enabled
        if notification_type == NotificationType.PUSH:
            return self.push_enabled
        return True

    def allows_category(self, category: NotificationCategory) -> bool:
        flag = CATEGORY_PREFERENCE_FLAGS.get(category)
        if flag is None:
            return True
        return getattr(self, flag)


# Categories without an entry cannot be switched off by the recipient
CATEGORY_PREFERENCE_FLAGS = {
    NotificationCategory.SERVICE_REMINDER: "service_reminders",
    NotificationCategory.PAYMENT_DUE: "payment_reminders",
    NotificationCategory.EMERGENCY: "emergency_alerts",
    NotificationCategory.DISPATCH: "dispatch_notifications",
    NotificationCategory.MARKETING: "marketing_messages",
    NotificationCategory.SYSTEM_UPDATE: "system_updates",
}
