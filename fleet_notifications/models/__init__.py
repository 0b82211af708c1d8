"""SQLAlchemy ORM Models for Fleet Notifications."""

from .base import Base, TimestampMixin, UUIDMixin, as_utc, utcnow
from .models import (
    # Enums
    FailureKind,
    NotificationCategory,
    NotificationStatus,
    NotificationType,
    RecipientType,
    # Notifications
    CATEGORY_PREFERENCE_FLAGS,
    Notification,
    NotificationPreference,
    NotificationTemplate,
)

__all__ = [
    # Base
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "as_utc",
    "utcnow",
    # Enums
    "FailureKind",
    "NotificationCategory",
    "NotificationStatus",
    "NotificationType",
    "RecipientType",
    # Notifications
    "CATEGORY_PREFERENCE_FLAGS",
    "Notification",
    "NotificationPreference",
    "NotificationTemplate",
]
