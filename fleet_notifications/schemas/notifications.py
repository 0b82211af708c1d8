"""Notification inbox and statistics schemas."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from ..models import (
    FailureKind,
    NotificationCategory,
    NotificationStatus,
    NotificationType,
    RecipientType,
)
from .base import BaseSchema, TimestampMixin


class NotificationResponse(BaseSchema, TimestampMixin):
    """A single notification as shown in a recipient's inbox."""

    id: UUID
    company_id: UUID
    type: NotificationType
    category: NotificationCategory
    status: NotificationStatus
    recipient_type: RecipientType
    recipient_id: UUID
    subject: str
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    scheduled_at: datetime | None = None
    sent_at: datetime | None = None
    read_at: datetime | None = None
    retry_count: int = 0
    max_retries: int = 0
    failure_reason: str | None = None
    failure_kind: FailureKind | None = None
    is_read: bool = False


class NotificationListResponse(BaseSchema):
    notifications: list[NotificationResponse]
    unread_count: int


class NotificationStatsResponse(BaseSchema):
    """Counts for the company dashboard."""

    pending: int
    scheduled: int
    sent_today: int
    failed_today: int


class MarkAllReadResponse(BaseSchema):
    message: str
    updated: int


# =============================================================================
# PREFERENCES
# =============================================================================


class NotificationPreferenceResponse(BaseSchema):
    """Channels and categories a recipient receives."""

    recipient_type: RecipientType
    recipient_id: UUID
    email_enabled: bool
    sms_enabled: bool
    push_enabled: bool
    service_reminders: bool
    payment_reminders: bool
    emergency_alerts: bool
    dispatch_notifications: bool
    marketing_messages: bool
    system_updates: bool


class NotificationPreferenceUpdate(BaseSchema):
    """Partial update; omitted flags keep their current value."""

    email_enabled: bool | None = None
    sms_enabled: bool | None = None
    push_enabled: bool | None = None
    service_reminders: bool | None = None
    payment_reminders: bool | None = None
    emergency_alerts: bool | None = None
    dispatch_notifications: bool | None = None
    marketing_messages: bool | None = None
    system_updates: bool | None = None
