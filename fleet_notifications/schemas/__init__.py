"""Fleet Notifications API Schemas.

Schemas are organized by domain:
- base: Common configuration and error responses
- notifications: Inbox listings, single notifications, statistics, preferences
"""

from .base import (
    BaseSchema,
    ErrorDetail,
    ErrorResponse,
    TimestampMixin,
)
from .notifications import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationPreferenceResponse,
    NotificationPreferenceUpdate,
    NotificationResponse,
    NotificationStatsResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "ErrorDetail",
    "ErrorResponse",
    "TimestampMixin",
    # Notifications
    "MarkAllReadResponse",
    "NotificationListResponse",
    "NotificationPreferenceResponse",
    "NotificationPreferenceUpdate",
    "NotificationResponse",
    "NotificationStatsResponse",
]
