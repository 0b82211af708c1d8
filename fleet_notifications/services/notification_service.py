"""
Notification Service: creates notifications and delivers them.

This module is responsible for:
1. Creating notification records, directly or from templates
2. Deciding whether a notification may be sent now
3. Checking recipient preferences and contact details
4. Delivering through the channel matching the notification type
5. Recording the outcome on the notification

Every operation takes the owning company id explicitly. ``send`` never
raises: channel errors become a FAILED status with a reason.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence
from uuid import UUID

import httpx
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from ..core.config import Settings, get_settings
from ..models import (
    FailureKind,
    Notification,
    NotificationCategory,
    NotificationPreference,
    NotificationStatus,
    NotificationTemplate,
    NotificationType,
    RecipientType,
    as_utc,
    utcnow,
)
from .business import EmergencyService, Invoice, Payment, WorkOrder, format_money
from .channels import (
    EmailChannel,
    InAppChannel,
    NotificationChannel,
    PushChannel,
    SmsChannel,
)
from .mail import LogMailTransport, build_mail_transport
from .recipients import Driver, Recipient, resolve_recipient
from .retry_policy import DEFAULT_RETRY_POLICY, RetryPolicy
from .sms import LogSmsProvider, SmsService, build_sms_provider
from .template_renderer import TemplateRenderer


logger = logging.getLogger(__name__)


PREFERENCE_DISABLED_REASON = "Recipient has disabled this type of notification"
DEFAULT_FAILURE_REASON = "Failed to send notification"

SENDABLE_STATUSES = (NotificationStatus.PENDING, NotificationStatus.SCHEDULED)

# Flags of a fresh preference row
PREFERENCE_DEFAULTS = {
    "email_enabled": True,
    "sms_enabled": True,
    "push_enabled": False,
    "service_reminders": True,
    "payment_reminders": True,
    "emergency_alerts": True,
    "dispatch_notifications": True,
    "marketing_messages": False,
    "system_updates": True,
}


# =============================================================================
# EXCEPTIONS
# =============================================================================


class NotificationError(Exception):
    """Base exception for notification operations."""
    pass


class TemplateNotFoundError(NotificationError):
    """No active template with the requested slug."""
    pass


class TenantMismatchError(NotificationError):
    """Recipient belongs to a different company than the caller."""
    pass


class NotificationNotFoundError(NotificationError):
    """Notification does not exist in the company."""
    pass


# =============================================================================
# DATA TRANSFER OBJECTS
# =============================================================================


@dataclass
class NotificationStats:
    """Counters for the notifications dashboard."""
    pending: int
    scheduled: int
    sent_today: int
    failed_today: int


# =============================================================================
# NOTIFICATION SERVICE
# =============================================================================


class NotificationService:
    """
    Single entry point for creating and delivering notifications.

    Delivery flow for ``send``:
    1. Skip anything that is not pending, or scheduled and due
    2. Claim the record so no other worker sends it concurrently
    3. Check recipient preferences and contact details
    4. Deliver through the channel for the notification type
    5. Mark SENT or FAILED (retries are left to the scheduler)
    """

    def __init__(
        self,
        session: AsyncSession,
        channels: Mapping[NotificationType, NotificationChannel] | None = None,
        renderer: TemplateRenderer | None = None,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    ):
        self._session = session
        self._channels: dict[NotificationType, NotificationChannel] = {
            NotificationType.EMAIL: EmailChannel(LogMailTransport()),
            NotificationType.SMS: SmsChannel(SmsService(LogSmsProvider())),
            NotificationType.PUSH: PushChannel(),
            NotificationType.IN_APP: InAppChannel(),
        }
        if channels:
            self._channels.update(channels)
        self._renderer = renderer or TemplateRenderer()
        self._retry_policy = retry_policy

    @property
    def session(self) -> AsyncSession:
        return self._session

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    # =========================================================================
    # CREATION
    # =========================================================================

    async def create_notification(
        self,
        company_id: UUID,
        recipient: Recipient,
        type: NotificationType,
        category: NotificationCategory,
        subject: str,
        message: str,
        data: Mapping[str, Any] | None = None,
        scheduled_at: datetime | None = None,
    ) -> Notification:
        """Store a notification; SCHEDULED when a send time is given, else PENDING."""
        resolved = resolve_recipient(recipient)
        if resolved.company_id != company_id:
            raise TenantMismatchError(
                f"{resolved.type.value} {resolved.id} does not belong to company {company_id}"
            )

        notification = Notification(
            company_id=company_id,
            type=type,
            category=category,
            priority=category.priority,
            status=NotificationStatus.SCHEDULED if scheduled_at else NotificationStatus.PENDING,
            recipient_type=resolved.type,
            recipient_id=resolved.id,
            recipient_email=resolved.email,
            recipient_phone=resolved.phone,
            subject=subject,
            message=message,
            data=dict(data or {}),
            scheduled_at=scheduled_at,
            retry_count=0,
            max_retries=self._retry_policy.max_retries,
            lock_version=0,
        )
        self._session.add(notification)
        await self._session.flush()

        return notification

    async def get_active_template(
        self,
        company_id: UUID,
        slug: str,
    ) -> NotificationTemplate | None:
        """The company's own active template for a slug, else the system one."""
        query = (
            select(NotificationTemplate)
            .where(
                NotificationTemplate.slug == slug,
                NotificationTemplate.is_active.is_(True),
                or_(
                    NotificationTemplate.company_id == company_id,
                    NotificationTemplate.company_id.is_(None),
                ),
            )
            .order_by(NotificationTemplate.company_id.is_(None))
            .limit(1)
        )
        result = await self._session.execute(query)
        return result.scalar_one_or_none()

    async def send_from_template(
        self,
        company_id: UUID,
        template_slug: str,
        recipient: Recipient,
        data: Mapping[str, Any] | None = None,
        type: NotificationType | None = None,
        scheduled_at: datetime | None = None,
    ) -> Notification | None:
        """
        Render a template into a notification and send it unless scheduled.

        Returns None when no active template exists; callers treat that as
        a no-op.
        """
        try:
            template = await self.get_active_template(company_id, template_slug)
            if template is None:
                raise TemplateNotFoundError(f"Notification template not found: slug={template_slug}")

            rendered = self._renderer.render(template, data)

            notification = await self.create_notification(
                company_id=company_id,
                recipient=recipient,
                type=type or template.type,
                category=template.category,
                subject=rendered.subject,
                message=rendered.body,
                data=data,
                scheduled_at=scheduled_at,
            )
        except TemplateNotFoundError as e:
            logger.warning(str(e))
            return None
        except TenantMismatchError:
            raise
        except Exception as e:
            logger.error(
                f"Failed to send notification from template: "
                f"template={template_slug}, error={e}"
            )
            return None

        if scheduled_at is None:
            await self.send(notification)

        return notification

    # =========================================================================
    # DELIVERY
    # =========================================================================

    def should_send_now(
        self,
        notification: Notification,
        now: datetime | None = None,
    ) -> bool:
        if notification.status not in SENDABLE_STATUSES:
            return False

        scheduled_at = as_utc(notification.scheduled_at)
        return scheduled_at is None or scheduled_at <= (now or utcnow())

    async def send(
        self,
        notification: Notification,
        now: datetime | None = None,
    ) -> bool:
        """
        Attempt delivery. True only when the channel reports success.

        Each attempt runs in a SAVEPOINT. A database error rolls back this
        attempt only, so the surrounding transaction (and any sweep using it)
        stays usable.
        """
        now = now or utcnow()

        if not self.should_send_now(notification, now):
            return False

        notification_id = notification.id
        category = notification.category
        delivered = False
        try:
            async with self._session.begin_nested():
                if not await self._claim(notification, now):
                    logger.info(f"Notification {notification_id} already claimed by another worker")
                    return False

                if not await self.check_recipient_preferences(notification):
                    await self._mark_failed(
                        notification, PREFERENCE_DISABLED_REASON, FailureKind.PREFERENCE, now
                    )
                    return False

                contact_error = self._missing_contact(notification)
                if contact_error:
                    await self._mark_failed(notification, contact_error, FailureKind.VALIDATION, now)
                    return False

                channel = self._channels.get(notification.type)
                if channel is None:
                    await self._mark_failed(
                        notification,
                        f"No channel configured for {notification.type.value}",
                        FailureKind.TRANSPORT,
                        now,
                    )
                    return False

                try:
                    success, error = await channel.send(notification)
                except Exception as e:
                    logger.error(
                        f"Notification channel error: id={notification_id}, "
                        f"type={notification.type.value}, error={e}"
                    )
                    success, error = False, str(e) or type(e).__name__

                if success:
                    delivered = True
                    await self._mark_sent(notification, now)
                    return True

                await self._mark_failed(
                    notification, error or DEFAULT_FAILURE_REASON, FailureKind.TRANSPORT, now
                )
                return False

        except Exception as e:
            logger.error(
                f"Notification sending failed: id={notification_id}, "
                f"category={category.value}, error={e}"
            )
            logger.warning(
                f"Notification {notification_id} left unclaimed in its previous state "
                f"and will be picked up again by the next sweep"
                + (" (the channel had already delivered it)" if delivered else "")
            )
            await self._reload(notification)
            return False

    async def check_recipient_preferences(self, notification: Notification) -> bool:
        """True unless the recipient switched off this channel or category."""
        query = select(NotificationPreference).where(
            NotificationPreference.company_id == notification.company_id,
            NotificationPreference.recipient_type == notification.recipient_type,
            NotificationPreference.recipient_id == notification.recipient_id,
        )
        result = await self._session.execute(query)
        preference = result.scalar_one_or_none()

        if preference is None:
            return True
        return (
            preference.allows_type(notification.type)
            and preference.allows_category(notification.category)
        )

    def _missing_contact(self, notification: Notification) -> str | None:
        if notification.type == NotificationType.EMAIL and not notification.recipient_email:
            return "Recipient has no email address"
        if notification.type == NotificationType.SMS and not notification.recipient_phone:
            return "Recipient has no phone number"
        return None

    async def _claim(self, notification: Notification, now: datetime) -> bool:
        """Compare-and-swap on lock_version; exactly one caller wins."""
        result = await self._session.execute(
            update(Notification)
            .where(
                Notification.id == notification.id,
                Notification.lock_version == notification.lock_version,
                Notification.status.in_(SENDABLE_STATUSES),
            )
            .values(
                lock_version=Notification.lock_version + 1,
                last_attempt_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False

        set_committed_value(notification, "lock_version", notification.lock_version + 1)
        set_committed_value(notification, "last_attempt_at", now)
        return True

    async def _reload(self, notification: Notification) -> None:
        """Bring an instance expired by a rolled-back attempt back from the database."""
        try:
            await self._session.refresh(notification)
        except SQLAlchemyError as e:
            logger.error(f"Could not reload notification after failed send: error={e}")

    async def _mark_sent(self, notification: Notification, now: datetime) -> None:
        notification.status = NotificationStatus.SENT
        notification.sent_at = now
        notification.failure_reason = None
        notification.failure_kind = None
        notification.next_retry_at = None
        await self._session.flush()

        logger.info(
            f"Notification {notification.id} sent: type={notification.type.value}, "
            f"recipient={notification.recipient_type.value}:{notification.recipient_id}"
        )

    async def _mark_failed(
        self,
        notification: Notification,
        reason: str,
        kind: FailureKind,
        now: datetime,
    ) -> None:
        notification.status = NotificationStatus.FAILED
        notification.failure_reason = reason
        notification.failure_kind = kind
        if kind == FailureKind.PREFERENCE:
            notification.next_retry_at = None
        else:
            notification.next_retry_at = self._retry_policy.next_retry_at(
                notification.retry_count, notification.max_retries, now
            )
        await self._session.flush()

        logger.warning(
            f"Notification {notification.id} failed: category={notification.category.value}, "
            f"kind={kind.value}, reason={reason}"
        )

    # =========================================================================
    # DOMAIN NOTIFICATIONS
    # =========================================================================

    async def send_service_reminder(self, work_order: WorkOrder) -> Notification | None:
        if not work_order.customer:
            return None

        return await self.send_from_template(
            work_order.company_id,
            "service-reminder",
            work_order.customer,
            {
                "customer_name": work_order.customer.name,
                "service_date": work_order.service_date.strftime("%A, %B %d, %Y"),
                "service_time": work_order.time_period,
                "service_type": work_order.service_type,
                "address": work_order.location,
                "work_order_id": str(work_order.id),
            },
        )

    async def send_payment_reminder(self, invoice: Invoice) -> Notification | None:
        if not invoice.customer:
            return None

        return await self.send_from_template(
            invoice.company_id,
            "payment-due",
            invoice.customer,
            {
                "customer_name": invoice.customer.name,
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "amount_due": format_money(invoice.balance_due),
                "due_date": invoice.due_date.strftime("%B %d, %Y") if invoice.due_date else "N/A",
            },
        )

    async def send_driver_dispatch(self, work_order: WorkOrder) -> Notification | None:
        if not work_order.driver:
            return None

        return await self.send_from_template(
            work_order.company_id,
            "driver-dispatch",
            work_order.driver,
            {
                "driver_name": work_order.driver.name,
                "customer_name": work_order.customer.name if work_order.customer else "N/A",
                "service_date": work_order.service_date.strftime("%A, %B %d, %Y"),
                "service_time": work_order.time_period,
                "service_type": work_order.service_type,
                "address": work_order.location,
                "special_instructions": work_order.special_instructions,
                "work_order_id": str(work_order.id),
            },
            type=NotificationType.SMS,
        )

    async def send_emergency_alert(
        self,
        emergency: EmergencyService,
        drivers: Sequence[Driver],
    ) -> list[Notification]:
        """SMS every active driver about an emergency request."""
        notifications = []
        for driver in drivers:
            if not driver.is_active:
                continue

            notification = await self.send_from_template(
                emergency.company_id,
                "emergency-alert",
                driver,
                {
                    "location": emergency.location,
                    "service_type": emergency.service_type,
                    "priority": emergency.priority,
                    "contact_name": emergency.contact_name,
                    "contact_phone": emergency.contact_phone,
                    "emergency_id": str(emergency.id),
                },
                type=NotificationType.SMS,
            )
            if notification is not None:
                notifications.append(notification)

        return notifications

    async def send_payment_confirmation(self, payment: Payment) -> Notification | None:
        if not payment.invoice or not payment.invoice.customer:
            return None

        invoice = payment.invoice
        return await self.send_from_template(
            payment.company_id,
            "payment-confirmation",
            invoice.customer,
            {
                "customer_name": invoice.customer.name,
                "payment_amount": format_money(payment.amount),
                "payment_date": payment.payment_date.strftime("%B %d, %Y"),
                "payment_method": payment.payment_method,
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "remaining_balance": format_money(invoice.balance_due - payment.amount),
            },
        )

    # =========================================================================
    # INBOX
    # =========================================================================

    async def list_notifications(
        self,
        company_id: UUID,
        recipient_type: RecipientType,
        recipient_id: UUID,
        status: NotificationStatus | None = None,
        type: NotificationType | None = None,
        unread_only: bool = False,
        since: datetime | None = None,
    ) -> list[Notification]:
        query = (
            select(Notification)
            .where(
                Notification.company_id == company_id,
                Notification.recipient_type == recipient_type,
                Notification.recipient_id == recipient_id,
            )
            .order_by(Notification.created_at.desc())
        )

        if status:
            query = query.where(Notification.status == status)
        if type:
            query = query.where(Notification.type == type)
        if unread_only:
            query = query.where(Notification.read_at.is_(None))
        if since:
            query = query.where(Notification.created_at >= since)

        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def count_unread(
        self,
        company_id: UUID,
        recipient_type: RecipientType,
        recipient_id: UUID,
    ) -> int:
        query = select(func.count(Notification.id)).where(
            Notification.company_id == company_id,
            Notification.recipient_type == recipient_type,
            Notification.recipient_id == recipient_id,
            Notification.read_at.is_(None),
        )
        return (await self._session.execute(query)).scalar() or 0

    async def get_notification(self, company_id: UUID, notification_id: UUID) -> Notification:
        query = select(Notification).where(
            Notification.id == notification_id,
            Notification.company_id == company_id,
        )
        result = await self._session.execute(query)
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotificationNotFoundError(f"Notification {notification_id} not found")
        return notification

    async def mark_as_read(
        self,
        company_id: UUID,
        notification_id: UUID,
        now: datetime | None = None,
    ) -> Notification:
        notification = await self.get_notification(company_id, notification_id)
        if notification.read_at is None:
            notification.read_at = now or utcnow()
            await self._session.flush()
        return notification

    async def mark_all_as_read(
        self,
        company_id: UUID,
        recipient_type: RecipientType,
        recipient_id: UUID,
        now: datetime | None = None,
    ) -> int:
        """Mark every unread notification of a recipient as read. Returns the count."""
        result = await self._session.execute(
            update(Notification)
            .where(
                Notification.company_id == company_id,
                Notification.recipient_type == recipient_type,
                Notification.recipient_id == recipient_id,
                Notification.read_at.is_(None),
            )
            .values(read_at=now or utcnow())
        )
        logger.info(
            f"Marked {result.rowcount} notifications read for "
            f"{recipient_type.value}:{recipient_id}"
        )
        return result.rowcount

    # =========================================================================
    # PREFERENCES
    # =========================================================================

    async def get_preferences(
        self,
        company_id: UUID,
        recipient_type: RecipientType,
        recipient_id: UUID,
    ) -> NotificationPreference:
        """The recipient's preferences, created with defaults on first access."""
        query = select(NotificationPreference).where(
            NotificationPreference.company_id == company_id,
            NotificationPreference.recipient_type == recipient_type,
            NotificationPreference.recipient_id == recipient_id,
        )
        result = await self._session.execute(query)
        preference = result.scalar_one_or_none()

        if preference is None:
            preference = NotificationPreference(
                company_id=company_id,
                recipient_type=recipient_type,
                recipient_id=recipient_id,
                **PREFERENCE_DEFAULTS,
            )
            self._session.add(preference)
            await self._session.flush()

        return preference

    async def update_preferences(
        self,
        company_id: UUID,
        recipient_type: RecipientType,
        recipient_id: UUID,
        changes: Mapping[str, bool],
    ) -> NotificationPreference:
        """Apply the given flags; flags left out keep their current value."""
        unknown = set(changes) - set(PREFERENCE_DEFAULTS)
        if unknown:
            raise ValueError(f"Unknown preference fields: {', '.join(sorted(unknown))}")

        preference = await self.get_preferences(company_id, recipient_type, recipient_id)
        for name, enabled in changes.items():
            setattr(preference, name, enabled)
        await self._session.flush()

        logger.info(
            f"Updated notification preferences for {recipient_type.value}:{recipient_id}: "
            f"{dict(changes)}"
        )
        return preference

    # =========================================================================
    # STATS
    # =========================================================================

    async def get_stats(
        self,
        company_id: UUID,
        now: datetime | None = None,
    ) -> NotificationStats:
        now = now or utcnow()
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)

        async def count(*conditions) -> int:
            query = select(func.count(Notification.id)).where(
                Notification.company_id == company_id, *conditions
            )
            return (await self._session.execute(query)).scalar() or 0

        return NotificationStats(
            pending=await count(Notification.status == NotificationStatus.PENDING),
            scheduled=await count(
                Notification.status == NotificationStatus.SCHEDULED,
                Notification.scheduled_at > now,
            ),
            sent_today=await count(
                Notification.status == NotificationStatus.SENT,
                Notification.sent_at >= start_of_day,
            ),
            failed_today=await count(
                Notification.status == NotificationStatus.FAILED,
                or_(
                    Notification.updated_at >= start_of_day,
                    Notification.last_attempt_at >= start_of_day,
                ),
            ),
        )


def build_notification_service(
    session: AsyncSession,
    settings: Settings | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> NotificationService:
    """Wire channels, SMS provider and retry policy from configuration."""
    settings = settings or get_settings()

    sms_service = SmsService(build_sms_provider(settings, client=http_client))
    channels = {
        NotificationType.EMAIL: EmailChannel(build_mail_transport(settings)),
        NotificationType.SMS: SmsChannel(sms_service),
        NotificationType.PUSH: PushChannel(),
        NotificationType.IN_APP: InAppChannel(),
    }
    return NotificationService(
        session,
        channels=channels,
        retry_policy=RetryPolicy.from_settings(settings),
    )
