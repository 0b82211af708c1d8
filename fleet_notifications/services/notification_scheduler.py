"""
Notification Scheduler: sweeps for due and retryable notifications.

Runs from an external timer (see ``jobs.notification_cron``). Two sweeps:
1. Scheduled: send PENDING/SCHEDULED notifications whose time has come,
   most urgent category first
2. Retry: re-send FAILED notifications that still have retry budget

A retry claims its record with a conditional UPDATE that also increments
retry_count, so repeated sweeps converge on an exhausted budget and two
workers can never both claim the same failure.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from ..models import FailureKind, Notification, NotificationStatus, utcnow
from .notification_service import SENDABLE_STATUSES, NotificationService


logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    """Outcome of one sweep."""
    processed: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


class NotificationScheduler:
    """Periodic driver for scheduled sends and retries."""

    def __init__(
        self,
        session: AsyncSession,
        service: NotificationService,
        batch_size: int = 100,
    ):
        self._session = session
        self._service = service
        self._batch_size = batch_size

    # =========================================================================
    # SCHEDULED SWEEP
    # =========================================================================

    async def find_due_notifications(
        self,
        company_id: UUID | None = None,
        now: datetime | None = None,
    ) -> list[Notification]:
        """
        Due notifications ordered by (priority, scheduled_at, id).

        created_at sits before id as an extra tie-break, so records sharing a
        send time (or having none) go out in the order they were created.
        """
        now = now or utcnow()
        query = (
            select(Notification)
            .where(
                Notification.status.in_(SENDABLE_STATUSES),
                or_(
                    Notification.scheduled_at.is_(None),
                    Notification.scheduled_at <= now,
                ),
            )
            .order_by(
                Notification.priority.asc(),
                Notification.scheduled_at.asc().nulls_first(),
                Notification.created_at.asc(),
                Notification.id.asc(),
            )
            .limit(self._batch_size)
        )
        if company_id:
            query = query.where(Notification.company_id == company_id)

        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def run_scheduled_sweep(
        self,
        company_id: UUID | None = None,
        now: datetime | None = None,
    ) -> SweepResult:
        now = now or utcnow()
        sweep = SweepResult()

        for notification in await self.find_due_notifications(company_id, now):
            sweep.processed += 1
            try:
                if await self._service.send(notification, now=now):
                    sweep.sent += 1
                elif notification.status == NotificationStatus.FAILED:
                    sweep.failed += 1
                    sweep.errors.append(f"Notification {notification.id}: {notification.failure_reason}")
                else:
                    sweep.skipped += 1
            except Exception as e:
                sweep.failed += 1
                sweep.errors.append(f"Notification {notification.id}: {e}")
                logger.error(f"Scheduled send crashed: id={notification.id}, error={e}")

        logger.info(
            f"Scheduled sweep: {sweep.processed} due, {sweep.sent} sent, "
            f"{sweep.failed} failed, {sweep.skipped} skipped"
        )
        return sweep

    async def process_scheduled_notifications(
        self,
        company_id: UUID | None = None,
        now: datetime | None = None,
    ) -> int:
        """Send everything that is due. Returns the number sent."""
        sweep = await self.run_scheduled_sweep(company_id, now)
        return sweep.sent

    # =========================================================================
    # RETRY SWEEP
    # =========================================================================

    async def find_retryable_notifications(
        self,
        company_id: UUID | None = None,
        now: datetime | None = None,
    ) -> list[Notification]:
        now = now or utcnow()
        query = (
            select(Notification)
            .where(
                Notification.status == NotificationStatus.FAILED,
                Notification.retry_count < Notification.max_retries,
                or_(
                    Notification.failure_kind.is_(None),
                    Notification.failure_kind != FailureKind.PREFERENCE,
                ),
                or_(
                    Notification.next_retry_at.is_(None),
                    Notification.next_retry_at <= now,
                ),
            )
            .order_by(
                Notification.priority.asc(),
                Notification.next_retry_at.asc().nulls_first(),
                Notification.id.asc(),
            )
            .limit(self._batch_size)
        )
        if company_id:
            query = query.where(Notification.company_id == company_id)

        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def claim_for_retry(self, notification: Notification) -> bool:
        """
        FAILED -> PENDING with retry_count + 1, only if the record is still
        failed and within budget. False means another worker got there first.
        """
        result = await self._session.execute(
            update(Notification)
            .where(
                Notification.id == notification.id,
                Notification.status == NotificationStatus.FAILED,
                Notification.retry_count < Notification.max_retries,
            )
            .values(
                status=NotificationStatus.PENDING,
                retry_count=Notification.retry_count + 1,
                lock_version=Notification.lock_version + 1,
                next_retry_at=None,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False

        set_committed_value(notification, "status", NotificationStatus.PENDING)
        set_committed_value(notification, "retry_count", notification.retry_count + 1)
        set_committed_value(notification, "lock_version", notification.lock_version + 1)
        set_committed_value(notification, "next_retry_at", None)
        return True

    async def run_retry_sweep(
        self,
        company_id: UUID | None = None,
        now: datetime | None = None,
    ) -> SweepResult:
        now = now or utcnow()
        sweep = SweepResult()

        for notification in await self.find_retryable_notifications(company_id, now):
            sweep.processed += 1
            try:
                if not await self.claim_for_retry(notification):
                    sweep.skipped += 1
                    logger.info(f"Notification {notification.id} already claimed for retry")
                    continue

                logger.info(
                    f"Retrying notification {notification.id} "
                    f"(attempt {notification.retry_count} of {notification.max_retries})"
                )
                if await self._service.send(notification, now=now):
                    sweep.sent += 1
                    continue

                sweep.failed += 1
                sweep.errors.append(f"Notification {notification.id}: {notification.failure_reason}")
                if notification.retry_count >= notification.max_retries:
                    logger.warning(
                        f"Max attempts reached for notification {notification.id}: "
                        f"{notification.failure_reason}"
                    )
            except Exception as e:
                sweep.failed += 1
                sweep.errors.append(f"Notification {notification.id}: {e}")
                logger.error(f"Retry crashed: id={notification.id}, error={e}")

        logger.info(
            f"Retry sweep: {sweep.processed} retryable, {sweep.sent} sent, "
            f"{sweep.failed} failed, {sweep.skipped} skipped"
        )
        return sweep

    async def retry_failed_notifications(
        self,
        company_id: UUID | None = None,
        now: datetime | None = None,
    ) -> int:
        """Re-send failed notifications with budget left. Returns the number sent."""
        sweep = await self.run_retry_sweep(company_id, now)
        return sweep.sent
