"""Tests for the notification cron job and its command line."""

from uuid import uuid4

import pytest
from sqlalchemy import select

from fleet_notifications.core.config import Settings
from fleet_notifications.core.database import (
    create_engine_from_settings,
    create_session_factory,
    init_db,
)
from fleet_notifications.jobs import notification_cron
from fleet_notifications.jobs.notification_cron import build_parser, run_notification_job
from fleet_notifications.models import (
    FailureKind,
    Notification,
    NotificationCategory,
    NotificationStatus,
    NotificationType,
    RecipientType,
)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'notifications.db'}",
        mail_driver="log",
        sms_provider="log",
        slack_alerts_webhook_url=None,
        alert_webhook_url=None,
    )


def make_notification(**overrides) -> Notification:
    values = dict(
        company_id=uuid4(),
        type=NotificationType.EMAIL,
        category=NotificationCategory.SERVICE_REMINDER,
        priority=NotificationCategory.SERVICE_REMINDER.priority,
        status=NotificationStatus.PENDING,
        recipient_type=RecipientType.CUSTOMER,
        recipient_id=uuid4(),
        recipient_email="dana@example.com",
        subject="Reminder",
        message="Body",
    )
    values.update(overrides)
    return Notification(**values)


@pytest.fixture
async def seeded(settings):
    """Write one due notification and one retryable failure to the database."""
    engine = create_engine_from_settings(settings)
    await init_db(engine)
    async with create_session_factory(engine)() as session:
        async with session.begin():
            session.add_all([
                make_notification(),
                make_notification(
                    status=NotificationStatus.FAILED,
                    failure_reason="Connection refused",
                    failure_kind=FailureKind.TRANSPORT,
                ),
            ])
    yield engine
    await engine.dispose()


async def load_all(engine) -> list[Notification]:
    async with create_session_factory(engine)() as session:
        result = await session.execute(select(Notification))
        return list(result.scalars().all())


class TestRunNotificationJob:
    async def test_sends_due_notifications(self, settings, seeded):
        results = await run_notification_job(settings=settings)

        assert results["scheduled_sent"] == 1
        assert results["retried_sent"] == 0
        assert results["completed_at"] is not None

        statuses = sorted(n.status.value for n in await load_all(seeded))
        assert statuses == ["failed", "sent"]

    async def test_retry_flag_resends_failures(self, settings, seeded):
        results = await run_notification_job(settings=settings, retry=True)

        assert results["scheduled_sent"] == 1
        assert results["retried_sent"] == 1

        notifications = await load_all(seeded)
        assert all(n.status == NotificationStatus.SENT for n in notifications)
        assert sorted(n.retry_count for n in notifications) == [0, 1]

    async def test_crash_alerts_and_reraises(self, settings, monkeypatch):
        alerts = []

        async def record_alert(title, message, severity="error", details=None, settings=None):
            alerts.append(severity)

        monkeypatch.setattr(notification_cron, "send_alert", record_alert)

        # No tables exist, so the first sweep fails
        with pytest.raises(Exception):
            await run_notification_job(settings=settings)

        assert alerts == ["critical"]


class TestCommandLine:
    def test_parser(self):
        args = build_parser().parse_args(["--database-url", "sqlite:///x.db", "--retry"])
        assert args.database_url == "sqlite:///x.db"
        assert args.retry is True

    def test_retry_defaults_off(self):
        assert build_parser().parse_args([]).retry is False
