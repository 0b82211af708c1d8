"""Shared fixtures: an in-memory database, recipients and recording transports."""

from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from fleet_notifications.core.database import create_session_factory, enable_sqlite_savepoints
from fleet_notifications.models import (
    Base,
    NotificationCategory,
    NotificationTemplate,
    NotificationType,
)
from fleet_notifications.services.channels import (
    EmailChannel,
    InAppChannel,
    PushChannel,
    SmsChannel,
)
from fleet_notifications.services.mail import MailTransport
from fleet_notifications.services.notification_service import NotificationService
from fleet_notifications.services.recipients import Customer, Driver
from fleet_notifications.services.sms import SmsProvider, SmsService


# =============================================================================
# RECORDING TRANSPORTS
# =============================================================================


class RecordingMailTransport(MailTransport):
    """Keeps every message instead of sending it."""

    def __init__(self, succeed: bool = True, error: Exception | None = None):
        self.sent: list[dict] = []
        self.succeed = succeed
        self.error = error

    async def send_mail(self, to_address, subject, html_body, text_body=None) -> bool:
        if self.error is not None:
            raise self.error
        self.sent.append({
            "to": to_address,
            "subject": subject,
            "html": html_body,
            "text": text_body,
        })
        return self.succeed


class RecordingSmsProvider(SmsProvider):
    name = "recording"

    def __init__(self, succeed: bool = True):
        self.sent: list[tuple[str, str]] = []
        self.succeed = succeed

    async def deliver(self, to: str, message: str) -> bool:
        self.sent.append((to, message))
        return self.succeed


# =============================================================================
# DATABASE
# =============================================================================


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncSession:
    async with create_session_factory(engine)() as session:
        yield session


# =============================================================================
# RECIPIENTS
# =============================================================================


@pytest.fixture
def company_id() -> UUID:
    return uuid4()


@pytest.fixture
def customer(company_id) -> Customer:
    return Customer(
        id=uuid4(),
        company_id=company_id,
        name="Dana Rivers",
        email="dana@example.com",
        phone="(555) 123-4567",
    )


@pytest.fixture
def driver(company_id) -> Driver:
    return Driver(
        id=uuid4(),
        company_id=company_id,
        name="Sam Ortega",
        email="sam@example.com",
        phone="555-987-6543",
    )


# =============================================================================
# SERVICE
# =============================================================================


@pytest.fixture
def mail_transport() -> RecordingMailTransport:
    return RecordingMailTransport()


@pytest.fixture
def sms_provider() -> RecordingSmsProvider:
    return RecordingSmsProvider()


@pytest.fixture
def service(session, mail_transport, sms_provider) -> NotificationService:
    return NotificationService(
        session,
        channels={
            NotificationType.EMAIL: EmailChannel(mail_transport),
            NotificationType.SMS: SmsChannel(SmsService(sms_provider)),
            NotificationType.PUSH: PushChannel(),
            NotificationType.IN_APP: InAppChannel(),
        },
    )


@pytest.fixture
async def system_templates(session) -> list[NotificationTemplate]:
    """The global templates the domain helpers render from."""
    templates = [
        NotificationTemplate(
            company_id=None,
            name="Service Reminder",
            slug="service-reminder",
            type=NotificationType.EMAIL,
            category=NotificationCategory.SERVICE_REMINDER,
            subject_template="Upcoming {{service_type}} on {{service_date}}",
            body_template="Hi {{customer_name}}, we will be at {{address}} {{service_time}}.",
            is_system=True,
        ),
        NotificationTemplate(
            company_id=None,
            name="Payment Due",
            slug="payment-due",
            type=NotificationType.EMAIL,
            category=NotificationCategory.PAYMENT_DUE,
            subject_template="Payment Reminder - Invoice #{{invoice_number}}",
            body_template="Invoice #{{invoice_number}} for ${{amount_due}} is due on {{due_date}}.",
            is_system=True,
        ),
        NotificationTemplate(
            company_id=None,
            name="Driver Dispatch",
            slug="driver-dispatch",
            type=NotificationType.SMS,
            category=NotificationCategory.DISPATCH,
            subject_template="New Job Assignment",
            body_template="New job: {{service_type}} at {{address}} on {{service_date}}.",
            is_system=True,
        ),
        NotificationTemplate(
            company_id=None,
            name="Emergency Alert",
            slug="emergency-alert",
            type=NotificationType.SMS,
            category=NotificationCategory.EMERGENCY,
            subject_template="URGENT: Emergency Service Request",
            body_template="URGENT {{priority}}: {{service_type}} at {{location}}.",
            is_system=True,
        ),
        NotificationTemplate(
            company_id=None,
            name="New Invoice",
            slug="invoice-created",
            type=NotificationType.EMAIL,
            category=NotificationCategory.INVOICE,
            subject_template="New Invoice #{{invoice_number}}",
            body_template="Invoice #{{invoice_number}} for ${{total_amount}} is due {{due_date}}.",
            is_system=True,
        ),
        NotificationTemplate(
            company_id=None,
            name="Payment Received",
            slug="payment-received",
            type=NotificationType.EMAIL,
            category=NotificationCategory.INVOICE,
            subject_template="Payment Received - Invoice #{{invoice_number}}",
            body_template="We received ${{payment_amount}}. Thank you!",
            is_system=True,
        ),
        NotificationTemplate(
            company_id=None,
            name="Payment Overdue",
            slug="payment-overdue",
            type=NotificationType.EMAIL,
            category=NotificationCategory.PAYMENT_DUE,
            subject_template="Overdue: Invoice #{{invoice_number}}",
            body_template="Invoice #{{invoice_number}} is {{days_overdue}} days overdue.",
            is_system=True,
        ),
    ]
    session.add_all(templates)
    await session.flush()
    return templates
