#!/usr/bin/env python3
"""
Seed Data Script for Fleet Notifications

Creates the system notification templates that every company falls back
to when it has not customised its own:
- service-reminder, payment-due, payment-overdue, payment-received
- payment-confirmation, invoice-created
- driver-dispatch, emergency-alert (SMS to drivers)

Existing system templates are left untouched, so the script can be re-run.

Run with: python seed_data.py
"""

import asyncio

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fleet_notifications.core.config import get_settings
from fleet_notifications.core.database import (
    create_engine_from_settings,
    create_session_factory,
    init_db,
)
from fleet_notifications.models import (
    NotificationCategory,
    NotificationTemplate,
    NotificationType,
)

settings = get_settings()


SYSTEM_TEMPLATES = [
    {
        "name": "Service Reminder",
        "slug": "service-reminder",
        "type": NotificationType.EMAIL,
        "category": NotificationCategory.SERVICE_REMINDER,
        "subject_template": "Upcoming {{service_type}} on {{service_date}}",
        "body_template": (
            "<p>Dear {{customer_name}},</p>"
            "<p>This is a reminder that your {{service_type}} is scheduled for "
            "<strong>{{service_date}}</strong> ({{service_time}}).</p>"
            "<p>Service address: {{address}}</p>"
            "<p>Please ensure your bins are placed at the collection point before the scheduled time.</p>"
        ),
        "available_variables": ["customer_name", "service_date", "service_time", "service_type", "address"],
    },
    {
        "name": "Payment Due Reminder",
        "slug": "payment-due",
        "type": NotificationType.EMAIL,
        "category": NotificationCategory.PAYMENT_DUE,
        "subject_template": "Payment Reminder - Invoice #{{invoice_number}}",
        "body_template": (
            "<p>Dear {{customer_name}},</p>"
            "<p>This is a friendly reminder that invoice <strong>#{{invoice_number}}</strong> "
            "for <strong>${{amount_due}}</strong> is due on <strong>{{due_date}}</strong>.</p>"
        ),
        "available_variables": ["customer_name", "invoice_number", "amount_due", "due_date"],
    },
    {
        "name": "Payment Overdue",
        "slug": "payment-overdue",
        "type": NotificationType.EMAIL,
        "category": NotificationCategory.PAYMENT_DUE,
        "subject_template": "Overdue: Invoice #{{invoice_number}}",
        "body_template": (
            "<p>Dear {{customer_name}},</p>"
            "<p>Invoice <strong>#{{invoice_number}}</strong> was due on {{due_date}} and is now "
            "{{days_overdue}} days overdue. The outstanding balance is <strong>${{total_amount}}</strong>.</p>"
            "<p>Please make payment as soon as possible to avoid service interruption.</p>"
        ),
        "available_variables": ["customer_name", "invoice_number", "total_amount", "due_date", "days_overdue"],
    },
    {
        "name": "Payment Received Confirmation",
        "slug": "payment-received",
        "type": NotificationType.EMAIL,
        "category": NotificationCategory.INVOICE,
        "subject_template": "Payment Received - Invoice #{{invoice_number}}",
        "body_template": (
            "<p>Dear {{customer_name}},</p>"
            "<p>We have received your payment of <strong>${{payment_amount}}</strong> "
            "for invoice #{{invoice_number}} on {{payment_date}}.</p>"
            "<p>Thank you for your business!</p>"
        ),
        "available_variables": ["customer_name", "invoice_number", "payment_amount", "payment_date"],
    },
    {
        "name": "Payment Confirmation",
        "slug": "payment-confirmation",
        "type": NotificationType.EMAIL,
        "category": NotificationCategory.INVOICE,
        "subject_template": "Payment Confirmation - ${{payment_amount}}",
        "body_template": (
            "<p>Dear {{customer_name}},</p>"
            "<p>Your {{payment_method}} payment of <strong>${{payment_amount}}</strong> on "
            "{{payment_date}} has been applied to invoice #{{invoice_number}}.</p>"
            "<p>Remaining balance: ${{remaining_balance}}</p>"
        ),
        "available_variables": [
            "customer_name", "payment_amount", "payment_date", "payment_method",
            "invoice_number", "remaining_balance",
        ],
    },
    {
        "name": "New Invoice",
        "slug": "invoice-created",
        "type": NotificationType.EMAIL,
        "category": NotificationCategory.INVOICE,
        "subject_template": "New Invoice #{{invoice_number}}",
        "body_template": (
            "<p>Dear {{customer_name}},</p>"
            "<p>A new invoice has been generated for your account.</p>"
            "<ul>"
            "<li>Invoice Number: {{invoice_number}}</li>"
            "<li>Total Amount: ${{total_amount}}</li>"
            "<li>Due Date: {{due_date}}</li>"
            "</ul>"
        ),
        "available_variables": ["customer_name", "invoice_number", "total_amount", "due_date", "view_url"],
    },
    {
        "name": "Driver Dispatch Notification",
        "slug": "driver-dispatch",
        "type": NotificationType.SMS,
        "category": NotificationCategory.DISPATCH,
        "subject_template": "New Job Assignment",
        "body_template": (
            "New job: {{service_type}} for {{customer_name}} on {{service_date}} ({{service_time}}) "
            "at {{address}}. {{special_instructions}}"
        ),
        "available_variables": [
            "driver_name", "customer_name", "service_date", "service_time",
            "service_type", "address", "special_instructions",
        ],
    },
    {
        "name": "Emergency Service Alert",
        "slug": "emergency-alert",
        "type": NotificationType.SMS,
        "category": NotificationCategory.EMERGENCY,
        "subject_template": "URGENT: Emergency Service Request",
        "body_template": (
            "URGENT {{priority}}: {{service_type}} at {{location}}. "
            "Contact {{contact_name}} {{contact_phone}}."
        ),
        "available_variables": ["location", "service_type", "priority", "contact_name", "contact_phone"],
    },
]


async def seed_templates(session: AsyncSession) -> int:
    """Insert missing system templates. Returns the number created."""
    result = await session.execute(
        select(NotificationTemplate.slug).where(NotificationTemplate.company_id.is_(None))
    )
    existing = set(result.scalars().all())

    created = 0
    for template in SYSTEM_TEMPLATES:
        if template["slug"] in existing:
            print(f"   - {template['slug']} (already present)")
            continue

        session.add(NotificationTemplate(company_id=None, is_active=True, is_system=True, **template))
        created += 1
        print(f"   ✓ {template['slug']}")

    await session.flush()
    return created


async def seed_database():
    """Main seeding function."""
    engine = create_engine_from_settings(settings)
    await init_db(engine)
    session_factory = create_session_factory(engine)

    try:
        async with session_factory() as session:
            async with session.begin():
                print("🌱 Seeding system notification templates...")
                created = await seed_templates(session)
        print(f"\n✅ Created {created} templates")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_database())
