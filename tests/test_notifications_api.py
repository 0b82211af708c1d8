"""Tests for the notification inbox HTTP endpoints."""

from datetime import timedelta
from uuid import uuid4

import httpx
import pytest

from fleet_notifications.core.database import get_session
from fleet_notifications.main import app
from fleet_notifications.models import (
    FailureKind,
    NotificationCategory,
    NotificationType,
    RecipientType,
    utcnow,
)


@pytest.fixture
async def client(session):
    async def override_session():
        yield session

    app.dependency_overrides[get_session] = override_session
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def make_in_app(service, recipient, subject="Hello"):
    return await service.create_notification(
        company_id=recipient.company_id,
        recipient=recipient,
        type=NotificationType.IN_APP,
        category=NotificationCategory.INVOICE,
        subject=subject,
        message="Body",
    )


class TestListNotifications:
    async def test_lists_recipient_inbox(self, client, service, customer, driver):
        first = await make_in_app(service, customer, "First")
        await make_in_app(service, driver, "For driver")

        response = await client.get(
            "/api/v1/notifications",
            params={"recipient_type": "customer", "recipient_id": str(customer.id)},
            headers={"X-Company-ID": str(customer.company_id)},
        )

        assert response.status_code == 200
        body = response.json()
        assert [n["id"] for n in body["notifications"]] == [str(first.id)]
        assert body["notifications"][0]["type"] == "in_app"
        assert body["notifications"][0]["is_read"] is False
        assert body["unread_count"] == 1

    async def test_default_window_hides_old_notifications(self, client, session, service, customer):
        old = await make_in_app(service, customer, "Old")
        old.created_at = utcnow() - timedelta(days=40)
        await session.flush()
        params = {"recipient_type": "customer", "recipient_id": str(customer.id)}
        headers = {"X-Company-ID": str(customer.company_id)}

        recent = await client.get("/api/v1/notifications", params=params, headers=headers)
        everything = await client.get(
            "/api/v1/notifications", params={**params, "all": "true"}, headers=headers
        )

        assert recent.json()["notifications"] == []
        assert [n["id"] for n in everything.json()["notifications"]] == [str(old.id)]

    async def test_missing_company_header(self, client):
        response = await client.get("/api/v1/notifications/stats")
        assert response.status_code == 400

    async def test_invalid_company_header(self, client):
        response = await client.get("/api/v1/notifications/stats", headers={"X-Company-ID": "acme"})
        assert response.status_code == 400


class TestReadNotification:
    async def test_viewing_marks_as_read(self, client, service, customer):
        notification = await make_in_app(service, customer)

        response = await client.get(
            f"/api/v1/notifications/{notification.id}",
            headers={"X-Company-ID": str(customer.company_id)},
        )

        assert response.status_code == 200
        assert response.json()["is_read"] is True
        assert notification.read_at is not None

    async def test_mark_read_endpoint(self, client, service, customer):
        notification = await make_in_app(service, customer)

        response = await client.post(
            f"/api/v1/notifications/{notification.id}/read",
            headers={"X-Company-ID": str(customer.company_id)},
        )

        assert response.status_code == 200
        assert response.json()["read_at"] is not None

    async def test_other_company_gets_404(self, client, service, customer):
        notification = await make_in_app(service, customer)

        response = await client.get(
            f"/api/v1/notifications/{notification.id}",
            headers={"X-Company-ID": str(uuid4())},
        )

        assert response.status_code == 404


class TestMarkAllRead:
    async def test_marks_only_that_recipient(self, client, service, customer, driver):
        await make_in_app(service, customer, "First")
        await make_in_app(service, customer, "Second")
        await make_in_app(service, driver, "For driver")

        response = await client.post(
            "/api/v1/notifications/mark-all-read",
            params={"recipient_type": "customer", "recipient_id": str(customer.id)},
            headers={"X-Company-ID": str(customer.company_id)},
        )

        assert response.status_code == 200
        assert response.json()["updated"] == 2
        assert await service.count_unread(customer.company_id, RecipientType.CUSTOMER, customer.id) == 0
        assert await service.count_unread(driver.company_id, RecipientType.DRIVER, driver.id) == 1


class TestPreferences:
    async def test_defaults_on_first_read(self, client, customer):
        response = await client.get(
            "/api/v1/notifications/preferences",
            params={"recipient_type": "customer", "recipient_id": str(customer.id)},
            headers={"X-Company-ID": str(customer.company_id)},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["recipient_type"] == "customer"
        assert body["email_enabled"] is True
        assert body["push_enabled"] is False
        assert body["marketing_messages"] is False

    async def test_update_blocks_later_sends(self, client, service, customer):
        response = await client.put(
            "/api/v1/notifications/preferences",
            params={"recipient_type": "customer", "recipient_id": str(customer.id)},
            headers={"X-Company-ID": str(customer.company_id)},
            json={"sms_enabled": False},
        )

        assert response.status_code == 200
        assert response.json()["sms_enabled"] is False
        assert response.json()["email_enabled"] is True

        notification = await service.create_notification(
            company_id=customer.company_id,
            recipient=customer,
            type=NotificationType.SMS,
            category=NotificationCategory.SERVICE_REMINDER,
            subject="Pickup",
            message="Tomorrow",
        )
        assert await service.send(notification) is False
        assert notification.failure_kind == FailureKind.PREFERENCE


class TestStats:
    async def test_counts(self, client, service, customer):
        await make_in_app(service, customer)
        sent = await make_in_app(service, customer)
        await service.send(sent)

        response = await client.get(
            "/api/v1/notifications/stats",
            headers={"X-Company-ID": str(customer.company_id)},
        )

        assert response.status_code == 200
        assert response.json() == {"pending": 1, "scheduled": 0, "sent_today": 1, "failed_today": 0}


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
