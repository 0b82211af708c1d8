"""
Invoice lifecycle notifications.

The host application calls these hooks when an invoice is created,
changes status, approaches its due date or is deleted. Each customer-facing
event produces a templated notification plus an in-app record for the
customer dashboard. Failures are logged and never block the invoice
operation that triggered them.
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete

from ..models import (
    Notification,
    NotificationCategory,
    NotificationStatus,
    NotificationType,
    utcnow,
)
from .business import Invoice, InvoiceStatus, format_money
from .notification_service import NotificationService


logger = logging.getLogger(__name__)

DUE_SOON_DAYS = 3


def _due_date_label(invoice: Invoice) -> str:
    return invoice.due_date.strftime("%b %d, %Y") if invoice.due_date else "N/A"


class InvoiceNotifier:
    """Turns invoice lifecycle events into customer notifications."""

    def __init__(self, service: NotificationService):
        self._service = service

    async def invoice_created(self, invoice: Invoice) -> None:
        if invoice.status != InvoiceStatus.DRAFT and invoice.customer:
            await self._notify_invoice_issued(invoice)

    async def invoice_status_changed(
        self,
        invoice: Invoice,
        old_status: InvoiceStatus,
    ) -> None:
        if old_status == invoice.status:
            return

        if old_status == InvoiceStatus.DRAFT and invoice.status == InvoiceStatus.SENT:
            await self._notify_invoice_issued(invoice)
        elif invoice.status == InvoiceStatus.PAID:
            await self._notify_payment_received(invoice)
        elif invoice.status == InvoiceStatus.OVERDUE:
            await self._notify_overdue(invoice)

    async def invoice_due_soon(
        self,
        invoice: Invoice,
        now: datetime | None = None,
    ) -> None:
        """Remind the customer when a sent invoice is due in three days."""
        today = (now or utcnow()).date()
        if (
            invoice.status == InvoiceStatus.SENT
            and invoice.due_date
            and invoice.due_date == today + timedelta(days=DUE_SOON_DAYS)
        ):
            await self._notify_payment_due(invoice)

    async def invoice_deleted(self, invoice: Invoice) -> int:
        """Purge notifications for the invoice that have not gone out yet."""
        return await self._purge(invoice, pending_only=True)

    async def invoice_force_deleted(self, invoice: Invoice) -> int:
        return await self._purge(invoice, pending_only=False)

    # =========================================================================
    # EVENT HANDLERS
    # =========================================================================

    async def _notify_invoice_issued(self, invoice: Invoice) -> None:
        if not invoice.customer:
            return

        try:
            await self._service.send_from_template(
                invoice.company_id,
                "invoice-created",
                invoice.customer,
                {
                    "customer_name": invoice.customer.name,
                    "invoice_id": str(invoice.id),
                    "invoice_number": invoice.invoice_number,
                    "total_amount": format_money(invoice.total_amount),
                    "due_date": _due_date_label(invoice),
                    "view_url": f"/customer/invoices/{invoice.id}",
                },
            )
            await self._create_in_app(
                invoice,
                subject="New Invoice",
                message=(
                    f"Invoice #{invoice.invoice_number} for "
                    f"${format_money(invoice.total_amount)} has been issued."
                ),
                data={
                    "total_amount": str(invoice.total_amount),
                    "due_date": invoice.due_date.isoformat() if invoice.due_date else None,
                },
            )
            logger.info(
                f"Invoice created notification sent: invoice={invoice.id}, "
                f"customer={invoice.customer.id}"
            )
        except Exception as e:
            logger.error(f"Failed to send invoice created notification: invoice={invoice.id}, error={e}")

    async def _notify_payment_received(self, invoice: Invoice) -> None:
        if not invoice.customer:
            return

        try:
            await self._service.send_from_template(
                invoice.company_id,
                "payment-received",
                invoice.customer,
                {
                    "customer_name": invoice.customer.name,
                    "invoice_id": str(invoice.id),
                    "invoice_number": invoice.invoice_number,
                    "payment_amount": format_money(invoice.amount_paid),
                    "payment_date": utcnow().strftime("%b %d, %Y"),
                },
            )
            await self._create_in_app(
                invoice,
                subject="Payment Received",
                message=(
                    f"Payment for Invoice #{invoice.invoice_number} has been received. "
                    "Thank you!"
                ),
                data={"payment_amount": str(invoice.amount_paid)},
            )
        except Exception as e:
            logger.error(f"Failed to send payment received notification: invoice={invoice.id}, error={e}")

    async def _notify_overdue(self, invoice: Invoice) -> None:
        if not invoice.customer:
            return

        days_overdue = (utcnow().date() - invoice.due_date).days if invoice.due_date else 0
        try:
            await self._service.send_from_template(
                invoice.company_id,
                "payment-overdue",
                invoice.customer,
                {
                    "customer_name": invoice.customer.name,
                    "invoice_id": str(invoice.id),
                    "invoice_number": invoice.invoice_number,
                    "total_amount": format_money(invoice.balance_due),
                    "due_date": _due_date_label(invoice),
                    "days_overdue": max(days_overdue, 0),
                },
            )
            await self._create_in_app(
                invoice,
                subject="Invoice Overdue",
                message=(
                    f"Invoice #{invoice.invoice_number} is overdue. "
                    "Please make payment as soon as possible."
                ),
                data={
                    "balance_due": str(invoice.balance_due),
                    "days_overdue": max(days_overdue, 0),
                },
            )
        except Exception as e:
            logger.error(f"Failed to send overdue notification: invoice={invoice.id}, error={e}")

    async def _notify_payment_due(self, invoice: Invoice) -> None:
        if not invoice.customer:
            return

        try:
            await self._service.send_payment_reminder(invoice)
            await self._create_in_app(
                invoice,
                subject="Payment Due Soon",
                message=f"Invoice #{invoice.invoice_number} is due on {_due_date_label(invoice)}.",
                data={
                    "balance_due": str(invoice.balance_due),
                    "due_date": invoice.due_date.isoformat() if invoice.due_date else None,
                },
            )
        except Exception as e:
            logger.error(f"Failed to send payment reminder notification: invoice={invoice.id}, error={e}")

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _create_in_app(
        self,
        invoice: Invoice,
        subject: str,
        message: str,
        data: dict[str, Any],
    ) -> Notification:
        """In-app copy for the customer dashboard, delivered by being stored."""
        notification = await self._service.create_notification(
            company_id=invoice.company_id,
            recipient=invoice.customer,
            type=NotificationType.IN_APP,
            category=NotificationCategory.INVOICE,
            subject=subject,
            message=message,
            data={
                "invoice_id": str(invoice.id),
                "invoice_number": invoice.invoice_number,
                "action_url": f"/customer/invoices/{invoice.id}",
                **data,
            },
        )
        await self._service.send(notification)
        return notification

    async def _purge(self, invoice: Invoice, pending_only: bool) -> int:
        statement = delete(Notification).where(
            Notification.company_id == invoice.company_id,
            Notification.data["invoice_id"].as_string() == str(invoice.id),
        )
        if pending_only:
            statement = statement.where(
                Notification.status.in_([NotificationStatus.PENDING, NotificationStatus.SCHEDULED])
            )

        result = await self._service.session.execute(
            statement.execution_options(synchronize_session=False)
        )
        logger.info(f"Purged {result.rowcount} notifications for invoice {invoice.id}")
        return result.rowcount
