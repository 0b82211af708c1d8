"""
Snapshots of the business records that trigger notifications.

The host application owns invoices, work orders, payments and emergency
requests; it passes these lightweight views to the notifier.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from .recipients import Customer, Driver


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    VIEWED = "viewed"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    WRITTEN_OFF = "written_off"


@dataclass
class Invoice:
    id: UUID
    company_id: UUID
    invoice_number: str
    status: InvoiceStatus
    total_amount: Decimal
    amount_paid: Decimal = Decimal("0")
    due_date: date | None = None
    customer: Customer | None = None

    @property
    def balance_due(self) -> Decimal:
        return self.total_amount - self.amount_paid


@dataclass
class WorkOrder:
    id: UUID
    company_id: UUID
    service_date: date
    time_period: str
    service_type: str
    location: str
    customer: Customer | None = None
    driver: Driver | None = None
    special_instructions: str | None = None


@dataclass
class Payment:
    id: UUID
    company_id: UUID
    amount: Decimal
    payment_date: date
    payment_method: str
    invoice: Invoice | None = None


@dataclass
class EmergencyService:
    id: UUID
    company_id: UUID
    location: str
    service_type: str
    priority: str
    contact_name: str
    contact_phone: str


def format_money(amount: Decimal | int | float) -> str:
    """Format an amount like 1,234.50."""
    return f"{Decimal(amount):,.2f}"
