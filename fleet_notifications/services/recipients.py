"""
Recipients: the entities a notification can target.

The set is closed (customer, driver, staff user). Contact details are
resolved once, when the notification is created, so delivery never needs
to look the recipient up again.
"""

from dataclasses import dataclass
from typing import ClassVar, Union
from uuid import UUID

from ..models import RecipientType


@dataclass(frozen=True)
class Customer:
    """A customer of the hauling company."""
    id: UUID
    company_id: UUID
    name: str
    email: str | None = None
    phone: str | None = None
    notification_email: str | None = None  # Overrides email when set
    sms_number: str | None = None  # Overrides phone when set

    recipient_type: ClassVar[RecipientType] = RecipientType.CUSTOMER

    @property
    def contact_email(self) -> str | None:
        return self.notification_email or self.email

    @property
    def contact_phone(self) -> str | None:
        return self.sms_number or self.phone


@dataclass(frozen=True)
class Driver:
    """A fleet driver."""
    id: UUID
    company_id: UUID
    name: str
    email: str | None = None
    phone: str | None = None
    is_active: bool = True

    recipient_type: ClassVar[RecipientType] = RecipientType.DRIVER

    @property
    def contact_email(self) -> str | None:
        return self.email

    @property
    def contact_phone(self) -> str | None:
        return self.phone


@dataclass(frozen=True)
class User:
    """A staff user of the admin panel."""
    id: UUID
    company_id: UUID
    name: str
    email: str | None = None
    phone: str | None = None

    recipient_type: ClassVar[RecipientType] = RecipientType.USER

    @property
    def contact_email(self) -> str | None:
        return self.email

    @property
    def contact_phone(self) -> str | None:
        return self.phone


Recipient = Union[Customer, Driver, User]


@dataclass(frozen=True)
class ResolvedRecipient:
    """Denormalized recipient fields stored on a notification."""
    type: RecipientType
    id: UUID
    company_id: UUID
    email: str | None
    phone: str | None


def resolve_recipient(recipient: Recipient) -> ResolvedRecipient:
    """Capture the recipient's identity and contact details."""
    if not isinstance(recipient, (Customer, Driver, User)):
        raise TypeError(f"Unsupported recipient: {type(recipient).__name__}")

    return ResolvedRecipient(
        type=recipient.recipient_type,
        id=recipient.id,
        company_id=recipient.company_id,
        email=recipient.contact_email or None,
        phone=recipient.contact_phone or None,
    )
