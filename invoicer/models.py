"""Data models for bills and the events emitted around them."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

NOT_AVAILABLE = "N/A"


class BillStatus(str, Enum):
    UNPAID = "UNPAID"
    # Defined for completeness; bills stay UNPAID until payment succeeds.
    PROCESSING = "PROCESSING"
    PAID = "PAID"


@dataclass(frozen=True)
class Bill:
    """A bill owned by the registry.

    Instances are immutable; status changes produce a new instance.
    """

    id: str
    provider: str
    amount: Decimal
    due_date: str  # ISO YYYY-MM-DD, or "N/A"
    invoice_number: str
    status: BillStatus = BillStatus.UNPAID
    image_ref: str = ""

    @property
    def due(self) -> date | None:
        """The due date as a ``date``, or None if it is unknown or malformed."""
        try:
            return date.fromisoformat(self.due_date)
        except ValueError:
            return None

    @property
    def payable(self) -> bool:
        return self.status is BillStatus.UNPAID

    def is_overdue(self, today: date) -> bool:
        """Unpaid and past a known due date."""
        due = self.due
        return self.payable and due is not None and due < today

    def display(self, currency: str = "€") -> str:
        return (
            f"{self.provider}: {currency}{self.amount:.2f} "
            f"due {self.due_date} (#{self.invoice_number}) [{self.status.value}]"
        )


@dataclass(frozen=True)
class PaymentSucceeded:
    bill_id: str


@dataclass(frozen=True)
class PaymentCancelled:
    pass


@dataclass(frozen=True)
class BillAdded:
    bill: Bill

    @property
    def provider(self) -> str:
        return self.bill.provider

    @property
    def amount(self) -> Decimal:
        return self.bill.amount

    @property
    def due_date(self) -> str:
        return self.bill.due_date

    @property
    def invoice_number(self) -> str:
        return self.bill.invoice_number

    @property
    def image_ref(self) -> str:
        return self.bill.image_ref
