"""In-memory bill registry for a single session."""

from __future__ import annotations

import dataclasses
import logging
import uuid
from collections.abc import Iterator
from typing import TYPE_CHECKING

from .models import Bill, BillStatus

if TYPE_CHECKING:
    from .ai import ExtractedBill

logger = logging.getLogger(__name__)


def new_bill_id() -> str:
    return f"bill_{uuid.uuid4().hex}"


class BillRegistry:
    """Ordered collection of bills, most recently added first."""

    def __init__(self) -> None:
        self._bills: list[Bill] = []

    def __len__(self) -> int:
        return len(self._bills)

    def __iter__(self) -> Iterator[Bill]:
        return iter(list(self._bills))

    @property
    def bills(self) -> list[Bill]:
        return list(self._bills)

    def append(self, bill: Bill) -> None:
        """Add a bill to the front of the collection."""
        if self.find_by_id(bill.id) is not None:
            raise ValueError(f"Duplicate bill id: {bill.id!r}")
        self._bills.insert(0, bill)

    def create(self, extracted: ExtractedBill, image_ref: str) -> Bill:
        """Build a new UNPAID bill from extracted fields and append it.

        Returns:
            The created bill.
        """
        bill = Bill(
            id=new_bill_id(),
            provider=extracted.provider,
            amount=extracted.amount,
            due_date=extracted.due_date,
            invoice_number=extracted.invoice_number,
            status=BillStatus.UNPAID,
            image_ref=image_ref,
        )
        self.append(bill)
        logger.info("Added bill %s from %s", bill.id, bill.provider)
        return bill

    def find_by_id(self, bill_id: str) -> Bill | None:
        for bill in self._bills:
            if bill.id == bill_id:
                return bill
        return None

    def mark_paid(self, bill_id: str) -> bool:
        """Move an UNPAID bill to PAID.

        Returns:
            True if a bill changed, False if the id is unknown or the bill
            is not UNPAID.
        """
        for i, bill in enumerate(self._bills):
            if bill.id != bill_id:
                continue
            if bill.status is not BillStatus.UNPAID:
                return False
            self._bills[i] = dataclasses.replace(bill, status=BillStatus.PAID)
            logger.info("Bill %s marked as paid", bill_id)
            return True
        return False

    def clear(self) -> None:
        self._bills.clear()
