"""Simulated card payment form: input normalization, validation, submission."""

from __future__ import annotations

import asyncio
import calendar
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, fields
from datetime import date
from enum import Enum

from .models import Bill, PaymentCancelled, PaymentSucceeded

logger = logging.getLogger(__name__)

CARD_NUMBER_DIGITS = 16
FIELDS = ("number", "name", "expiry", "cvc")
FIELD_LABELS = {
    "number": "Card Number",
    "name": "Cardholder Name",
    "expiry": "Expiry Date (MM/YY)",
    "cvc": "CVC",
}

NO_BILL_MESSAGE = "No bill selected for payment."

_NON_DIGIT = re.compile(r"[^0-9]")
_CARD_NUMBER = re.compile(r"[0-9]{16}")
_EXPIRY = re.compile(r"(0[1-9]|1[0-2])/([0-9]{2})")
_CVC = re.compile(r"[0-9]{3,4}")


@dataclass
class CardDetails:
    number: str = ""
    name: str = ""
    expiry: str = ""
    cvc: str = ""

    def get(self, field_name: str) -> str:
        return getattr(self, field_name)


class FormState(str, Enum):
    EDITING = "editing"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    UNAVAILABLE = "unavailable"


# -- normalization ---------------------------------------------------------


def format_card_number(raw: str) -> str:
    """Keep up to 16 digits, grouped in fours separated by single spaces."""
    digits = _NON_DIGIT.sub("", raw)[:CARD_NUMBER_DIGITS]
    return " ".join(digits[i : i + 4] for i in range(0, len(digits), 4))


def format_expiry(raw: str) -> str:
    """Keep up to 4 digits and insert ``/`` once the month is complete."""
    digits = _NON_DIGIT.sub("", raw)
    if len(digits) > 2:
        return f"{digits[:2]}/{digits[2:4]}"
    return digits


def normalize_field(field_name: str, raw: str) -> str:
    if field_name not in FIELDS:
        raise KeyError(field_name)
    if field_name == "number":
        return format_card_number(raw)
    if field_name == "expiry":
        return format_expiry(raw)
    return raw


# -- validation ------------------------------------------------------------


def is_expired(month: int, year: int, today: date) -> bool:
    """A card is valid through the last day of its expiry month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, last_day) < today


def validate_field(field_name: str, value: str, today: date | None = None) -> str:
    """Return the error message for a field value, or ``""`` if it is valid."""
    match field_name:
        case "number":
            if not _CARD_NUMBER.fullmatch(value.replace(" ", "")):
                return "Card number must be 16 digits."
        case "name":
            if len(value.strip()) < 2:
                return "Name is required."
        case "expiry":
            m = _EXPIRY.fullmatch(value)
            if m is None:
                return "Format must be MM/YY."
            month, year = int(m.group(1)), 2000 + int(m.group(2))
            if is_expired(month, year, today or date.today()):
                return "Card is expired."
        case "cvc":
            if not _CVC.fullmatch(value):
                return "CVC must be 3 or 4 digits."
        case _:
            raise KeyError(field_name)
    return ""


def compute_validity(details: CardDetails, errors: dict[str, str]) -> bool:
    """Whether the form may be submitted, derived from details and errors."""
    values = [details.get(f) for f in FIELDS]
    if not all(values) or any(errors.values()):
        return False
    return (
        len(details.number.replace(" ", "")) == CARD_NUMBER_DIGITS
        and len(details.expiry) == 5
        and _CVC.fullmatch(details.cvc) is not None
        and bool(details.name.strip())
    )


# -- form ------------------------------------------------------------------


class CardPaymentForm:
    """State machine for one payment attempt against one bill.

    Editing -> Processing -> Succeeded, or Editing -> Cancelled. A form
    opened without a bill is Unavailable and can only be cancelled.
    """

    def __init__(
        self,
        bill: Bill | None,
        on_success: Callable[[PaymentSucceeded], None] | None = None,
        on_cancel: Callable[[PaymentCancelled], None] | None = None,
        processing_delay: float = 2.5,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._bill = bill
        self._on_success = on_success
        self._on_cancel = on_cancel
        self._processing_delay = processing_delay
        self._clock = clock
        self.details = CardDetails()
        self.errors: dict[str, str] = {f: "" for f in FIELDS}
        if bill is None:
            self.state = FormState.UNAVAILABLE
            self.guard_error: str | None = NO_BILL_MESSAGE
        else:
            self.state = FormState.EDITING
            self.guard_error = None

    @property
    def bill(self) -> Bill | None:
        return self._bill

    @property
    def editable(self) -> bool:
        return self.state is FormState.EDITING

    @property
    def submittable(self) -> bool:
        return self.editable and compute_validity(self.details, self.errors)

    def update_field(self, field_name: str, raw: str) -> str:
        """Normalize and validate new input for a field.

        Returns:
            The value now held by the field.
        """
        if field_name not in FIELDS:
            raise KeyError(field_name)
        if not self.editable:
            logger.debug("Ignoring edit of %s in state %s", field_name, self.state)
            return self.details.get(field_name)

        value = normalize_field(field_name, raw)
        setattr(self.details, field_name, value)
        self.errors[field_name] = validate_field(field_name, value, self._clock())
        return value

    async def submit(self) -> bool:
        """Run the simulated payment if the form is submittable.

        Returns:
            True if the payment ran to success, False if the submit was
            rejected.
        """
        bill_id = self._begin_processing()
        if bill_id is None:
            return False
        return await self._process(bill_id)

    def start_submit(self) -> asyncio.Task[bool] | None:
        """Schedule the simulated payment as a single task on the running loop.

        Returns:
            The task, or None if the form is not submittable.
        """
        bill_id = self._begin_processing()
        if bill_id is None:
            return None
        return asyncio.get_running_loop().create_task(self._process(bill_id))

    def _begin_processing(self) -> str | None:
        # Runs synchronously, so a second submit always sees PROCESSING.
        if not self.submittable or self._bill is None:
            return None
        self.state = FormState.PROCESSING
        logger.info("Processing payment for bill %s", self._bill.id)
        return self._bill.id

    async def _process(self, bill_id: str) -> bool:
        await asyncio.sleep(self._processing_delay)

        self.state = FormState.SUCCEEDED
        self._discard()
        logger.info("Payment succeeded for bill %s", bill_id)
        if self._on_success is not None:
            self._on_success(PaymentSucceeded(bill_id=bill_id))
        return True

    def cancel(self) -> bool:
        """Abandon the payment. Not possible once processing has started."""
        if self.state not in (FormState.EDITING, FormState.UNAVAILABLE):
            return False
        self.state = FormState.CANCELLED
        self._discard()
        logger.info("Payment cancelled")
        if self._on_cancel is not None:
            self._on_cancel(PaymentCancelled())
        return True

    def _discard(self) -> None:
        for f in fields(CardDetails):
            setattr(self.details, f.name, "")
        self.errors = {f: "" for f in FIELDS}
