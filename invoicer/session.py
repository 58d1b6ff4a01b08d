"""Session state: sign-in, screens, bills, payment and the assistant panel."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum

from .ai import ExtractedBill
from .ai.adapters import ExtractionAdapter, QAAdapter
from .config import PaymentConfig
from .images import PLACEHOLDER_IMAGE_REF, to_data_url
from .models import Bill, BillAdded, PaymentCancelled, PaymentSucceeded
from .payment import CardPaymentForm
from .registry import BillRegistry

logger = logging.getLogger(__name__)


class Screen(str, Enum):
    LOGIN = "login"
    DASHBOARD = "dashboard"
    PAYMENT = "payment"


class QAPanel:
    """Free-form question box backed by the assistant."""

    def __init__(self, adapter: QAAdapter) -> None:
        self._adapter = adapter
        self.prompt = ""
        self.answer = ""
        self.error = ""
        self.busy = False
        self._generation = 0

    async def ask(self, prompt: str) -> str | None:
        """Ask a question; blank prompts and calls made while busy are ignored.

        Returns:
            The answer, or None if nothing was asked or the request failed.
        """
        if self.busy or not prompt.strip():
            return None

        generation = self._generation
        self.prompt = prompt
        self.busy = True
        self.answer = ""
        self.error = ""
        try:
            try:
                result = await self._adapter.ask(prompt)
            except (ValueError, ImportError) as e:
                logger.error("Assistant is not configured: %s", e)
                if generation == self._generation:
                    self.error = str(e)
                return None
        finally:
            self.busy = False

        if generation != self._generation:
            logger.debug("Dropping answer to a question asked before reset")
            return None
        if result.failure is not None:
            self.error = str(result.failure)
            return None
        self.answer = result.answer or ""
        return self.answer

    def reset(self) -> None:
        """Clear the panel. A request still in flight keeps `busy` set and
        its answer is dropped."""
        self._generation += 1
        self.prompt = ""
        self.answer = ""
        self.error = ""


class Session:
    """Everything one signed-in user works with, discarded on logout."""

    def __init__(
        self,
        extraction: ExtractionAdapter,
        qa: QAAdapter,
        payment: PaymentConfig | None = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._extraction = extraction
        self._payment = payment or PaymentConfig()
        self._clock = clock
        self._bill_added_listeners: list[Callable[[BillAdded], None]] = []
        self._generation = 0

        self.authenticated = False
        self.screen = Screen.LOGIN
        self.registry = BillRegistry()
        self.active_bill: Bill | None = None
        self.payment_form: CardPaymentForm | None = None
        self.analyzing = False
        self.extraction_error = ""
        self.manual_error = ""
        self.assistant = QAPanel(qa)

    @property
    def bills(self) -> list[Bill]:
        return self.registry.bills

    def today(self) -> date:
        return self._clock()

    def on_bill_added(self, listener: Callable[[BillAdded], None]) -> None:
        self._bill_added_listeners.append(listener)

    # -- authentication ----------------------------------------------------

    def login(self) -> None:
        self.authenticated = True
        self.screen = Screen.DASHBOARD

    def logout(self) -> None:
        """Sign out and drop all session data.

        An extraction still in flight keeps `analyzing` set until it returns,
        and its result is dropped.
        """
        self._generation += 1
        self.authenticated = False
        self.screen = Screen.LOGIN
        self.registry.clear()
        self.active_bill = None
        self.payment_form = None
        self.extraction_error = ""
        self.manual_error = ""
        self.assistant.reset()
        logger.info("Session reset on logout")

    # -- adding bills ------------------------------------------------------

    def add_bill(self, extracted: ExtractedBill, image_ref: str) -> Bill:
        bill = self.registry.create(extracted, image_ref)
        event = BillAdded(bill=bill)
        for listener in self._bill_added_listeners:
            listener(event)
        return bill

    async def analyze_image(self, image: bytes, mime_type: str) -> Bill | None:
        """Extract a bill from an image and add it.

        Returns:
            The new bill, or None if analysis is already running or failed.
        """
        if self.analyzing:
            return None

        generation = self._generation
        self.analyzing = True
        self.extraction_error = ""
        try:
            try:
                result = await self._extraction.extract(image, mime_type)
            except (ValueError, ImportError) as e:
                logger.error("Bill extraction is not configured: %s", e)
                if generation == self._generation:
                    self.extraction_error = str(e)
                return None
        finally:
            self.analyzing = False

        if generation != self._generation:
            logger.info("Dropping extraction result from a previous session")
            return None
        if result.failure is not None:
            self.extraction_error = str(result.failure)
            return None
        return self.add_bill(result.bill, to_data_url(image, mime_type))

    def dismiss_error(self) -> None:
        self.extraction_error = ""

    def add_manual_bill(
        self, provider: str, amount: str, due_date: str, invoice_number: str
    ) -> Bill | None:
        """Add a bill typed in by the user.

        Returns:
            The new bill, or None with ``manual_error`` set.
        """
        if not all(v.strip() for v in (provider, amount, due_date, invoice_number)):
            self.manual_error = "All fields are required."
            return None
        try:
            value = Decimal(amount.strip())
        except InvalidOperation:
            value = None
        if value is None or not value.is_finite() or value <= 0:
            self.manual_error = "Please enter a valid positive amount."
            return None
        try:
            date.fromisoformat(due_date.strip())
        except ValueError:
            self.manual_error = "Due date must be in YYYY-MM-DD format."
            return None

        self.manual_error = ""
        extracted = ExtractedBill(
            provider=provider.strip(),
            amount=value,
            due_date=due_date.strip(),
            invoice_number=invoice_number.strip(),
        )
        return self.add_bill(extracted, PLACEHOLDER_IMAGE_REF)

    # -- payment -----------------------------------------------------------

    def initiate_payment(self, bill_id: str) -> CardPaymentForm | None:
        """Open the payment form for an unpaid bill."""
        bill = self.registry.find_by_id(bill_id)
        if bill is None or not bill.payable:
            return None
        return self.open_payment(bill)

    def open_payment(self, bill: Bill | None) -> CardPaymentForm:
        """Switch to the payment screen; without a bill the form is unavailable."""
        self.active_bill = bill
        self.payment_form = CardPaymentForm(
            bill,
            on_success=self._payment_succeeded,
            on_cancel=self._payment_cancelled,
            processing_delay=self._payment.processing_delay,
            clock=self._clock,
        )
        self.screen = Screen.PAYMENT
        return self.payment_form

    def _payment_succeeded(self, event: PaymentSucceeded) -> None:
        self.registry.mark_paid(event.bill_id)
        self._back_to_dashboard()

    def _payment_cancelled(self, event: PaymentCancelled) -> None:
        self._back_to_dashboard()

    def _back_to_dashboard(self) -> None:
        self.active_bill = None
        self.payment_form = None
        if self.authenticated:
            self.screen = Screen.DASHBOARD
