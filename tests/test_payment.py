"""Tests for the card payment form."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest

from invoicer.models import Bill, PaymentCancelled, PaymentSucceeded
from invoicer.payment import (
    FIELDS,
    CardDetails,
    CardPaymentForm,
    FormState,
    compute_validity,
    format_card_number,
    format_expiry,
    is_expired,
    validate_field,
)

TODAY = date(2025, 6, 15)


def _bill(bill_id: str = "bill_1") -> Bill:
    return Bill(
        id=bill_id,
        provider="Energy Corp",
        amount=Decimal("75.50"),
        due_date="2025-07-01",
        invoice_number="INV-12345",
    )


def _form(processing_delay=0.0):
    events: list = []
    form = CardPaymentForm(
        _bill(),
        on_success=events.append,
        on_cancel=events.append,
        processing_delay=processing_delay,
        clock=lambda: TODAY,
    )
    return form, events


def _fill(form, number="4111111111111111", name="Jane Doe", expiry="12/99", cvc="123"):
    form.update_field("number", number)
    form.update_field("name", name)
    form.update_field("expiry", expiry)
    form.update_field("cvc", cvc)


class TestCardNumberFormatting:
    def test_groups_digits_in_fours(self):
        assert format_card_number("4111111111111111") == "4111 1111 1111 1111"

    def test_strips_non_digits(self):
        assert format_card_number("4111-1111 abcd 1111") == "4111 1111 1111"

    def test_truncates_to_sixteen_digits(self):
        result = format_card_number("1234567890123456789")
        assert result == "1234 5678 9012 3456"
        assert len(result) == 19

    def test_partial_group(self):
        assert format_card_number("12345") == "1234 5"

    def test_empty(self):
        assert format_card_number("") == ""
        assert format_card_number("abc") == ""

    @pytest.mark.parametrize(
        "digits", ["", "4", "4111", "41111", "41111111", "411111111111111", "4111111111111111"]
    )
    def test_idempotent(self, digits):
        once = format_card_number(digits)
        assert format_card_number(once) == once

    @pytest.mark.parametrize(
        "raw", ["4111 1111 1111 1111 9999", "  12  34 5 6 7 8 9 0 1 2 3 4 5 6 7 8", "x" * 40, "9" * 30]
    )
    def test_shape(self, raw):
        result = format_card_number(raw)
        assert len(result) <= 19
        groups = result.split(" ") if result else []
        assert all(g.isdigit() for g in groups)
        assert all(len(g) == 4 for g in groups[:-1])


class TestExpiryFormatting:
    def test_month_only(self):
        assert format_expiry("1") == "1"
        assert format_expiry("12") == "12"

    def test_slash_inserted_after_month(self):
        assert format_expiry("123") == "12/3"
        assert format_expiry("1225") == "12/25"

    def test_existing_slash_is_reformatted(self):
        assert format_expiry("12/25") == "12/25"

    def test_truncates_to_four_digits(self):
        assert format_expiry("122599") == "12/25"


class TestValidateField:
    def test_card_number(self):
        assert validate_field("number", "4111 1111 1111 1111") == ""
        assert validate_field("number", "4111 1111") == "Card number must be 16 digits."

    def test_card_number_rejects_non_ascii_digits_and_extra_text(self):
        error = "Card number must be 16 digits."
        assert validate_field("number", "4111111111111111\n") == error
        assert validate_field("number", "411111111111111\u0661") == error
        assert validate_field("number", "4111 1111 1111 11112") == error

    def test_name(self):
        assert validate_field("name", "Jo") == ""
        assert validate_field("name", " J ") == "Name is required."
        assert validate_field("name", "") == "Name is required."

    def test_expiry_format_error(self):
        assert validate_field("expiry", "13/25", TODAY) == "Format must be MM/YY."
        assert validate_field("expiry", "00/25", TODAY) == "Format must be MM/YY."
        assert validate_field("expiry", "1/25", TODAY) == "Format must be MM/YY."

    def test_expiry_expired(self):
        assert validate_field("expiry", "02/20", TODAY) == "Card is expired."

    def test_expiry_valid(self):
        assert validate_field("expiry", "02/99", TODAY) == ""

    def test_expiry_valid_through_end_of_month(self):
        assert validate_field("expiry", "06/25", date(2025, 6, 30)) == ""
        assert validate_field("expiry", "06/25", date(2025, 7, 1)) == "Card is expired."

    def test_is_expired_leap_february(self):
        assert is_expired(2, 2024, date(2024, 2, 29)) is False
        assert is_expired(2, 2024, date(2024, 3, 1)) is True

    @pytest.mark.parametrize("cvc", ["123", "1234"])
    def test_cvc_valid(self, cvc):
        assert validate_field("cvc", cvc) == ""

    @pytest.mark.parametrize("cvc", ["12", "12a4", "12345", "", "123\n"])
    def test_cvc_invalid(self, cvc):
        assert validate_field("cvc", cvc) == "CVC must be 3 or 4 digits."

    def test_unknown_field(self):
        with pytest.raises(KeyError):
            validate_field("zip", "12345")


class TestComputeValidity:
    def test_complete_details_without_errors(self):
        details = CardDetails(
            number="4111 1111 1111 1111", name="Jane Doe", expiry="12/99", cvc="123"
        )
        assert compute_validity(details, {f: "" for f in FIELDS}) is True

    def test_empty_field(self):
        details = CardDetails(number="4111 1111 1111 1111", name="Jane Doe", expiry="12/99")
        assert compute_validity(details, {}) is False

    def test_error_present(self):
        details = CardDetails(
            number="4111 1111 1111 1111", name="Jane Doe", expiry="12/99", cvc="123"
        )
        assert compute_validity(details, {"expiry": "Card is expired."}) is False

    def test_short_number_without_recorded_error(self):
        details = CardDetails(number="4111", name="Jane Doe", expiry="12/99", cvc="123")
        assert compute_validity(details, {}) is False


class TestCardPaymentForm:
    def test_initial_state(self):
        form, _ = _form()
        assert form.state is FormState.EDITING
        assert form.submittable is False
        assert form.guard_error is None

    def test_update_field_returns_normalized_value(self):
        form, _ = _form()
        assert form.update_field("number", "4111111111111111") == "4111 1111 1111 1111"
        assert form.update_field("expiry", "1299") == "12/99"
        assert form.details.number == "4111 1111 1111 1111"

    def test_errors_reflect_latest_input(self):
        form, _ = _form()
        form.update_field("cvc", "12")
        assert form.errors["cvc"] == "CVC must be 3 or 4 digits."
        form.update_field("cvc", "123")
        assert form.errors["cvc"] == ""

    def test_unknown_field_raises(self):
        form, _ = _form()
        with pytest.raises(KeyError):
            form.update_field("zip", "12345")

    def test_submittable_after_valid_input(self):
        form, _ = _form()
        _fill(form)
        assert form.submittable is True

    def test_short_cvc_makes_form_not_submittable(self):
        form, _ = _form()
        _fill(form)
        form.update_field("cvc", "12")
        assert form.submittable is False

    def test_expired_card_not_submittable(self):
        form, _ = _form()
        _fill(form, expiry="02/20")
        assert form.errors["expiry"] == "Card is expired."
        assert form.submittable is False

    @pytest.mark.asyncio
    async def test_submit_emits_single_success(self):
        form, events = _form()
        _fill(form)

        assert await form.submit() is True

        assert events == [PaymentSucceeded(bill_id="bill_1")]
        assert form.state is FormState.SUCCEEDED
        assert form.details == CardDetails()

    @pytest.mark.asyncio
    async def test_submit_rejected_when_invalid(self):
        form, events = _form()
        _fill(form, cvc="12")

        assert await form.submit() is False
        assert events == []
        assert form.state is FormState.EDITING

    @pytest.mark.asyncio
    async def test_second_submit_during_processing_is_rejected(self):
        form, events = _form(processing_delay=0.01)
        _fill(form)

        first = asyncio.create_task(form.submit())
        await asyncio.sleep(0)
        assert form.state is FormState.PROCESSING
        assert await form.submit() is False
        assert await first is True

        assert events == [PaymentSucceeded(bill_id="bill_1")]

    @pytest.mark.asyncio
    async def test_start_submit_moves_to_processing_immediately(self):
        form, events = _form()
        _fill(form)

        task = form.start_submit()
        assert task is not None
        assert form.state is FormState.PROCESSING
        assert form.start_submit() is None

        await task
        assert events == [PaymentSucceeded(bill_id="bill_1")]

    @pytest.mark.asyncio
    async def test_edits_ignored_while_processing(self):
        form, _ = _form(processing_delay=0.01)
        _fill(form)

        task = form.start_submit()
        assert form.update_field("cvc", "999") == "123"
        assert form.details.cvc == "123"
        await task

    @pytest.mark.asyncio
    async def test_cancel_not_available_while_processing(self):
        form, events = _form(processing_delay=0.01)
        _fill(form)

        task = form.start_submit()
        assert form.cancel() is False
        await task
        assert events == [PaymentSucceeded(bill_id="bill_1")]

    @pytest.mark.asyncio
    async def test_no_submit_after_success(self):
        form, events = _form()
        _fill(form)
        await form.submit()

        assert await form.submit() is False
        assert form.cancel() is False
        assert len(events) == 1

    def test_cancel_discards_details(self):
        form, events = _form()
        _fill(form, cvc="12")

        assert form.cancel() is True

        assert events == [PaymentCancelled()]
        assert form.state is FormState.CANCELLED
        assert form.details == CardDetails()
        assert all(e == "" for e in form.errors.values())

    def test_cancel_twice(self):
        form, events = _form()
        form.cancel()
        assert form.cancel() is False
        assert len(events) == 1


class TestFormWithoutBill:
    def _form(self):
        events: list = []
        form = CardPaymentForm(None, on_cancel=events.append, processing_delay=0)
        return form, events

    def test_guard_state(self):
        form, _ = self._form()
        assert form.state is FormState.UNAVAILABLE
        assert form.guard_error == "No bill selected for payment."

    def test_edits_ignored(self):
        form, _ = self._form()
        assert form.update_field("name", "Jane Doe") == ""
        assert form.submittable is False

    @pytest.mark.asyncio
    async def test_submit_is_noop(self):
        form, events = self._form()
        assert await form.submit() is False
        assert events == []

    def test_back_to_dashboard(self):
        form, events = self._form()
        assert form.cancel() is True
        assert events == [PaymentCancelled()]
