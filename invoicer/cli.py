"""CLI entry point for Invoicer."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Callable

from dotenv import load_dotenv

from .ai import create_assistant, create_extractor
from .ai.adapters import ExtractionAdapter, QAAdapter
from .config import InvoicerConfig, load_config
from .images import load_image
from .payment import FIELD_LABELS, FIELDS, CardPaymentForm, FormState
from .session import Screen, Session

CANCEL_WORD = ":cancel"

_MENU = """\
  [u] upload a bill image     [m] enter a bill manually
  [l] list bills              [p] pay a bill
  [a] ask the AI assistant    [o] log out
  [q] quit"""


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="invoicer",
        description="Invoicer: your AI-powered bill manager",
    )
    parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to the configuration file (TOML)",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Show debug logging"
    )

    sub = parser.add_subparsers(dest="command")

    # extract
    extract_parser = sub.add_parser("extract", help="Read bill fields from an image")
    extract_parser.add_argument("image", type=str, help="Bill image file")
    extract_parser.add_argument("--json", action="store_true", help="Output as JSON")

    # ask
    ask_parser = sub.add_parser("ask", help="Ask the AI financial assistant")
    ask_parser.add_argument("prompt", type=str, nargs="+", help="Your question")

    # shell
    sub.add_parser("shell", help="Start an interactive session")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    load_dotenv()
    try:
        config = load_config(args.config)
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    match args.command:
        case "extract":
            code = asyncio.run(_cmd_extract(config, args))
        case "ask":
            code = asyncio.run(_cmd_ask(config, args))
        case "shell":
            try:
                session = build_session(config)
            except ValueError as e:
                print(str(e), file=sys.stderr)
                sys.exit(1)
            code = asyncio.run(run_shell(session, currency=config.payment.currency))
        case _:
            code = 1
    if code:
        sys.exit(code)


def build_session(config: InvoicerConfig) -> Session:
    timeout = config.ai.timeout_seconds or None
    return Session(
        extraction=ExtractionAdapter(create_extractor(config), timeout=timeout),
        qa=QAAdapter(create_assistant(config), timeout=timeout),
        payment=config.payment,
    )


async def _cmd_extract(config: InvoicerConfig, args) -> int:
    try:
        data, mime_type = load_image(args.image)
        adapter = ExtractionAdapter(
            create_extractor(config), timeout=config.ai.timeout_seconds or None
        )
        print("🔍 Analyzing bill...", file=sys.stderr)
        result = await adapter.extract(data, mime_type)
    except (ValueError, ImportError, FileNotFoundError) as e:
        print(str(e), file=sys.stderr)
        return 1

    if result.failure is not None:
        print(str(result.failure), file=sys.stderr)
        return 1

    bill = result.bill
    if args.json:
        out = {
            "provider": bill.provider,
            "amount": float(bill.amount),
            "dueDate": bill.due_date,
            "invoiceNumber": bill.invoice_number,
        }
        print(json.dumps(out, ensure_ascii=False, indent=2))
    else:
        print(f"Provider:       {bill.provider}")
        print(f"Amount:         {config.payment.currency}{bill.amount:.2f}")
        print(f"Due date:       {bill.due_date}")
        print(f"Invoice number: {bill.invoice_number}")
    return 0


async def _cmd_ask(config: InvoicerConfig, args) -> int:
    prompt = " ".join(args.prompt)
    try:
        adapter = QAAdapter(
            create_assistant(config), timeout=config.ai.timeout_seconds or None
        )
        result = await adapter.ask(prompt)
    except (ValueError, ImportError) as e:
        print(str(e), file=sys.stderr)
        return 1

    if result.failure is not None:
        print(str(result.failure), file=sys.stderr)
        return 1
    print(result.answer)
    return 0


# -- interactive shell -----------------------------------------------------


async def run_shell(
    session: Session,
    input_fn: Callable[[str], str] = input,
    currency: str = "€",
) -> int:
    """Drive a session from the terminal until the user quits."""
    session.on_bill_added(
        lambda e: print(f"✅ Added: {e.bill.display(currency)}")
    )

    while True:
        if session.screen is Screen.LOGIN:
            print("\nInvoicer: your AI-powered bill manager.")
            answer = input_fn("Sign in? [y/N] ").strip().lower()
            if answer != "y":
                return 0
            session.login()
            continue

        print()
        print(_MENU)
        choice = input_fn("> ").strip().lower()

        match choice:
            case "u":
                await _shell_upload(session, input_fn)
            case "m":
                _shell_manual(session, input_fn)
            case "l":
                _print_bills(session, currency)
            case "p":
                await _shell_pay(session, input_fn, currency)
            case "a":
                await _shell_ask(session, input_fn)
            case "o":
                session.logout()
                print("Signed out.")
            case "q":
                return 0
            case _:
                print("Unknown choice.")


def _print_bills(session: Session, currency: str) -> None:
    if not session.bills:
        print("You have no bills yet. Add a bill to get started!")
        return
    today = session.today()
    print(f"My Bills ({len(session.bills)}):")
    for i, bill in enumerate(session.bills, 1):
        overdue = " ⚠ overdue" if bill.is_overdue(today) else ""
        print(f"  {i}. {bill.display(currency)}{overdue}")


async def _shell_upload(session: Session, input_fn: Callable[[str], str]) -> None:
    path = input_fn("Image path: ").strip()
    if not path:
        return
    try:
        data, mime_type = load_image(path)
    except (ValueError, FileNotFoundError) as e:
        print(f"❗ {e}")
        return

    print("🔍 Analyzing with AI...")
    bill = await session.analyze_image(data, mime_type)
    if bill is None and session.extraction_error:
        print(f"❗ {session.extraction_error}")
        session.dismiss_error()


def _shell_manual(session: Session, input_fn: Callable[[str], str]) -> None:
    provider = input_fn("Provider: ")
    invoice_number = input_fn("Invoice number: ")
    amount = input_fn("Amount: ")
    due_date = input_fn("Due date (YYYY-MM-DD): ")
    bill = session.add_manual_bill(provider, amount, due_date, invoice_number)
    if bill is None:
        print(f"❗ {session.manual_error}")


async def _shell_pay(
    session: Session, input_fn: Callable[[str], str], currency: str
) -> None:
    unpaid = [b for b in session.bills if b.payable]
    if not unpaid:
        print("No unpaid bills.")
        return
    for i, bill in enumerate(unpaid, 1):
        print(f"  {i}. {bill.display(currency)}")
    raw = input_fn("Bill to pay: ").strip()
    try:
        bill = unpaid[int(raw) - 1]
    except (ValueError, IndexError):
        print("Unknown bill.")
        return

    form = session.initiate_payment(bill.id)
    if form is None:
        print("That bill cannot be paid.")
        return
    await pay_with_form(form, input_fn, currency)


async def pay_with_form(
    form: CardPaymentForm, input_fn: Callable[[str], str], currency: str = "€"
) -> bool:
    """Collect card details field by field and submit the payment.

    Returns:
        True if the payment succeeded.
    """
    if form.state is FormState.UNAVAILABLE:
        print(f"❗ {form.guard_error}")
        input_fn("Press Enter to go back to the dashboard. ")
        form.cancel()
        return False

    bill = form.bill
    print(f"\nSecure Payment: {bill.provider}")
    print(f"Amount to Pay: {currency}{bill.amount:.2f}  (Invoice #: {bill.invoice_number})")
    print(f"Type {CANCEL_WORD} at any prompt to cancel.")

    while not form.submittable:
        for field_name in FIELDS:
            if form.details.get(field_name) and not form.errors[field_name]:
                continue
            while True:
                raw = input_fn(f"{FIELD_LABELS[field_name]}: ")
                if raw.strip() == CANCEL_WORD:
                    form.cancel()
                    print("Payment cancelled.")
                    return False
                value = form.update_field(field_name, raw)
                error = form.errors[field_name]
                if not error:
                    if value != raw:
                        print(f"  → {value}")
                    break
                print(f"  ❗ {error}")

    print("💳 Processing payment securely...")
    if not await form.submit():
        return False
    print("✅ Payment complete.")
    return True


async def _shell_ask(session: Session, input_fn: Callable[[str], str]) -> None:
    prompt = input_fn("Question: ")
    if not prompt.strip():
        return
    print("🤔 Thinking...")
    answer = await session.assistant.ask(prompt)
    if answer is None:
        print(f"❗ {session.assistant.error}")
    else:
        print(answer)
