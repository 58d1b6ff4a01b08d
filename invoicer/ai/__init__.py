"""AI backend base classes, data types, and factories."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from ..models import NOT_AVAILABLE

if TYPE_CHECKING:
    from ..config import InvoicerConfig

EXTRACTION_PROMPT = """\
Analyze this bill image. Extract the provider name, total amount due, due date,
and invoice number. If a value is missing, use 'N/A' for strings and 0 for
numbers.

Return only a JSON object of this shape (no other text):
{"provider": "name of the bill provider",
 "amount": total amount due as a number,
 "dueDate": "due date in YYYY-MM-DD format",
 "invoiceNumber": "the unique invoice or bill number"}
"""

EXTRACTION_FAILED = (
    "Failed to analyze the bill. The image might be unclear or not a valid bill."
)
ANSWER_FAILED = "Failed to get an answer from the AI assistant."


class ExtractionFailure(Exception):
    """Bill fields could not be read from an image."""

    def __init__(self, message: str = EXTRACTION_FAILED) -> None:
        super().__init__(message)


class QAFailure(Exception):
    """The assistant did not produce an answer."""

    def __init__(self, message: str = ANSWER_FAILED) -> None:
        super().__init__(message)


@dataclass(frozen=True)
class ExtractedBill:
    provider: str
    amount: Decimal
    due_date: str
    invoice_number: str


class BillExtractor(ABC):
    """Abstract base for reading bill fields from an image."""

    @abstractmethod
    async def extract_bill(self, image: bytes, mime_type: str) -> ExtractedBill:
        """Extract bill fields from raw image bytes.

        Raises:
            ExtractionFailure: If the model reply cannot be used.
        """
        ...


class Assistant(ABC):
    """Abstract base for free-form financial questions."""

    @abstractmethod
    async def answer(self, prompt: str) -> str:
        ...


def _text_or_na(value: Any) -> str:
    if value is None:
        return NOT_AVAILABLE
    text = str(value).strip()
    return text or NOT_AVAILABLE


def _amount(value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        return Decimal("0")
    try:
        amount = Decimal(str(value).strip().replace(",", ""))
    except InvalidOperation:
        return Decimal("0")
    if not amount.is_finite() or amount < 0:
        return Decimal("0")
    return amount


def coerce_extracted_bill(data: dict[str, Any]) -> ExtractedBill:
    """Build an ExtractedBill from loosely typed model output.

    Missing string fields become "N/A"; the amount becomes a non-negative
    Decimal (0 when missing or unreadable).
    """
    return ExtractedBill(
        provider=_text_or_na(data.get("provider")),
        amount=_amount(data.get("amount")),
        due_date=_text_or_na(data.get("dueDate", data.get("due_date"))),
        invoice_number=_text_or_na(
            data.get("invoiceNumber", data.get("invoice_number"))
        ),
    )


def parse_extraction_response(text: str) -> ExtractedBill:
    """Parse the JSON object from a model reply.

    Raises:
        ExtractionFailure: If the reply is not a JSON object.
    """
    # Strip markdown fences if present
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ExtractionFailure() from e
    if not isinstance(data, dict):
        raise ExtractionFailure()
    return coerce_extracted_bill(data)


def create_extractor(config: InvoicerConfig) -> BillExtractor:
    """Create a bill extractor based on configuration."""
    backend_name = config.ai.backend

    match backend_name:
        case "gemini":
            from .gemini import GeminiBillExtractor

            return GeminiBillExtractor(
                api_key=config.ai.gemini.api_key,
                model=config.ai.gemini.extraction_model,
            )
        case "claude":
            from .claude import ClaudeBillExtractor

            return ClaudeBillExtractor(
                api_key=config.ai.claude.api_key,
                model=config.ai.claude.model,
            )
        case _:
            raise ValueError(
                f"Unknown AI backend: {backend_name!r} (choose gemini or claude)"
            )


def create_assistant(config: InvoicerConfig) -> Assistant:
    """Create a Q&A assistant based on configuration."""
    backend_name = config.ai.backend

    match backend_name:
        case "gemini":
            from .gemini import GeminiAssistant

            return GeminiAssistant(
                api_key=config.ai.gemini.api_key,
                model=config.ai.gemini.assistant_model,
            )
        case "claude":
            from .claude import ClaudeAssistant

            return ClaudeAssistant(
                api_key=config.ai.claude.api_key,
                model=config.ai.claude.model,
                thinking_budget=config.ai.thinking_budget,
            )
        case _:
            raise ValueError(
                f"Unknown AI backend: {backend_name!r} (choose gemini or claude)"
            )
