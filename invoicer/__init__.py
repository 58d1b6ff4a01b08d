"""Invoicer: AI-assisted bill capture with a simulated card payment form."""

from .ai import (
    Assistant,
    BillExtractor,
    ExtractedBill,
    ExtractionFailure,
    QAFailure,
    create_assistant,
    create_extractor,
)
from .ai.adapters import AnswerResult, ExtractionAdapter, ExtractionResult, QAAdapter
from .config import AIConfig, InvoicerConfig, PaymentConfig, load_config
from .models import (
    Bill,
    BillAdded,
    BillStatus,
    PaymentCancelled,
    PaymentSucceeded,
)
from .payment import CardDetails, CardPaymentForm, FormState, compute_validity
from .registry import BillRegistry
from .session import QAPanel, Screen, Session

__all__ = [
    "Bill",
    "BillStatus",
    "BillAdded",
    "PaymentSucceeded",
    "PaymentCancelled",
    "BillRegistry",
    "CardDetails",
    "CardPaymentForm",
    "FormState",
    "compute_validity",
    "BillExtractor",
    "Assistant",
    "ExtractedBill",
    "ExtractionFailure",
    "QAFailure",
    "create_extractor",
    "create_assistant",
    "ExtractionAdapter",
    "ExtractionResult",
    "QAAdapter",
    "AnswerResult",
    "Session",
    "Screen",
    "QAPanel",
    "InvoicerConfig",
    "AIConfig",
    "PaymentConfig",
    "load_config",
]
