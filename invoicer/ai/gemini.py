"""Gemini API backends for bill extraction and Q&A."""

from __future__ import annotations

from . import (
    EXTRACTION_PROMPT,
    Assistant,
    BillExtractor,
    ExtractedBill,
    ExtractionFailure,
    QAFailure,
    parse_extraction_response,
)

BILL_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "provider": {"type": "STRING", "description": "The name of the bill provider."},
        "amount": {"type": "NUMBER", "description": "The total amount due."},
        "dueDate": {
            "type": "STRING",
            "description": "The due date in YYYY-MM-DD format.",
        },
        "invoiceNumber": {
            "type": "STRING",
            "description": "The unique invoice or bill number.",
        },
    },
    "required": ["provider", "amount", "dueDate", "invoiceNumber"],
}


def _load_genai(api_key: str):
    if not api_key:
        raise ValueError(
            "Gemini API key is not configured. "
            "Check the config file or the GEMINI_API_KEY environment variable."
        )

    try:
        import google.generativeai as genai
    except ImportError:
        raise ImportError(
            "google-generativeai SDK is required: pip install google-generativeai"
        ) from None

    genai.configure(api_key=api_key)
    return genai


class GeminiBillExtractor(BillExtractor):
    """Read bill fields using Google Gemini's vision capability."""

    def __init__(self, api_key: str = "", model: str = "gemini-2.5-flash") -> None:
        self._api_key = api_key
        self._model = model

    async def extract_bill(self, image: bytes, mime_type: str) -> ExtractedBill:
        genai = _load_genai(self._api_key)
        model = genai.GenerativeModel(self._model)

        parts: list = [{"mime_type": mime_type, "data": image}, EXTRACTION_PROMPT]
        try:
            response = await model.generate_content_async(
                parts,
                generation_config={
                    "response_mime_type": "application/json",
                    "response_schema": BILL_SCHEMA,
                },
            )
            text = response.text
        except Exception as e:
            raise ExtractionFailure() from e
        return parse_extraction_response(text)


class GeminiAssistant(Assistant):
    """Answer free-form questions with a Gemini model.

    google-generativeai exposes no thinking budget; the 2.5 Pro model
    reasons by default.
    """

    def __init__(self, api_key: str = "", model: str = "gemini-2.5-pro") -> None:
        self._api_key = api_key
        self._model = model

    async def answer(self, prompt: str) -> str:
        genai = _load_genai(self._api_key)
        model = genai.GenerativeModel(self._model)

        try:
            response = await model.generate_content_async(prompt)
            return response.text
        except Exception as e:
            raise QAFailure() from e
