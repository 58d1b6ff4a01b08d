"""Claude API backends for bill extraction and Q&A."""

from __future__ import annotations

import base64

from . import (
    EXTRACTION_PROMPT,
    Assistant,
    BillExtractor,
    ExtractedBill,
    ExtractionFailure,
    QAFailure,
    parse_extraction_response,
)

ANSWER_TOKENS = 4096
THINKING_REQUEST_TIMEOUT = 600.0


def _client(api_key: str):
    if not api_key:
        raise ValueError(
            "Anthropic API key is not configured. "
            "Check the config file or the ANTHROPIC_API_KEY environment variable."
        )

    try:
        import anthropic
    except ImportError:
        raise ImportError(
            "anthropic SDK is required: pip install anthropic"
        ) from None

    return anthropic.AsyncAnthropic(api_key=api_key)


class ClaudeBillExtractor(BillExtractor):
    """Read bill fields using Claude's vision capability."""

    def __init__(
        self, api_key: str = "", model: str = "claude-sonnet-4-5-20250929"
    ) -> None:
        self._api_key = api_key
        self._model = model

    async def extract_bill(self, image: bytes, mime_type: str) -> ExtractedBill:
        client = _client(self._api_key)

        content: list[dict] = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": mime_type,
                    "data": base64.standard_b64encode(image).decode(),
                },
            },
            {"type": "text", "text": EXTRACTION_PROMPT},
        ]

        try:
            response = await client.messages.create(
                model=self._model,
                max_tokens=1024,
                messages=[{"role": "user", "content": content}],
            )
            text = response.content[0].text
        except Exception as e:
            raise ExtractionFailure() from e
        return parse_extraction_response(text)


class ClaudeAssistant(Assistant):
    """Answer free-form questions with a Claude model.

    With a non-zero `thinking_budget` the request enables extended thinking
    and leaves `ANSWER_TOKENS` of output room above the budget.
    """

    def __init__(
        self,
        api_key: str = "",
        model: str = "claude-sonnet-4-5-20250929",
        thinking_budget: int = 0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._thinking_budget = thinking_budget

    async def answer(self, prompt: str) -> str:
        client = _client(self._api_key)

        kwargs: dict = {"max_tokens": ANSWER_TOKENS}
        if self._thinking_budget:
            kwargs["max_tokens"] = self._thinking_budget + ANSWER_TOKENS
            kwargs["thinking"] = {
                "type": "enabled",
                "budget_tokens": self._thinking_budget,
            }
            # the SDK refuses large non-streaming requests without an explicit timeout
            kwargs["timeout"] = THINKING_REQUEST_TIMEOUT

        try:
            response = await client.messages.create(
                model=self._model,
                messages=[{"role": "user", "content": prompt}],
                **kwargs,
            )
            return "".join(
                block.text for block in response.content if block.type == "text"
            )
        except Exception as e:
            raise QAFailure() from e
