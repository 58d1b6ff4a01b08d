"""Single-call wrappers that turn AI backend failures into results."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from . import (
    Assistant,
    BillExtractor,
    ExtractedBill,
    ExtractionFailure,
    QAFailure,
)

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    bill: ExtractedBill | None = None
    failure: ExtractionFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None and self.bill is not None


@dataclass
class AnswerResult:
    answer: str | None = None
    failure: QAFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None and self.answer is not None


async def _bounded(coro, timeout: float | None):
    if not timeout:
        return await coro
    return await asyncio.wait_for(coro, timeout)


class ExtractionAdapter:
    """Calls a BillExtractor once; unclear images come back as failures.

    Configuration problems (missing API key, missing SDK) still raise.
    """

    def __init__(self, extractor: BillExtractor, timeout: float | None = None) -> None:
        self._extractor = extractor
        self._timeout = timeout

    async def extract(self, image: bytes, mime_type: str) -> ExtractionResult:
        try:
            bill = await _bounded(
                self._extractor.extract_bill(image, mime_type), self._timeout
            )
        except ExtractionFailure as e:
            logger.warning("Bill extraction failed", exc_info=True)
            return ExtractionResult(failure=e)
        except asyncio.TimeoutError:
            logger.warning("Bill extraction timed out after %ss", self._timeout)
            return ExtractionResult(failure=ExtractionFailure())
        return ExtractionResult(bill=bill)


class QAAdapter:
    """Calls an Assistant once and wraps the answer or failure."""

    def __init__(self, assistant: Assistant, timeout: float | None = None) -> None:
        self._assistant = assistant
        self._timeout = timeout

    async def ask(self, prompt: str) -> AnswerResult:
        try:
            answer = await _bounded(self._assistant.answer(prompt), self._timeout)
        except QAFailure as e:
            logger.warning("Assistant request failed", exc_info=True)
            return AnswerResult(failure=e)
        except asyncio.TimeoutError:
            logger.warning("Assistant request timed out after %ss", self._timeout)
            return AnswerResult(failure=QAFailure())
        return AnswerResult(answer=answer)
