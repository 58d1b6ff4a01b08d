"""TOML configuration loader for Invoicer."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        tomllib = None  # type: ignore[assignment]

# smallest extended-thinking budget the Anthropic API accepts
MIN_THINKING_BUDGET = 1024


@dataclass
class GeminiConfig:
    api_key: str = ""
    extraction_model: str = "gemini-2.5-flash"
    assistant_model: str = "gemini-2.5-pro"


@dataclass
class ClaudeConfig:
    api_key: str = ""
    model: str = "claude-sonnet-4-5-20250929"


@dataclass
class AIConfig:
    backend: str = "gemini"
    # 0 disables the timeout
    timeout_seconds: float = 0.0
    # reasoning tokens for the assistant, 0 disables extended thinking
    thinking_budget: int = 32768
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    claude: ClaudeConfig = field(default_factory=ClaudeConfig)


@dataclass
class PaymentConfig:
    processing_delay: float = 2.5
    currency: str = "€"


@dataclass
class InvoicerConfig:
    ai: AIConfig = field(default_factory=AIConfig)
    payment: PaymentConfig = field(default_factory=PaymentConfig)


def load_config(path: str | Path | None = None) -> InvoicerConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    API keys can be overridden via environment variables.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            if tomllib is None:
                raise ImportError(
                    "tomli is required on Python < 3.11: pip install tomli"
                )
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    ai = raw.get("ai", {})
    pay = raw.get("payment", {})

    gemini_cfg = ai.get("gemini", {})
    claude_cfg = ai.get("claude", {})

    # Resolve API keys: config file → environment variable
    gemini_api_key = (
        gemini_cfg.get("api_key", "")
        or os.environ.get("GEMINI_API_KEY", "")
        or os.environ.get("API_KEY", "")
    )
    claude_api_key = claude_cfg.get("api_key", "") or os.environ.get(
        "ANTHROPIC_API_KEY", ""
    )

    timeout = float(ai.get("timeout_seconds", 0.0))
    if timeout < 0:
        raise ValueError(f"ai.timeout_seconds must not be negative: {timeout}")

    thinking_budget = int(ai.get("thinking_budget", 32768))
    if thinking_budget != 0 and thinking_budget < MIN_THINKING_BUDGET:
        raise ValueError(
            f"ai.thinking_budget must be 0 or at least {MIN_THINKING_BUDGET}: "
            f"{thinking_budget}"
        )

    delay = float(pay.get("processing_delay", 2.5))
    if delay < 0:
        raise ValueError(f"payment.processing_delay must not be negative: {delay}")

    return InvoicerConfig(
        ai=AIConfig(
            backend=ai.get("backend", "gemini"),
            timeout_seconds=timeout,
            thinking_budget=thinking_budget,
            gemini=GeminiConfig(
                api_key=gemini_api_key,
                extraction_model=gemini_cfg.get(
                    "extraction_model", "gemini-2.5-flash"
                ),
                assistant_model=gemini_cfg.get("assistant_model", "gemini-2.5-pro"),
            ),
            claude=ClaudeConfig(
                api_key=claude_api_key,
                model=claude_cfg.get("model", "claude-sonnet-4-5-20250929"),
            ),
        ),
        payment=PaymentConfig(
            processing_delay=delay,
            currency=pay.get("currency", "€"),
        ),
    )
