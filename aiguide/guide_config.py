"""
Run configuration and validation.

Single source of truth for everything a guide run needs: endpoint, model,
subject, and the pool sizing knobs. Values come from the environment
(``.env`` is loaded via python-dotenv) and are overridden by CLI flags.

The result is a frozen ``GuideConfig`` passed explicitly to the planner,
the writer pool, and the renderer. Nothing reads ``os.environ`` after
``load_config()`` returns, so two runs with different configs can coexist
in one process.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from prompts import (
    ADDITIONAL_INSTRUCTIONS_HEADER,
    DEFAULT_BASE_URL,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MODEL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SYSTEM_PROMPT,
    DEFAULT_TEMPERATURE,
    DEFAULT_THREADS,
    DEFAULT_TOTAL_COUNT,
)

logger = logging.getLogger("aiguide.config")


class ConfigurationError(ValueError):
    """Run configuration is unusable; raised before any work is scheduled."""


@dataclass(frozen=True)
class GuideConfig:
    """Immutable settings for one guide run."""

    subject: str
    api_key: str = field(repr=False)
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL

    total_count: int = DEFAULT_TOTAL_COUNT
    chunk_size: int = DEFAULT_CHUNK_SIZE
    threads: int = DEFAULT_THREADS

    stdout: bool = False
    output_dir: Path = Path(".")
    system_prompt: str = DEFAULT_SYSTEM_PROMPT

    temperature: float = DEFAULT_TEMPERATURE
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT

    # Circuit breaker around the completions endpoint; 0 (default) disables it.
    failure_threshold: int = 0
    cooldown_seconds: float = 60.0

    log_level: str = "INFO"
    log_format: str = "text"

    @property
    def completions_url(self) -> str:
        """Full chat-completions endpoint derived from ``base_url``."""
        return f"{self.base_url.rstrip('/')}/chat/completions"

    def validate(self) -> "GuideConfig":
        """Raise ConfigurationError on unusable values; return self otherwise."""
        if not self.subject or not self.subject.strip():
            raise ConfigurationError("A subject is required.")
        if not self.api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY environment variable is required."
            )
        for name in ("total_count", "chunk_size", "threads"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(f"{name} must be a positive integer, got {value}")
        if self.request_timeout <= 0:
            raise ConfigurationError(
                f"request_timeout must be positive, got {self.request_timeout}"
            )
        if self.failure_threshold < 0:
            raise ConfigurationError(
                f"failure_threshold must be >= 0, got {self.failure_threshold}"
            )
        return self

    def with_overrides(self, **changes: Any) -> "GuideConfig":
        """Return a copy with *changes* applied (``None`` values are ignored)."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


# ---------------------------------------------------------------------------
# System prompt assembly
# ---------------------------------------------------------------------------

def build_system_prompt(prompt_path: str | None = None, info: str | None = None) -> str:
    """Load the writer instructions and append any extra user instructions.

    Args:
        prompt_path: Optional file that replaces the default instructions.
        info: Optional free text appended under an
            ``ADDITIONAL USER INSTRUCTIONS`` header.

    Raises:
        ConfigurationError: if *prompt_path* cannot be read.
    """
    if prompt_path:
        try:
            prompt = Path(prompt_path).read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigurationError(f"Error reading system prompt file: {exc}") from exc
    else:
        prompt = DEFAULT_SYSTEM_PROMPT

    if info:
        prompt += ADDITIONAL_INSTRUCTIONS_HEADER + info
    return prompt


# ---------------------------------------------------------------------------
# Environment loading
# ---------------------------------------------------------------------------

def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def load_config(subject: str, **overrides: Any) -> GuideConfig:
    """Build a validated GuideConfig from the environment plus *overrides*.

    Resolution order per field: explicit override (CLI) → environment →
    built-in default. ``None`` overrides are treated as "not given".

    Raises:
        ConfigurationError: on missing API key or invalid values.
    """
    load_dotenv()

    config = GuideConfig(
        subject=subject,
        api_key=os.getenv("OPENAI_API_KEY", ""),
        base_url=os.getenv("OPENAI_BASE_URL") or DEFAULT_BASE_URL,
        model=os.getenv("OPENAI_MODEL") or DEFAULT_MODEL,
        output_dir=Path(os.getenv("AIGUIDE_OUTPUT_DIR", ".")),
        temperature=_env_float("AIGUIDE_TEMPERATURE", DEFAULT_TEMPERATURE),
        request_timeout=_env_int("AIGUIDE_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
        failure_threshold=_env_int("AIGUIDE_FAILURE_THRESHOLD", 0),
        cooldown_seconds=_env_float("AIGUIDE_COOLDOWN_SECONDS", 60.0),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_format=os.getenv("LOG_FORMAT", "text"),
    )
    config = config.with_overrides(**overrides).validate()
    logger.debug(
        "Config: model=%s base_url=%s count=%d chunk=%d threads=%d",
        config.model, config.base_url, config.total_count,
        config.chunk_size, config.threads,
    )
    return config
