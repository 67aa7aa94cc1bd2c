"""Logging configuration for aiguide.

Human-readable text by default, JSON lines with ``LOG_FORMAT=json``.
Logs go to stderr: stdout may be carrying the guide itself (``--stdout``).
API keys are redacted from every record before it is formatted.
"""

import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Optional


class _JsonFormatter(logging.Formatter):
    """Emit each log record as a single JSON line.

    Merges any ``extra`` fields from the record into the top-level object
    so callers can do ``logger.info("msg", extra={"chunk": 3})`` and get
    ``{"chunk": 3}`` alongside the standard fields.
    """

    _RESERVED = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys())

    def format(self, record: logging.LogRecord) -> str:
        payload: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in self._RESERVED and key not in payload:
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


# ---------------------------------------------------------------------------
# Secret redaction
# ---------------------------------------------------------------------------

# Whole match is the secret.
_SECRET_PATTERNS = [
    re.compile(r'\bsk-[a-zA-Z0-9_\-]{20,}'),             # OpenAI keys
    re.compile(r'\bor-[a-zA-Z0-9]{20,}'),                # OpenRouter keys
]

# Group 1 is a label to keep; the rest of the match is the secret.
_LABELLED_SECRET_PATTERNS = [
    re.compile(r'(?i)(bearer\s+)[a-zA-Z0-9._\-]{20,}'),  # Bearer tokens
    re.compile(                                           # key=value secrets
        r'(?i)((?:api_key|secret|password|token|authorization)[=:]\s*)[^\s,\'"]{8,}'
    ),
]

_REDACTED = "***REDACTED***"


def redact(text: str) -> str:
    """Replace anything that looks like a credential in *text*."""
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(_REDACTED, text)
    for pattern in _LABELLED_SECRET_PATTERNS:
        text = pattern.sub(lambda m: m.group(1) + _REDACTED, text)
    return text


class _SecretFilter(logging.Filter):
    """Redact potential secrets from log messages and exception text."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact(record.getMessage())
        record.args = None
        if record.exc_text:
            record.exc_text = redact(record.exc_text)
        return True


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure process-wide logging.

    Args:
        log_level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL. Defaults to INFO.
        log_format: ``"json"`` for structured output, ``"text"`` for
            human-readable. Defaults to ``"text"``.
    """
    level = (log_level or "INFO").upper()
    fmt = (log_format or "text").lower()

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(_SecretFilter())

    if fmt == "json":
        handler.setFormatter(_JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Per-request connection chatter from requests/urllib3 and litellm.
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)

    logging.getLogger("aiguide.logging").debug(
        "Logging configured", extra={"level": level, "format": fmt},
    )
