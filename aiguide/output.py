"""Output sink selection and guide file naming."""

import logging
import re
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, TextIO

from guide_config import GuideConfig

logger = logging.getLogger("aiguide.output")

_UNSAFE = re.compile(r"[^a-zA-Z0-9]+")


def guide_filename(subject: str, now: Optional[datetime] = None) -> str:
    """``"Rust async/await"`` → ``"Rust_async_await_20240101-120000.md"``."""
    stamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    return f"{_UNSAFE.sub('_', subject)}_{stamp}.md"


@contextmanager
def open_sink(config: GuideConfig, now: Optional[datetime] = None) -> Iterator[TextIO]:
    """Yield stdout in ``--stdout`` mode, otherwise a new guide file.

    The file is UTF-8 and closed on exit; stdout is left open.
    """
    if config.stdout:
        yield sys.stdout
        sys.stdout.flush()
        return

    config.output_dir.mkdir(parents=True, exist_ok=True)
    path = Path(config.output_dir) / guide_filename(config.subject, now)
    print(f"-> Outputting to: {path}")
    logger.info("Writing guide to %s", path)
    with path.open("w", encoding="utf-8") as fh:
        yield fh
