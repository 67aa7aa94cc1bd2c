"""Partition an ordered concept list into writer chunks.

Each chunk becomes one completion request in the writer pool, so the
chunk size trades request count against answer length per request.

The single entry point is ``partition_items``. It is a pure function:
chunks are built once, before any thread starts, and are never mutated
afterwards. Concatenating ``chunk.items`` in index order reproduces the
input sequence exactly.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Iterable, Sequence

from guide_config import ConfigurationError

logger = logging.getLogger("aiguide.partitioner")


class NoItemsError(ConfigurationError):
    """The item list is empty; there is nothing to dispatch.

    Distinct from other configuration errors so the caller can report
    "nothing to do" instead of a failure.
    """


# ---------------------------------------------------------------------------
# Public data structures
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class Item:
    """One concept or question in the guide.

    Attributes:
        ordinal: 1-based position, unique and contiguous across the run.
        text:    The concept text without its numbering.
    """

    ordinal: int
    text: str

    @property
    def label(self) -> str:
        """Displayed label, e.g. ``"3. What is a closure?"``."""
        return f"{self.ordinal}. {self.text}"


@dataclasses.dataclass(frozen=True)
class Chunk:
    """A contiguous group of items sent to the model in one request.

    Attributes:
        index: 0-based chunk position; also the result slot index.
        items: Non-empty tuple of items with contiguous ordinals.
    """

    index: int
    items: tuple[Item, ...]

    @property
    def first_ordinal(self) -> int:
        return self.items[0].ordinal

    @property
    def last_ordinal(self) -> int:
        return self.items[-1].ordinal

    @property
    def text(self) -> str:
        """Item labels joined one per line, the body of the chunk prompt."""
        return "\n".join(item.label for item in self.items)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def build_items(texts: Iterable[str]) -> list[Item]:
    """Number *texts* 1..N in the order given."""
    return [Item(ordinal=i, text=t) for i, t in enumerate(texts, 1)]


def partition_items(items: Sequence[Item], chunk_size: int) -> list[Chunk]:
    """Split *items* into ``ceil(N / chunk_size)`` chunks in order.

    Every chunk except possibly the last holds exactly *chunk_size* items.

    Raises:
        ConfigurationError: if *chunk_size* is not positive.
        NoItemsError: if *items* is empty.
    """
    if chunk_size <= 0:
        raise ConfigurationError(f"chunk_size must be a positive integer, got {chunk_size}")
    if not items:
        raise NoItemsError("No items to partition")

    chunks = [
        Chunk(index=idx, items=tuple(items[start:start + chunk_size]))
        for idx, start in enumerate(range(0, len(items), chunk_size))
    ]
    logger.debug(
        "Partitioned %d items into %d chunks (chunk_size=%d)",
        len(items), len(chunks), chunk_size,
    )
    return chunks
