"""
Markdown renderer for the finished guide.

Runs once, after the writer pool's join barrier, as the only reader of the
slot aggregator. Output order is slot order and nothing else: the renderer
never inspects timing or reorders blocks.

Layout:
  # Comprehensive Guide: SUBJECT
  ## Table of Contents
  - [1. Label](#1-label)
  ...
  ---
  <chunk 0 body or failure placeholder>
  ---
  <chunk 1 ...>
  ---
"""

from __future__ import annotations

import logging
import re
from typing import Sequence, TextIO

from anchors import anchor_for
from partitioner import Chunk, Item
from prompts import (
    FAILURE_BODY_TEMPLATE,
    FAILURE_HEADING_TEMPLATE,
    SECTION_SEPARATOR,
    TITLE_TEMPLATE,
    TOC_HEADING,
)
from slot_aggregator import AggregationInvariantViolation, ChunkResult

logger = logging.getLogger("aiguide.renderer")

_HEADING = re.compile(r"^#{1,6}\s+\**\s*(\d+)[.)]?(?:\s|\*|$)")
_LINK_TEXT_SPECIAL = re.compile(r"([\[\]\\])")


def normalize_body(text: str) -> str:
    """Strip whitespace and a code fence wrapped around the whole answer."""
    body = text.strip()
    for prefix in ("```markdown", "```md", "```"):
        if body.startswith(prefix):
            body = body[len(prefix):]
            # Closing fence only belongs to us if we removed an opening one.
            if body.endswith("```"):
                body = body[:-3]
            break
    return body.strip()


def _link_text(label: str) -> str:
    """Backslash-escape brackets so a label cannot close its own link."""
    return _LINK_TEXT_SPECIAL.sub(r"\\\1", label)


def _anchor_tag(item: Item) -> str:
    return f'<a id="{anchor_for(item.ordinal, item.text)}"></a>'


def place_anchors(body: str, items: Sequence[Item]) -> str:
    """Insert an anchor tag above the heading for each item.

    An item is matched to the first heading line starting with its
    ordinal. Items with no matching heading get their tag at the top of
    the block, so every ToC link still resolves into the right section.
    """
    by_ordinal = {item.ordinal: item for item in items}
    placed: set[int] = set()
    out: list[str] = []

    for line in body.splitlines():
        match = _HEADING.match(line)
        if match:
            ordinal = int(match.group(1))
            if ordinal in by_ordinal and ordinal not in placed:
                out.append(_anchor_tag(by_ordinal[ordinal]))
                placed.add(ordinal)
        out.append(line)

    missing = [_anchor_tag(item) for item in items if item.ordinal not in placed]
    if missing:
        out = missing + [""] + out if out else missing
    return "\n".join(out)


def failure_block(chunk: Chunk, reason: str) -> str:
    """Placeholder naming the failed ordinal range and the reason."""
    heading = FAILURE_HEADING_TEMPLATE.format(
        first=chunk.first_ordinal, last=chunk.last_ordinal,
    )
    return f"{heading}\n\n{FAILURE_BODY_TEMPLATE.format(reason=reason)}"


class GuideRenderer:
    """Streams the guide to a text sink in a single linear pass.

    Args:
        sink: Any object with ``write(str)`` (open file, ``sys.stdout``,
            ``io.StringIO``).
    """

    def __init__(self, sink: TextIO) -> None:
        self._sink = sink

    def _emit(self, text: str) -> None:
        self._sink.write(text)

    def write_header(self, subject: str, items: Sequence[Item]) -> None:
        """Title line, table of contents, and the first separator."""
        self._emit(TITLE_TEMPLATE.format(subject=subject.upper()) + "\n\n")
        toc = [TOC_HEADING, ""]
        for item in items:
            toc.append(f"- [{_link_text(item.label)}](#{anchor_for(item.ordinal, item.text)})")
        self._emit("\n".join(toc) + "\n\n" + SECTION_SEPARATOR + "\n\n")

    def write_body(self, chunks: Sequence[Chunk], results: Sequence[ChunkResult]) -> None:
        """One block per chunk in index order, each followed by a separator."""
        if len(chunks) != len(results):
            raise AggregationInvariantViolation(
                f"{len(results)} results for {len(chunks)} chunks"
            )
        for chunk, result in zip(chunks, results):
            if result.index != chunk.index:
                raise AggregationInvariantViolation(
                    f"Slot {chunk.index} holds result for chunk {result.index}"
                )
            if result.ok:
                block = place_anchors(normalize_body(result.text or ""), chunk.items)
            else:
                logger.debug("Rendering placeholder for chunk %d", chunk.index)
                block = place_anchors(failure_block(chunk, result.error or "unknown error"), chunk.items)
            self._emit(block + "\n\n" + SECTION_SEPARATOR + "\n")

    def render(
        self,
        subject: str,
        items: Sequence[Item],
        chunks: Sequence[Chunk],
        results: Sequence[ChunkResult],
    ) -> None:
        """Write the complete guide."""
        self.write_header(subject, items)
        self.write_body(chunks, results)
