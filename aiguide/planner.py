"""Planner: turns a subject into the ordered concept list.

One completion call asks the model for a numbered list; the response is
parsed line by line into 1-based Items. Those items drive the table of
contents and the chunks handed to the writer pool.
"""

import logging
import re

from partitioner import Item, build_items
from prompts import CONCEPT_LIST_PROMPT, CONCEPT_LIST_SYSTEM_PROMPT
from writer_pool import GenerateFn

logger = logging.getLogger("aiguide.planner")


# ---------------------------------------------------------------------------
# Concept list parsing
# ---------------------------------------------------------------------------

# "12. Text", "12) Text", "- Text", "* Text", optionally bolded numbering.
_NUMBERED = re.compile(r"^\**\s*\d+\s*[.):]?\**\s+(.*)$")
_BULLET = re.compile(r"^[-*]\s+(.*)$")


def _strip_numbering(line: str) -> str | None:
    """Return the concept text of a list line, or None for non-list lines."""
    for pattern in (_NUMBERED, _BULLET):
        match = pattern.match(line)
        if match:
            text = match.group(1).strip()
            return text or None
    return None


def parse_concept_list(text: str) -> list[Item]:
    """Parse a numbered or bulleted list into contiguous 1-based items.

    Lines that are not list entries (preamble, code fences, blank lines)
    are skipped. The model's own numbering is discarded and items are
    renumbered in order, so gaps or duplicates in the response cannot
    produce colliding anchors.
    """
    concepts: list[str] = []
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("```"):
            continue
        if not (line[0].isdigit() or line[0] in "-*"):
            continue
        concept = _strip_numbering(line)
        if concept:
            concepts.append(concept)
    return build_items(concepts)


# ---------------------------------------------------------------------------
# ConceptPlanner
# ---------------------------------------------------------------------------

class ConceptPlanner:
    """Requests and parses the concept list for a subject.

    Args:
        generate_fn: Callable(system_prompt, user_prompt) -> text.
    """

    def __init__(self, generate_fn: GenerateFn) -> None:
        self._generate_fn = generate_fn

    def plan(self, subject: str, count: int) -> list[Item]:
        """Return up to *count* items for *subject*.

        Raises:
            GenerationError: if the completion call fails.
        """
        prompt = CONCEPT_LIST_PROMPT.format(count=count, subject=subject)
        response = self._generate_fn(CONCEPT_LIST_SYSTEM_PROMPT, prompt)
        items = parse_concept_list(response)

        if len(items) > count:
            logger.info("Model returned %d concepts, keeping the first %d", len(items), count)
            items = items[:count]
        elif len(items) < count:
            logger.warning("Requested %d concepts, model returned %d", count, len(items))
        return items
