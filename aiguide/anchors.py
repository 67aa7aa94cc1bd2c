"""Deterministic anchor slugs for the table of contents.

The same function builds the ToC links and the anchor tags placed in the
body. Any change here changes both sides at once, so links cannot drift.

Slug rule: lower-case the text, drop everything except ``[a-z0-9]``,
whitespace and ``-``, collapse whitespace runs to one hyphen, and prefix
the ordinal: ``"3. What's a Closure?"`` → ``"3-whats-a-closure"``.
The ordinal prefix alone keeps anchors unique when two texts collide.
"""

import re

_DISALLOWED = re.compile(r"[^a-z0-9\s-]+")
_WHITESPACE = re.compile(r"\s+")
_LABEL = re.compile(r"^\s*(\d+)[.)]?\s+(.*)$", re.DOTALL)


def slugify(text: str) -> str:
    """Text part of an anchor, without the ordinal prefix."""
    cleaned = _DISALLOWED.sub("", text.lower())
    return _WHITESPACE.sub("-", cleaned.strip())


def anchor_for(ordinal: int, text: str) -> str:
    """Anchor for an item: ``"<ordinal>-<slug>"``."""
    return f"{ordinal}-{slugify(text)}"


def anchor_for_label(label: str) -> str:
    """Anchor for a displayed label such as ``"12. Some concept"``.

    Labels without a leading number are slugged whole.
    """
    match = _LABEL.match(label)
    if not match:
        return slugify(label)
    return anchor_for(int(match.group(1)), match.group(2))
