"""Prompt templates and pipeline constants.

This module contains all static data used across the guide pipeline:
the default writer instructions, the concept-list and chunk prompts, and
tuning constants. No runtime logic, pure data only.
"""

# ---------------------------------------------------------------------------
# Writer instructions (default value of GuideConfig.system_prompt)
# ---------------------------------------------------------------------------

DEFAULT_SYSTEM_PROMPT: str = """\
You are an expert teacher writing one section of a comprehensive study guide.

For every numbered concept or question you receive:
- Start with a level-2 Markdown heading that repeats the number and the text
  exactly as given, e.g. "## 3. What is a closure?".
- Explain the concept clearly and thoroughly, from first principles up to
  the details a practitioner needs.
- Use short paragraphs, bullet lists, and tables where they help. Add a
  small example (code, formula, or worked case) whenever the subject allows.
- Finish each concept with a "Key takeaways" list of 2-4 bullets.

Output Markdown only. Do not wrap the answer in code fences, do not add an
introduction or a conclusion, and do not renumber the concepts.
"""

# Header that separates user-supplied ``--info`` text from the base prompt.
ADDITIONAL_INSTRUCTIONS_HEADER: str = "\n\nADDITIONAL USER INSTRUCTIONS:\n"

# ---------------------------------------------------------------------------
# Concept list (planner)
# ---------------------------------------------------------------------------

CONCEPT_LIST_SYSTEM_PROMPT: str = (
    "You are a helpful assistant that lists concepts concisely."
)

CONCEPT_LIST_PROMPT: str = (
    "Generate a numbered list of exactly {count} core questions or concepts "
    "regarding the subject: '{subject}'. "
    "Output ONLY the numbered list. Do not add introductions or conclusions. "
    "Ensure every line starts with a number followed by a dot."
)

# ---------------------------------------------------------------------------
# Chunk prompt (writers)
# ---------------------------------------------------------------------------

CHUNK_PROMPT: str = (
    "Here is a list of concepts/questions:\n{chunk_text}\n\n"
    "Provide a detailed, numbered explanation for EACH one based on the "
    "system prompt instructions. Maintain the original numbering exactly."
)

# ---------------------------------------------------------------------------
# Document layout
# ---------------------------------------------------------------------------

TITLE_TEMPLATE: str = "# Comprehensive Guide: {subject}"
TOC_HEADING: str = "## Table of Contents"
SECTION_SEPARATOR: str = "---"
FAILURE_HEADING_TEMPLATE: str = "## Error generating section {first}-{last}"
FAILURE_BODY_TEMPLATE: str = "API Error: {reason}"

# ---------------------------------------------------------------------------
# Pipeline constants
# ---------------------------------------------------------------------------

# Sampling temperature for every completion request.
DEFAULT_TEMPERATURE: float = 0.7

# Per-request HTTP timeout. Answers for a chunk of several concepts can take
# well over a minute on large models.
DEFAULT_REQUEST_TIMEOUT: int = 120

DEFAULT_TOTAL_COUNT: int = 100
DEFAULT_CHUNK_SIZE: int = 2
DEFAULT_THREADS: int = 1

DEFAULT_BASE_URL: str = "https://api.openai.com/v1"
DEFAULT_MODEL: str = "gpt-4o"
