"""Question/answer handling for Mochi card markdown.

Mochi separates the front and back of a card with a ``---`` line. Parsing and
building both trim whitespace, so ``build_card_content(*parse_card_content(x))``
normalizes ``x`` rather than reproducing it byte for byte.
"""

import re
from typing import NamedTuple

SEPARATOR = "---"
_SEPARATOR_RE = re.compile(r"\n---\n")


class ParsedCardContent(NamedTuple):
    """Question and answer sides of a card."""

    question: str
    answer: str


def parse_card_content(content: str) -> ParsedCardContent:
    """Split card content into question and answer.

    Without a separator the whole content is the question.
    """
    parts = _SEPARATOR_RE.split(content)
    question = parts[0].strip()
    answer = parts[1].strip() if len(parts) > 1 else ""
    return ParsedCardContent(question, answer)


def build_card_content(question: str, answer: str) -> str:
    """Join question and answer with the standard separator."""
    return f"{question.strip()}\n\n{SEPARATOR}\n\n{answer.strip()}"


def truncate(text: str, length: int) -> str:
    """Shorten text to ``length`` characters, marking the cut with an ellipsis."""
    if len(text) <= length:
        return text
    return text[:length] + "..."
