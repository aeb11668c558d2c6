"""Line diff used to render mutation previews."""

from dataclasses import dataclass
from itertools import zip_longest

from mochi_mcp.models import Card


@dataclass(frozen=True)
class DiffResult:
    """Comparison of two texts, ready to show to a user."""

    original: str
    proposed: str
    diff: str
    has_changes: bool


def generate_diff(original: str, proposed: str) -> DiffResult:
    """Compare two texts line by line at matching positions.

    Equal lines are kept as context (``"  "``), a mismatch emits the original
    line as ``"- "`` and the proposed line as ``"+ "``. Lines are compared by
    index only: an insertion near the top marks every following line as
    changed. Card bodies are short, and preview formatting relies on this.
    """
    lines: list[str] = []
    has_changes = False

    for old, new in zip_longest(original.split("\n"), proposed.split("\n")):
        if old == new:
            lines.append(f"  {old}")
            continue
        has_changes = True
        if old is not None:
            lines.append(f"- {old}")
        if new is not None:
            lines.append(f"+ {new}")

    return DiffResult(
        original=original,
        proposed=proposed,
        diff="\n".join(lines),
        has_changes=has_changes,
    )


def format_card_preview(card: Card) -> str:
    """Render a card as a markdown block for previews."""
    lines = [f"**Card ID:** {card.id}"]
    if card.deck_id:
        lines.append(f"**Deck:** {card.deck_id}")
    if card.tags:
        lines.append(f"**Tags:** {', '.join(card.tags)}")
    lines.extend(["", "**Content:**", "```", card.content, "```"])
    return "\n".join(lines)


def format_tag_change(card_id: str, old_tags: list[str], new_tags: list[str]) -> str:
    """Render a single card's before/after tag list."""
    return f"Card {card_id}: [{', '.join(old_tags)}] → [{', '.join(new_tags)}]"
