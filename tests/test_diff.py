"""Tests for the positional line diff and preview rendering."""

import pytest

from mochi_mcp.diff import format_card_preview, format_tag_change, generate_diff
from tests.conftest import make_card


class TestGenerateDiff:
    """Test suite for generate_diff."""

    @pytest.mark.parametrize("text", ["", "one line", "Q\n---\nA", "a\n\nb\n"])
    def test_identical_text_has_no_changes(self, text: str) -> None:
        result = generate_diff(text, text)

        assert result.has_changes is False
        assert "- " not in result.diff
        assert "+ " not in result.diff

    def test_changed_line(self) -> None:
        result = generate_diff("old", "new")

        assert result.has_changes is True
        assert result.diff == "- old\n+ new"

    def test_keeps_unchanged_lines_as_context(self) -> None:
        result = generate_diff("Q\n---\nA", "Q\n---\nB")

        assert result.diff.split("\n") == ["  Q", "  ---", "- A", "+ B"]

    def test_added_trailing_line(self) -> None:
        result = generate_diff("a", "a\nb")

        assert result.has_changes is True
        assert result.diff.split("\n") == ["  a", "+ b"]

    def test_removed_trailing_line(self) -> None:
        result = generate_diff("a\nb", "a")

        assert result.diff.split("\n") == ["  a", "- b"]

    def test_insertion_is_positional(self) -> None:
        """Inserting at the top shifts every later line into the diff."""
        result = generate_diff("a\nb", "new\na\nb")

        assert result.diff.split("\n") == ["- a", "+ new", "- b", "+ a", "+ b"]

    def test_whitespace_only_change_counts(self) -> None:
        assert generate_diff("a", "a ").has_changes is True

    def test_keeps_inputs(self) -> None:
        result = generate_diff("before", "after")

        assert result.original == "before"
        assert result.proposed == "after"


class TestPreviewFormatting:
    """Test suite for preview helpers."""

    def test_card_preview_includes_id_deck_tags_and_content(self) -> None:
        card = make_card("c1", content="Q\n---\nA", deck_id="d1", tags=["bio", "cell"])

        preview = format_card_preview(card)

        assert "**Card ID:** c1" in preview
        assert "**Deck:** d1" in preview
        assert "**Tags:** bio, cell" in preview
        assert "Q\n---\nA" in preview

    def test_card_preview_omits_empty_tags(self) -> None:
        assert "Tags" not in format_card_preview(make_card(tags=[]))

    def test_tag_change_line(self) -> None:
        assert format_tag_change("c1", ["a"], ["a", "b"]) == "Card c1: [a] → [a, b]"
