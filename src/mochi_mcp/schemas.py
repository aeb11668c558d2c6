"""Pydantic schemas for tool results.

Results serialize with camelCase keys, which is the shape agents see.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ToolResult(BaseModel):
    """Base schema for everything a tool returns."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        """Serialize for an MCP text response."""
        return self.model_dump_json(by_alias=True, indent=2)


# --- Requests ---


class CardUpdateRequest(BaseModel):
    """Schema for one card in a batch update."""

    card_id: str = Field(..., min_length=1, description="Card ID to update")
    content: str = Field(..., min_length=1, description="New markdown content")
    tags: list[str] | None = Field(None, description="New tags (replaces existing)")


# --- Read-only results ---


class DeckSummary(ToolResult):
    """Schema for a deck in listings."""

    id: str
    name: str
    parent_id: str | None = None


class DeckList(ToolResult):
    """Schema for list_decks response."""

    decks: list[DeckSummary]
    partial: bool = Field(False, description="Listing stopped because time ran out")


class DeckMatches(ToolResult):
    """Schema for find_deck_by_name response."""

    matches: list[DeckSummary]


class CardPreview(ToolResult):
    """Schema for a card inside a deck listing."""

    id: str
    name: str | None = None
    preview: str


class DeckDetail(ToolResult):
    """Schema for get_deck response."""

    deck: DeckSummary
    cards: list[CardPreview]
    partial: bool = False


class CardDetail(ToolResult):
    """Schema for a fully loaded card."""

    id: str
    content: str
    question: str
    answer: str
    deck_id: str
    tags: list[str]
    created_at: str = ""
    updated_at: str | None = None


class CardList(ToolResult):
    """Schema for get_cards response."""

    cards: list[CardDetail]


class CardListing(ToolResult):
    """Schema for a card in search results and pages, with shortened sides."""

    id: str
    deck_id: str
    name: str | None = None
    question: str
    answer: str
    tags: list[str]
    created_at: str = ""
    updated_at: str | None = None


class SearchResult(ToolResult):
    """Schema for search_cards response."""

    cards: list[CardListing]
    total_found: int
    scanned_count: int
    truncated: bool = Field(..., description="Scan stopped at the item cap")
    partial: bool = Field(..., description="Scan stopped because time ran out")


class CardPageResult(ToolResult):
    """Schema for list_cards_page response."""

    cards: list[CardListing]
    bookmark: str | None = None
    has_more: bool


# --- Two-phase mutation results ---


class PreviewResult(ToolResult):
    """Schema shared by every preview tool."""

    preview: str
    token: str
    expires_at: datetime
    message: str


class UpdatePreviewResult(PreviewResult):
    """Schema for single-card update previews."""

    original: str
    proposed: str
    diff: str
    has_changes: bool


class BatchUpdatePreviewResult(PreviewResult):
    """Schema for batch update previews."""

    card_count: int
    has_changes: bool


class TagChange(ToolResult):
    """Schema for one card's tag change."""

    card_id: str
    old_tags: list[str]
    new_tags: list[str]


class TagPreviewResult(PreviewResult):
    """Schema for add/remove tag previews."""

    updates: list[TagChange]
    has_changes: bool


class CardSummary(ToolResult):
    """Schema for a card echoed back after a write."""

    id: str
    content: str
    deck_id: str | None = None
    tags: list[str] | None = None


class ApplyResult(ToolResult):
    """Schema for single-item apply responses."""

    success: bool
    card: CardSummary | None = None
    error: str | None = None


class BatchItemResult(ToolResult):
    """Schema for one item of a batch apply."""

    card_id: str
    success: bool
    error: str | None = None


class BatchApplyResult(ToolResult):
    """Schema for batch apply responses."""

    success: bool
    results: list[BatchItemResult] = Field(default_factory=list)
    summary: str = ""
    error: str | None = None


# --- Direct (typed-confirmation) results ---


class DeleteResult(ToolResult):
    """Schema for delete responses."""

    success: bool
    message: str


class DeckCreateResult(ToolResult):
    """Schema for create_deck response."""

    success: bool
    deck: DeckSummary
