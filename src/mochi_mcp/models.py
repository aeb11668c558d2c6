"""Pydantic models for Mochi API documents."""

from pydantic import BaseModel, ConfigDict, Field


class MochiTimestamp(BaseModel):
    """Mochi wraps timestamps as ``{"date": "<iso8601>"}``."""

    date: str


class Deck(BaseModel):
    """A Mochi deck."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: str
    parent_id: str | None = Field(None, alias="parent-id")
    sort: int | None = None
    archived: bool = Field(False, alias="archived?")
    trashed: str | None = Field(None, alias="trashed?")

    @property
    def is_active(self) -> bool:
        """Whether the deck is neither archived nor trashed."""
        return not self.archived and not self.trashed


class Card(BaseModel):
    """A Mochi card."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    content: str = ""
    deck_id: str = Field(..., alias="deck-id")
    name: str | None = None
    tags: list[str] = Field(default_factory=list)
    created_at: MochiTimestamp | None = Field(None, alias="created-at")
    updated_at: MochiTimestamp | None = Field(None, alias="updated-at")
    archived: bool = Field(False, alias="archived?")
    trashed: str | None = Field(None, alias="trashed?")

    @property
    def created(self) -> str:
        """Creation timestamp string, empty when unknown."""
        return self.created_at.date if self.created_at else ""

    @property
    def updated(self) -> str | None:
        """Last update timestamp string, None when never updated."""
        return self.updated_at.date if self.updated_at else None


class CardPage(BaseModel):
    """A single page of cards with its continuation cursor."""

    cards: list[Card]
    bookmark: str | None = None
