"""Pytest configuration and fixtures."""

from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock

import pytest

from mochi_mcp.client import MochiClient
from mochi_mcp.models import Card, Deck, MochiTimestamp
from mochi_mcp.services import CardQueryService, MutationService
from mochi_mcp.tokens import TokenStore


class FakeClock:
    """Manually advanced clock for token expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 15, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


def make_card(
    card_id: str = "card1",
    content: str = "What is X?\n---\nX is Y.",
    deck_id: str = "deck1",
    tags: list[str] | None = None,
    **overrides: Any,
) -> Card:
    """Build a card as the API would return it."""
    data: dict[str, Any] = {
        "id": card_id,
        "content": content,
        "deck_id": deck_id,
        "tags": tags if tags is not None else [],
        "created_at": MochiTimestamp(date="2025-01-15T10:30:00.000Z"),
    }
    data.update(overrides)
    return Card(**data)


def make_deck(deck_id: str = "deck1", name: str = "Test Deck", **overrides: Any) -> Deck:
    """Build a deck as the API would return it."""
    return Deck(id=deck_id, name=name, **overrides)


@pytest.fixture
def clock() -> FakeClock:
    """Create a clock frozen at a fixed instant."""
    return FakeClock()


@pytest.fixture
def token_store(clock: FakeClock) -> TokenStore:
    """Create an empty token store driven by the fake clock."""
    return TokenStore(clock=clock)


@pytest.fixture
def mock_client() -> AsyncMock:
    """Create a Mochi client double whose API methods are async mocks."""
    return AsyncMock(spec=MochiClient)


@pytest.fixture
def mutation_service(mock_client: AsyncMock, token_store: TokenStore) -> MutationService:
    """Create a mutation service with deck deletion disabled."""
    return MutationService(mock_client, token_store, token_ttl_minutes=10)


@pytest.fixture
def query_service(mock_client: AsyncMock) -> CardQueryService:
    """Create a query service over the mock client."""
    return CardQueryService(mock_client)
