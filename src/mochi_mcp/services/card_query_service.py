"""Read-only browsing and search over decks and cards."""

from datetime import UTC, datetime

import structlog

from mochi_mcp import schemas
from mochi_mcp.client import MochiClient
from mochi_mcp.exceptions import MochiTimeoutError, ValidationError
from mochi_mcp.markdown import parse_card_content, truncate
from mochi_mcp.models import Card, Deck

logger = structlog.get_logger(__name__)

# Scan caps for search: scoped to one deck vs across every deck
DECK_SCAN_LIMIT = 5000
GLOBAL_SCAN_LIMIT = 1000

DECK_CARD_LIMIT = 5000
CARD_PREVIEW_LENGTH = 100
FIELD_PREVIEW_LENGTH = 200


class CardQueryService:
    """Service for read-only deck and card queries."""

    def __init__(self, client: MochiClient) -> None:
        """Initialize service with a Mochi API client."""
        self.client = client

    async def list_decks(self, include_archived: bool = False) -> schemas.DeckList:
        """List decks, hiding archived and trashed ones unless asked."""
        partial = False
        try:
            decks = await self.client.list_decks()
        except MochiTimeoutError as e:
            partial = True
            decks = e.items

        if not include_archived:
            decks = [d for d in decks if d.is_active]
        return schemas.DeckList(decks=[_deck_summary(d) for d in decks], partial=partial)

    async def get_deck(self, deck_id: str) -> schemas.DeckDetail:
        """Get a deck and short previews of its live cards."""
        deck = await self.client.get_deck(deck_id)

        partial = False
        try:
            cards = await self.client.list_cards(deck_id, limit=DECK_CARD_LIMIT)
        except MochiTimeoutError as e:
            partial = True
            cards = e.items

        return schemas.DeckDetail(
            deck=_deck_summary(deck),
            cards=[
                schemas.CardPreview(
                    id=c.id,
                    name=c.name or None,
                    preview=truncate(c.content, CARD_PREVIEW_LENGTH),
                )
                for c in cards
                if not c.trashed
            ],
            partial=partial,
        )

    async def get_card(self, card_id: str) -> schemas.CardDetail:
        """Get the full content of a card."""
        card = await self.client.get_card(card_id)
        return _card_detail(card)

    async def get_cards(self, card_ids: list[str]) -> schemas.CardList:
        """Get several cards, one request at a time to respect rate limits."""
        if not card_ids:
            raise ValidationError("card_ids must not be empty")

        cards = []
        for card_id in card_ids:
            card = await self.client.get_card(card_id)
            cards.append(_card_detail(card))
        return schemas.CardList(cards=cards)

    async def search_cards(
        self,
        query: str | None = None,
        deck_id: str | None = None,
        tags: list[str] | None = None,
        created_after: str | None = None,
        created_before: str | None = None,
        limit: int = 20,
    ) -> schemas.SearchResult:
        """
        Search cards by text, tags and creation date with a linear scan.

        The scan is capped (more generously when scoped to a deck) and has a
        time budget. Hitting the cap sets ``truncated``; running out of time
        sets ``partial`` and searches only what was retrieved.

        Args:
            query: Case-insensitive substring of the card content
            deck_id: Restrict the scan to one deck
            tags: Tags that must all be present (case-insensitive)
            created_after: ISO 8601 date or timestamp, inclusive
            created_before: ISO 8601 date or timestamp, exclusive
            limit: Maximum number of cards to return

        Returns:
            Matching cards with scan bookkeeping
        """
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        after = _parse_date(created_after, "created_after")
        before = _parse_date(created_before, "created_before")

        scan_limit = DECK_SCAN_LIMIT if deck_id else GLOBAL_SCAN_LIMIT
        partial = False
        try:
            scanned = await self.client.list_cards(deck_id, limit=scan_limit)
        except MochiTimeoutError as e:
            partial = True
            scanned = e.items

        truncated = len(scanned) >= scan_limit
        if truncated:
            logger.warning("search_scan_truncated", deck_id=deck_id, scanned=len(scanned))

        cards = [c for c in scanned if not c.trashed]

        if query:
            needle = query.lower()
            cards = [c for c in cards if needle in c.content.lower()]

        if tags:
            required = {t.lower() for t in tags}
            cards = [c for c in cards if required <= {t.lower() for t in c.tags}]

        if after is not None or before is not None:
            cards = [c for c in cards if _created_between(c, after, before)]

        return schemas.SearchResult(
            cards=[_card_listing(c) for c in cards[:limit]],
            total_found=len(cards),
            scanned_count=len(scanned),
            truncated=truncated,
            partial=partial,
        )

    async def list_cards_page(
        self,
        deck_id: str | None = None,
        bookmark: str | None = None,
        page_size: int = 50,
    ) -> schemas.CardPageResult:
        """Fetch one page of cards with a cursor for the next page."""
        page = await self.client.list_cards_page(
            deck_id=deck_id, bookmark=bookmark, page_size=page_size
        )
        return schemas.CardPageResult(
            cards=[_card_listing(c) for c in page.cards if not c.trashed],
            bookmark=page.bookmark,
            has_more=page.bookmark is not None,
        )

    async def find_deck_by_name(self, query: str) -> schemas.DeckMatches:
        """Find active decks whose name contains ``query``, ignoring case."""
        needle = query.lower()
        try:
            decks = await self.client.list_decks()
        except MochiTimeoutError as e:
            decks = e.items
        return schemas.DeckMatches(
            matches=[_deck_summary(d) for d in decks if d.is_active and needle in d.name.lower()]
        )


def _deck_summary(deck: Deck) -> schemas.DeckSummary:
    return schemas.DeckSummary(id=deck.id, name=deck.name, parent_id=deck.parent_id or None)


def _card_detail(card: Card) -> schemas.CardDetail:
    question, answer = parse_card_content(card.content)
    return schemas.CardDetail(
        id=card.id,
        content=card.content,
        question=question,
        answer=answer,
        deck_id=card.deck_id,
        tags=card.tags,
        created_at=card.created,
        updated_at=card.updated,
    )


def _card_listing(card: Card) -> schemas.CardListing:
    question, answer = parse_card_content(card.content)
    return schemas.CardListing(
        id=card.id,
        deck_id=card.deck_id,
        name=card.name or None,
        question=truncate(question, FIELD_PREVIEW_LENGTH),
        answer=truncate(answer, FIELD_PREVIEW_LENGTH),
        tags=card.tags,
        created_at=card.created,
        updated_at=card.updated,
    )


def _to_utc(value: datetime) -> datetime:
    # Date-only and naive timestamps are taken as UTC
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def _parse_date(value: str | None, field: str) -> datetime | None:
    if not value:
        return None
    try:
        return _to_utc(datetime.fromisoformat(value))
    except ValueError as e:
        raise ValidationError(f"{field} must be an ISO 8601 date, got {value!r}") from e


def _created_between(card: Card, after: datetime | None, before: datetime | None) -> bool:
    """Whether the card was created in ``[after, before)``; undated cards never match."""
    if not card.created:
        return False
    try:
        created = _to_utc(datetime.fromisoformat(card.created))
    except ValueError:
        return False
    if after is not None and created < after:
        return False
    return before is None or created < before
