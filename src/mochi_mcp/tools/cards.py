"""Card-related MCP tools."""

from mcp.server.fastmcp import FastMCP

from mochi_mcp.schemas import CardUpdateRequest
from mochi_mcp.services import CardQueryService, MutationService


def register_card_tools(
    server: FastMCP,
    queries: CardQueryService,
    mutations: MutationService,
) -> None:
    """Register card read and write tools with the MCP server."""

    # --- Reads ---

    @server.tool()
    async def get_card(card_id: str) -> str:
        """Get the full content of a single card, split into question and answer.

        Args:
            card_id: The ID of the card
        """
        result = await queries.get_card(card_id)
        return result.to_json()

    @server.tool()
    async def get_cards(card_ids: list[str]) -> str:
        """Get the full content of several cards.

        Args:
            card_ids: IDs of the cards to retrieve
        """
        result = await queries.get_cards(card_ids)
        return result.to_json()

    @server.tool()
    async def search_cards(
        query: str | None = None,
        deck_id: str | None = None,
        tags: list[str] | None = None,
        created_after: str | None = None,
        created_before: str | None = None,
        limit: int = 20,
    ) -> str:
        """Search cards by text, tags and creation date.

        Scoping the search to a deck (see list_decks or find_deck_by_name) is
        faster and scans more cards. Check truncated/partial in the result: if
        either is true, not every card was searched.

        Args:
            query: Text to search for in card content
            deck_id: Deck ID to search in (searches all decks if omitted)
            tags: Tags that must all be present
            created_after: Cards created on or after this ISO 8601 date
            created_before: Cards created before this ISO 8601 date
            limit: Max results (default 20, max 50)
        """
        result = await queries.search_cards(
            query=query,
            deck_id=deck_id,
            tags=tags,
            created_after=created_after,
            created_before=created_before,
            limit=max(1, min(limit, 50)),
        )
        return result.to_json()

    @server.tool()
    async def list_cards_page(
        deck_id: str | None = None,
        bookmark: str | None = None,
        page_size: int = 50,
    ) -> str:
        """List one page of cards. Pass the returned bookmark to get the next page.

        Args:
            deck_id: Deck ID (lists from all decks if omitted)
            bookmark: Pagination cursor from a previous response
            page_size: Cards per page (1-100, default 50)
        """
        result = await queries.list_cards_page(deck_id, bookmark, max(1, min(page_size, 100)))
        return result.to_json()

    # --- Creation (two-phase) ---

    @server.tool()
    async def create_card_preview(
        deck_id: str,
        content: str,
        tags: list[str] | None = None,
    ) -> str:
        """Preview a new card. You MUST show the preview to the user and wait for
        their explicit confirmation before calling apply_create_card.

        Args:
            deck_id: Deck ID to create the card in
            content: Markdown content; separate question and answer with a --- line
            tags: Tags to add
        """
        result = await mutations.preview_create_card(deck_id, content, tags)
        return result.to_json()

    @server.tool()
    async def apply_create_card(token: str, confirmation: str) -> str:
        """Create the previewed card after the user confirms.

        Args:
            token: Token from create_card_preview
            confirmation: User must type exactly "confirm create"
        """
        result = await mutations.apply_create_card(token, confirmation)
        return result.to_json()

    # --- Update (two-phase) ---

    @server.tool()
    async def update_card_preview(
        card_id: str,
        content: str,
        tags: list[str] | None = None,
    ) -> str:
        """Preview replacing a card's content, with a diff. You MUST show the diff
        to the user and wait for explicit confirmation before calling apply_update_card.

        Args:
            card_id: Card ID to update
            content: New markdown content
            tags: New tags (replaces existing)
        """
        result = await mutations.preview_update_card(card_id, content, tags)
        return result.to_json()

    @server.tool()
    async def update_card_fields_preview(
        card_id: str,
        question: str | None = None,
        answer: str | None = None,
        tags: list[str] | None = None,
    ) -> str:
        """Preview editing only the question and/or answer of a card. Omitted
        fields are kept. Confirm with apply_update_card.

        Args:
            card_id: Card ID to update
            question: New question text
            answer: New answer text
            tags: New tags (replaces existing)
        """
        result = await mutations.preview_update_card_fields(card_id, question, answer, tags)
        return result.to_json()

    @server.tool()
    async def apply_update_card(token: str, confirmation: str) -> str:
        """Apply a previewed card update after the user confirms.

        Args:
            token: Token from update_card_preview or update_card_fields_preview
            confirmation: User must type exactly "confirm update"
        """
        result = await mutations.apply_update_card(token, confirmation)
        return result.to_json()

    # --- Batch update (two-phase) ---

    @server.tool()
    async def batch_update_preview(updates: list[CardUpdateRequest]) -> str:
        """Preview content updates to several cards under one token. Show the
        combined diff to the user before calling apply_batch_update.

        Args:
            updates: One entry per card with card_id, content and optional tags
        """
        result = await mutations.preview_batch_update(updates)
        return result.to_json()

    @server.tool()
    async def apply_batch_update(token: str, confirmation: str) -> str:
        """Apply a previewed batch update. Cards are updated one by one; a failed
        card does not stop the others, and nothing is rolled back.

        Args:
            token: Token from batch_update_preview
            confirmation: User must type exactly "confirm batch update"
        """
        result = await mutations.apply_batch_update(token, confirmation)
        return result.to_json()

    # --- Deletion (typed confirmation) ---

    @server.tool()
    async def delete_card(card_id: str, confirmation: str, permanent: bool = False) -> str:
        """Delete a card (moved to trash by default).

        Args:
            card_id: Card ID to delete
            confirmation: Must be exactly "delete card <card_id>", typed by the user
            permanent: Hard delete, cannot be undone
        """
        result = await mutations.delete_card(card_id, confirmation, permanent)
        return result.to_json()
