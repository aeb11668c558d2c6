"""Deck-related MCP tools."""

from mcp.server.fastmcp import FastMCP

from mochi_mcp.services import CardQueryService, MutationService


def register_deck_tools(
    server: FastMCP,
    queries: CardQueryService,
    mutations: MutationService,
) -> None:
    """Register deck-related tools with the MCP server."""

    @server.tool()
    async def list_decks(include_archived: bool = False) -> str:
        """List all Mochi flashcard decks.

        Args:
            include_archived: Include archived and trashed decks
        """
        result = await queries.list_decks(include_archived)
        return result.to_json()

    @server.tool()
    async def get_deck(deck_id: str) -> str:
        """Get deck details and a short preview of each card in it.

        Args:
            deck_id: The ID of the deck
        """
        result = await queries.get_deck(deck_id)
        return result.to_json()

    @server.tool()
    async def find_deck_by_name(query: str) -> str:
        """Find decks whose name contains the query (case-insensitive).

        Args:
            query: Name or partial name to search for
        """
        result = await queries.find_deck_by_name(query)
        return result.to_json()

    @server.tool()
    async def create_deck(name: str, parent_id: str | None = None) -> str:
        """Create a new deck.

        Args:
            name: Name for the deck
            parent_id: Optional parent deck ID for nesting
        """
        result = await mutations.create_deck(name, parent_id)
        return result.to_json()

    @server.tool()
    async def delete_deck(deck_id: str, confirmation: str) -> str:
        """Move a deck to the trash. Disabled unless MOCHI_ALLOW_DECK_DELETE=true.

        Args:
            deck_id: The ID of the deck
            confirmation: Must be exactly "delete deck <deck name>", typed by the user
        """
        result = await mutations.delete_deck(deck_id, confirmation)
        return result.to_json()
