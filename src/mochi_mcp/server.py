"""Mochi MCP Server — exposes Mochi flashcards to AI assistants."""

import asyncio
import sys

import structlog
from mcp.server.fastmcp import FastMCP

from mochi_mcp.client import MochiClient
from mochi_mcp.config import Settings, configure_logging, load_settings
from mochi_mcp.exceptions import ConfigurationError
from mochi_mcp.services import CardQueryService, MutationService
from mochi_mcp.tokens import TokenStore
from mochi_mcp.tools.cards import register_card_tools
from mochi_mcp.tools.decks import register_deck_tools
from mochi_mcp.tools.tags import register_tag_tools

logger = structlog.get_logger(__name__)

SERVER_NAME = "mochi-cards"


def create_server(
    settings: Settings,
    tokens: TokenStore | None = None,
) -> tuple[FastMCP, MochiClient]:
    """Create and configure the MCP server."""
    client = MochiClient(
        settings.MOCHI_API_KEY,
        settings.MOCHI_API_BASE_URL,
        timeout=settings.MOCHI_REQUEST_TIMEOUT,
        scan_timeout=settings.MOCHI_SCAN_TIMEOUT,
        page_delay=settings.MOCHI_PAGE_DELAY,
    )
    queries = CardQueryService(client)
    mutations = MutationService(
        client,
        tokens if tokens is not None else TokenStore(),
        token_ttl_minutes=settings.MOCHI_TOKEN_EXPIRY_MINS,
        allow_deck_delete=settings.MOCHI_ALLOW_DECK_DELETE,
    )
    server = FastMCP(SERVER_NAME)

    # Register all tools
    register_deck_tools(server, queries, mutations)
    register_card_tools(server, queries, mutations)
    register_tag_tools(server, mutations)

    return server, client


async def run(settings: Settings) -> None:
    """Run the MCP server over stdio."""
    server, client = create_server(settings)
    logger.info(
        "server_started",
        deck_delete="enabled" if settings.MOCHI_ALLOW_DECK_DELETE else "disabled",
        token_expiry_mins=settings.MOCHI_TOKEN_EXPIRY_MINS,
    )
    try:
        await server.run_stdio_async()
    finally:
        await client.close()


def main() -> None:
    """Entry point for the mochi-mcp command."""
    try:
        settings = load_settings()
    except ConfigurationError as e:
        print(f"Failed to start Mochi MCP server: {e}", file=sys.stderr)
        sys.exit(1)

    configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    asyncio.run(run(settings))


if __name__ == "__main__":
    main()
