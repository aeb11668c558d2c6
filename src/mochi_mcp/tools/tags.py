"""Tag-related MCP tools."""

from mcp.server.fastmcp import FastMCP

from mochi_mcp.services import MutationService


def register_tag_tools(server: FastMCP, mutations: MutationService) -> None:
    """Register tag add/remove tools with the MCP server."""

    @server.tool()
    async def add_tags_preview(card_ids: list[str], tags_to_add: list[str]) -> str:
        """Preview adding tags to one or more cards. Existing tags are not duplicated.
        Confirm with apply_tag_update.

        Args:
            card_ids: Card IDs to add tags to
            tags_to_add: Tags to add
        """
        result = await mutations.preview_add_tags(card_ids, tags_to_add)
        return result.to_json()

    @server.tool()
    async def remove_tags_preview(card_ids: list[str], tags_to_remove: list[str]) -> str:
        """Preview removing tags from one or more cards. Confirm with apply_tag_update.

        Args:
            card_ids: Card IDs to remove tags from
            tags_to_remove: Tags to remove (case-insensitive)
        """
        result = await mutations.preview_remove_tags(card_ids, tags_to_remove)
        return result.to_json()

    @server.tool()
    async def apply_tag_update(token: str, confirmation: str) -> str:
        """Apply a previewed tag change after the user confirms.

        Args:
            token: Token from add_tags_preview or remove_tags_preview
            confirmation: User must type exactly "confirm tags"
        """
        result = await mutations.apply_tag_update(token, confirmation)
        return result.to_json()
