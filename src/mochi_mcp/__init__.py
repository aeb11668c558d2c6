"""Mochi MCP server: browse, search and safely edit Mochi flashcards from AI assistants."""

__version__ = "0.1.0"
