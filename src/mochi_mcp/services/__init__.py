"""Service layer for queries and confirmed mutations."""

from mochi_mcp.services.card_query_service import CardQueryService
from mochi_mcp.services.mutation_service import MutationService

__all__ = [
    "CardQueryService",
    "MutationService",
]
