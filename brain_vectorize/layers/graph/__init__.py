"""
Graph Layer

Links events to the domain entities they reference:
- Graph store clients with ordered per-statement outcomes
- Entity linker (node upserts + typed Event relationships)
"""

from .graph_client import (
    GraphStatement,
    StatementOutcome,
    GraphClient,
    Neo4jHttpGraphClient,
    InMemoryGraphClient
)
from .entity_linker import EntityLinkingResult, EntityLinker

__all__ = [
    "GraphStatement",
    "StatementOutcome",
    "GraphClient",
    "Neo4jHttpGraphClient",
    "InMemoryGraphClient",
    "EntityLinkingResult",
    "EntityLinker"
]
