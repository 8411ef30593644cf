"""
Entity Linker - CFD Entity References to Graph Relationships

For every EntityRef of a CFD this module builds:
- an idempotent upsert of the entity node, merged by its natural key
  (`<type>Id`), setting owner/creation metadata only on first create and
  bumping updatedAt/lastEventId on every touch
- a typed relationship from the originating Event node to that entity

All statements of one CFD go to the graph store as a single batch.
Linking is best-effort relative to vectorization: failures are recorded
in the result, never raised.
"""

import time
from dataclasses import dataclass, field
from typing import Optional

from ...core.events import CanonicalFeatureDocument, EntityRef, now_ms
from ...core.lookups import DEFAULT_LOOKUPS, EntityLookups
from ...observability import get_logger
from .graph_client import GraphClient, GraphStatement, StatementOutcome


logger = get_logger(__name__)

ENTITY_SCHEMA_VERSION = 1


@dataclass
class EntityLinkingResult:
    """Outcome of linking one CFD's entities."""
    event_id: str
    success: bool = True
    entities_processed: int = 0
    relationships_created: int = 0
    errors: list[str] = field(default_factory=list)
    outcomes: list[StatementOutcome] = field(default_factory=list)
    processing_time_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "eventId": self.event_id,
            "success": self.success,
            "entitiesProcessed": self.entities_processed,
            "relationshipsCreated": self.relationships_created,
            "errors": list(self.errors),
            "processingTimeMs": self.processing_time_ms
        }


class EntityLinker:
    """
    Turns entity refs into graph statements and executes them.

    Node labels and relationship names come from the injected
    EntityLookups and are interpolated into the Cypher text; ids and
    metadata always travel as parameters.
    """

    def __init__(self, graph_client: GraphClient, lookups: Optional[EntityLookups] = None):
        self.graph_client = graph_client
        self.lookups = lookups or DEFAULT_LOOKUPS

    def build_entity_upsert(self, ref: EntityRef, user_id: str, event_id: str, timestamp: int) -> GraphStatement:
        label = self.lookups.node_label(ref.type)
        id_property = f"{ref.type}Id"
        return GraphStatement(
            statement=(
                f"MERGE (n:{label} {{{id_property}: $entityId}}) "
                "ON CREATE SET "
                "n.userId = $userId, "
                "n.createdFromEventId = $eventId, "
                "n.sourcePath = $sourcePath, "
                "n.createdAt = $timestamp, "
                "n.updatedAt = $timestamp, "
                f"n.schemaVersion = {ENTITY_SCHEMA_VERSION} "
                "ON MATCH SET "
                "n.updatedAt = $timestamp, "
                "n.lastEventId = $eventId "
                "RETURN n"
            ),
            parameters={
                "entityId": ref.id,
                "userId": user_id,
                "eventId": event_id,
                "sourcePath": ref.source_path,
                "timestamp": timestamp
            }
        )

    def build_event_relationship(self, ref: EntityRef, cfd: CanonicalFeatureDocument, timestamp: int) -> GraphStatement:
        label = self.lookups.node_label(ref.type)
        id_property = f"{ref.type}Id"
        relationship = self.lookups.relationship_type(ref.type)
        return GraphStatement(
            statement=(
                "MERGE (e:Event {eventId: $eventId}) "
                "ON CREATE SET e.userId = $userId, e.eventType = $eventType, e.createdAt = $timestamp "
                "WITH e "
                f"MATCH (n:{label} {{{id_property}: $entityId}}) "
                f"MERGE (e)-[r:{relationship}]->(n) "
                "ON CREATE SET "
                "r.sourcePath = $sourcePath, "
                "r.linkedAt = $timestamp "
                "RETURN r"
            ),
            parameters={
                "eventId": cfd.event_id,
                "userId": cfd.user_id,
                "eventType": cfd.event_type,
                "entityId": ref.id,
                "sourcePath": ref.source_path,
                "timestamp": timestamp
            }
        )

    def build_statements(self, cfd: CanonicalFeatureDocument) -> list[GraphStatement]:
        """All node upserts first, then all relationships."""
        timestamp = now_ms()
        upserts = [self.build_entity_upsert(ref, cfd.user_id, cfd.event_id, timestamp) for ref in cfd.entity_refs]
        relationships = [self.build_event_relationship(ref, cfd, timestamp) for ref in cfd.entity_refs]
        return upserts + relationships

    async def link_entities(self, cfd: CanonicalFeatureDocument) -> EntityLinkingResult:
        started = time.monotonic()
        result = EntityLinkingResult(event_id=cfd.event_id)

        if not cfd.entity_refs:
            return result

        statements = self.build_statements(cfd)
        ref_count = len(cfd.entity_refs)

        try:
            outcomes = await self.graph_client.execute(statements)
        except Exception as e:
            logger.error("entity_linking_failed", event_id=cfd.event_id, error=str(e))
            result.success = False
            result.errors.append(str(e))
            result.processing_time_ms = int((time.monotonic() - started) * 1000)
            return result

        result.outcomes = list(outcomes)
        for outcome in outcomes:
            if outcome.success:
                if outcome.index < ref_count:
                    result.entities_processed += 1
                else:
                    result.relationships_created += 1
            else:
                result.errors.append(f"statement {outcome.index}: {outcome.error}")

        result.success = not result.errors
        result.processing_time_ms = int((time.monotonic() - started) * 1000)

        logger.info(
            "entities_linked",
            event_id=cfd.event_id,
            entities_processed=result.entities_processed,
            relationships_created=result.relationships_created,
            errors=len(result.errors)
        )
        return result
