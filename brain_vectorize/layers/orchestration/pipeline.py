"""
Vectorization Pipeline - Per-Event Orchestration

Processes events through the full vectorization flow:
1. Policy gate (disabled event types are skipped)
2. Build the CFD
3. Idempotency gate (events with a content vector are skipped)
4. Generate embeddings, substituting a placeholder on failure
5. Write vector rows
6. Link entity references in the graph (best-effort)

State machine per event:
    received -> skipped_policy_disabled
    received -> skipped_already_vectorized
    received -> embedded -> stored -> [entity_linked] -> success
    any embedding/storage step -> failed

Batch mode runs events sequentially so results keep input order.
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from ...config.policy import EmbeddingPolicyConfig
from ...core.errors import StorageError
from ...core.events import CanonicalFeatureDocument, RawEvent
from ...core.lookups import EntityLookups
from ...metrics.coverage import CoverageCalculator, VectorCoverageMetrics
from ...observability import get_logger
from ..graph.entity_linker import EntityLinker, EntityLinkingResult
from ..normalization.cfd import CFDBuilder
from ..representation.embeddings import EmbeddingGenerator, EmbeddingView, GeneratedEmbedding
from ..representation.vector_store import VectorSearchFilters, VectorStore, to_vector_event_row


logger = get_logger(__name__)


class VectorizeStage(str, Enum):
    """States visited while vectorizing one event."""
    RECEIVED = "received"
    SKIPPED_POLICY_DISABLED = "skipped_policy_disabled"
    SKIPPED_ALREADY_VECTORIZED = "skipped_already_vectorized"
    EMBEDDED = "embedded"
    STORED = "stored"
    ENTITY_LINKED = "entity_linked"
    SUCCESS = "success"
    FAILED = "failed"


class SkipReason(str, Enum):
    POLICY_DISABLED = "policy_disabled"
    ALREADY_VECTORIZED = "already_vectorized"


@dataclass
class VectorizeResult:
    """Result of vectorizing a single event."""
    event_id: str
    success: bool = False
    skipped: bool = False
    skip_reason: Optional[SkipReason] = None
    error: Optional[str] = None

    embeddings_generated: int = 0
    rows_written: int = 0
    entities_linked: int = 0
    used_placeholder: bool = False
    processing_time_ms: int = 0

    states: list[VectorizeStage] = field(default_factory=lambda: [VectorizeStage.RECEIVED])
    cfd: Optional[CanonicalFeatureDocument] = None
    entity_linking_result: Optional[EntityLinkingResult] = None

    @property
    def state(self) -> VectorizeStage:
        return self.states[-1]

    def advance(self, stage: VectorizeStage) -> None:
        self.states.append(stage)

    def to_dict(self) -> dict:
        return {
            "eventId": self.event_id,
            "success": self.success,
            "skipped": self.skipped,
            "skipReason": self.skip_reason.value if self.skip_reason else None,
            "error": self.error,
            "embeddingsGenerated": self.embeddings_generated,
            "rowsWritten": self.rows_written,
            "entitiesLinked": self.entities_linked,
            "usedPlaceholder": self.used_placeholder,
            "processingTimeMs": self.processing_time_ms,
            "state": self.state.value,
            "states": [s.value for s in self.states]
        }


@dataclass
class BatchVectorizeResult:
    """Aggregate of a sequential batch."""
    total_processed: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    results: list[VectorizeResult] = field(default_factory=list)
    total_processing_time_ms: int = 0

    def add(self, result: VectorizeResult) -> None:
        self.results.append(result)
        self.total_processed += 1
        if result.skipped:
            self.skipped += 1
        elif result.success:
            self.succeeded += 1
        else:
            self.failed += 1


class VectorizationPipeline:
    """
    Orchestrates CFD building, embedding, storage and entity linking.

    Only storage failures fail an event. Embedding failures fall back to a
    placeholder vector and entity-linking failures are logged.
    """

    def __init__(
        self,
        policy_config: EmbeddingPolicyConfig,
        embedding_generator: EmbeddingGenerator,
        vector_store: VectorStore,
        entity_linker: Optional[EntityLinker] = None,
        lookups: Optional[EntityLookups] = None
    ):
        self.policy_config = policy_config
        self.cfd_builder = CFDBuilder(policy_config, lookups)
        self.embedding_generator = embedding_generator
        self.vector_store = vector_store
        self.entity_linker = entity_linker
        self.coverage_calculator = CoverageCalculator()

        logger.info(
            "pipeline_initialized",
            policy_version=policy_config.version,
            policies=len(policy_config.policies),
            entity_linking=entity_linker is not None
        )

    async def vectorize_event(self, event: RawEvent) -> VectorizeResult:
        """Vectorize one event. Never raises for a well-formed event."""
        started = time.monotonic()
        result = VectorizeResult(event_id=event.event_id)

        if not self.policy_config.should_vectorize(event.event_type):
            result.success = True
            result.skipped = True
            result.skip_reason = SkipReason.POLICY_DISABLED
            result.advance(VectorizeStage.SKIPPED_POLICY_DISABLED)
            return self._finish(result, started)

        try:
            cfd = self.cfd_builder.build(event)
            result.cfd = cfd

            if await self.vector_store.has_vector(event.event_id):
                logger.info("event_already_vectorized", event_id=event.event_id)
                result.success = True
                result.skipped = True
                result.skip_reason = SkipReason.ALREADY_VECTORIZED
                result.advance(VectorizeStage.SKIPPED_ALREADY_VECTORIZED)
                return self._finish(result, started)

            embeddings = await self._generate_embeddings(cfd, result)
            result.embeddings_generated = len(embeddings)
            result.advance(VectorizeStage.EMBEDDED)

            rows = [to_vector_event_row(cfd, embedding) for embedding in embeddings]
            write_result = await self.vector_store.write_rows(rows)
            if write_result.errors:
                raise StorageError("; ".join(write_result.errors))
            result.rows_written = write_result.written
            result.advance(VectorizeStage.STORED)

        except Exception as e:
            logger.error("vectorization_failed", event_id=event.event_id, event_type=event.event_type, error=str(e))
            result.success = False
            result.error = str(e)
            result.advance(VectorizeStage.FAILED)
            return self._finish(result, started)

        if cfd.entity_refs and self.entity_linker is not None:
            await self._link_entities(cfd, result)

        logger.info(
            "event_vectorized",
            event_id=event.event_id,
            event_type=event.event_type,
            rows_written=result.rows_written,
            rows_skipped=write_result.skipped,
            entities_linked=result.entities_linked,
            placeholder=result.used_placeholder
        )

        result.success = True
        result.advance(VectorizeStage.SUCCESS)
        return self._finish(result, started)

    async def _generate_embeddings(self, cfd: CanonicalFeatureDocument, result: VectorizeResult) -> list[GeneratedEmbedding]:
        try:
            return await self.embedding_generator.generate_all_embeddings(cfd)
        except Exception as e:
            logger.warning("embedding_fallback_to_placeholder", event_id=cfd.event_id, error=str(e))
            result.used_placeholder = True
            return [self.embedding_generator.create_placeholder_embedding(cfd.event_id, str(e))]

    async def _link_entities(self, cfd: CanonicalFeatureDocument, result: VectorizeResult) -> None:
        try:
            linking = await self.entity_linker.link_entities(cfd)
        except Exception as e:
            logger.error("entity_linking_failed", event_id=cfd.event_id, error=str(e))
            return

        result.entity_linking_result = linking
        result.entities_linked = linking.entities_processed
        if linking.errors:
            logger.warning("entity_linking_partial", event_id=cfd.event_id, errors=linking.errors)
        if linking.entities_processed or linking.relationships_created:
            result.advance(VectorizeStage.ENTITY_LINKED)

    @staticmethod
    def _finish(result: VectorizeResult, started: float) -> VectorizeResult:
        result.processing_time_ms = int((time.monotonic() - started) * 1000)
        return result

    async def vectorize_batch(self, events: list[RawEvent]) -> BatchVectorizeResult:
        """Vectorize events one after another."""
        started = time.monotonic()
        batch = BatchVectorizeResult()
        for event in events:
            batch.add(await self.vectorize_event(event))
        batch.total_processing_time_ms = int((time.monotonic() - started) * 1000)
        return batch

    async def get_coverage_metrics(self, event_totals: Optional[dict[str, int]] = None) -> VectorCoverageMetrics:
        """Coverage per event type, against `event_totals` when known."""
        stats = await self.vector_store.get_coverage_stats()
        return self.coverage_calculator.calculate(stats, event_totals)

    async def search_similar(
        self,
        query_text: str,
        filters: Optional[VectorSearchFilters] = None,
        limit: int = 20
    ) -> list[dict]:
        """Embed the query and search the content view."""
        query_vector = await self.embedding_generator.embed_query(query_text)
        filters = replace(filters or VectorSearchFilters(), embedding_view=EmbeddingView.CONTENT.value)

        results = await self.vector_store.search_similar(query_vector, filters, limit)
        return [
            {
                "eventId": r.row.event_id,
                "eventType": r.row.event_type,
                "similarity": r.similarity,
                "textSummary": r.row.text_summary,
                "keywords": list(r.row.keywords)
            }
            for r in results
        ]

    async def get_event_status(self, event_id: str) -> dict:
        """Whether an event is vectorized and which views it has."""
        rows = await self.vector_store.get_by_event_id(event_id)
        views = sorted(row.embedding_view for row in rows)
        return {
            "eventId": event_id,
            "vectorized": EmbeddingView.CONTENT.value in views,
            "views": views,
            "placeholder": any(row.is_placeholder for row in rows)
        }

    async def check_health(self) -> dict:
        """Reachability of storage and the embedding service, plus policy state."""
        checks = {
            "storage": await self.vector_store.ping(),
            "policy": self.policy_config is not None,
        }

        try:
            await self.embedding_generator.embed_query("health check")
            checks["embedding"] = True
        except Exception as e:
            logger.warning("embedding_health_check_failed", error=str(e))
            checks["embedding"] = False

        if self.entity_linker is not None:
            checks["graph"] = await self.entity_linker.graph_client.ping()

        return {
            # Graph is best-effort and does not affect overall health
            "healthy": checks["storage"] and checks["embedding"] and checks["policy"],
            "checks": checks,
            "policyVersion": self.policy_config.version
        }

    async def close(self) -> None:
        await self.vector_store.close()
        await self.embedding_generator.client.close()


def create_vectorization_pipeline(settings=None, policy_config: Optional[EmbeddingPolicyConfig] = None) -> VectorizationPipeline:
    """Wire a pipeline from settings (defaults to the cached environment settings)."""
    from ...config.policy import load_policy_config
    from ...config.providers import get_embedding_client, get_graph_client, get_vector_store
    from ...config.settings import get_settings

    settings = settings or get_settings()
    policy_config = policy_config or load_policy_config(settings.policy_path)

    generator = EmbeddingGenerator(get_embedding_client(settings.embedding), settings.embedding)
    vector_store = get_vector_store(settings.vectorstore, dimensions=generator.dimensions)
    entity_linker = EntityLinker(get_graph_client(settings.graph)) if settings.entity_linking_enabled else None

    return VectorizationPipeline(
        policy_config=policy_config,
        embedding_generator=generator,
        vector_store=vector_store,
        entity_linker=entity_linker
    )
