"""
Vectorization Pipeline Tests

Tests for:
- the per-event state machine (policy skip, idempotency skip, success, failure)
- placeholder fallback keeping coverage complete
- best-effort entity linking
- batch ordering, coverage, search, status and health
"""

import pytest

from brain_vectorize.layers.graph import EntityLinker, InMemoryGraphClient
from brain_vectorize.layers.orchestration import SkipReason, VectorizationPipeline, VectorizeStage
from brain_vectorize.layers.representation import (
    EmbeddingGenerator,
    InMemoryVectorStore,
    MockEmbeddingClient,
    VectorSearchFilters
)

from tests.conftest import DIMENSIONS, make_event


def build_pipeline(policy_config, client=None, store=None, graph=None) -> VectorizationPipeline:
    return VectorizationPipeline(
        policy_config=policy_config,
        embedding_generator=EmbeddingGenerator(client if client is not None else MockEmbeddingClient(dimensions=DIMENSIONS)),
        vector_store=store if store is not None else InMemoryVectorStore(),
        entity_linker=EntityLinker(graph) if graph is not None else None
    )


# =============================================================================
# SINGLE EVENT
# =============================================================================

class TestVectorizeEvent:

    @pytest.mark.asyncio
    async def test_success_path(self, pipeline, vector_store, finance_event):
        result = await pipeline.vectorize_event(finance_event)

        assert result.success and not result.skipped
        assert result.embeddings_generated == 2
        assert result.rows_written == 2
        assert result.entities_linked == 1
        assert result.states == [
            VectorizeStage.RECEIVED,
            VectorizeStage.EMBEDDED,
            VectorizeStage.STORED,
            VectorizeStage.ENTITY_LINKED,
            VectorizeStage.SUCCESS,
        ]
        assert len(vector_store) == 2

    @pytest.mark.asyncio
    async def test_second_run_is_skipped(self, pipeline, vector_store, embedding_client, finance_event):
        await pipeline.vectorize_event(finance_event)
        calls = len(embedding_client.calls)

        result = await pipeline.vectorize_event(finance_event)

        assert result.success and result.skipped
        assert result.skip_reason == SkipReason.ALREADY_VECTORIZED
        assert result.state == VectorizeStage.SKIPPED_ALREADY_VECTORIZED
        assert len(embedding_client.calls) == calls
        assert len(vector_store) == 2

    @pytest.mark.asyncio
    async def test_disabled_policy_is_skipped(self, pipeline, vector_store, embedding_client):
        result = await pipeline.vectorize_event(make_event(event_type="system.heartbeat"))

        assert result.success and result.skipped
        assert result.skip_reason == SkipReason.POLICY_DISABLED
        assert result.cfd is None
        assert embedding_client.calls == []
        assert len(vector_store) == 0

    @pytest.mark.asyncio
    async def test_embedding_failure_writes_placeholder(self, policy_config, finance_event):
        store = InMemoryVectorStore()
        pipeline = build_pipeline(policy_config, MockEmbeddingClient(dimensions=DIMENSIONS, fail_all=True), store)

        result = await pipeline.vectorize_event(finance_event)

        assert result.success
        assert result.used_placeholder
        rows = await store.get_by_event_id(finance_event.event_id)
        assert len(rows) == 1
        assert rows[0].is_placeholder
        assert rows[0].vector == [0.0] * DIMENSIONS

        metrics = await pipeline.get_coverage_metrics({"finance.transaction_created": 1})
        assert metrics.coverage_percent == 100.0
        assert metrics.placeholder_events == 1

    @pytest.mark.asyncio
    async def test_insufficient_text_writes_placeholder(self, policy_config):
        store = InMemoryVectorStore()
        client = MockEmbeddingClient(dimensions=DIMENSIONS)
        pipeline = build_pipeline(policy_config, client, store)

        result = await pipeline.vectorize_event(make_event(event_id="bare", event_type=""))

        assert result.success
        assert result.used_placeholder
        assert client.calls == []
        rows = await store.get_by_event_id("bare")
        assert len(rows) == 1
        assert rows[0].is_placeholder
        assert rows[0].embedded_text.startswith("[PLACEHOLDER: Insufficient text")

    @pytest.mark.asyncio
    async def test_storage_failure_fails_event(self, pipeline, vector_store, finance_event):
        vector_store.fail_writes = True

        result = await pipeline.vectorize_event(finance_event)

        assert not result.success
        assert result.state == VectorizeStage.FAILED
        assert "fail writes" in result.error

    @pytest.mark.asyncio
    async def test_unreadable_store_fails_event(self, pipeline, vector_store, finance_event):
        vector_store.fail_reads = True

        result = await pipeline.vectorize_event(finance_event)

        assert not result.success
        assert result.states == [VectorizeStage.RECEIVED, VectorizeStage.FAILED]

    @pytest.mark.asyncio
    async def test_graph_failure_does_not_fail_event(self, policy_config, finance_event):
        graph = InMemoryGraphClient()
        graph.unavailable = True
        pipeline = build_pipeline(policy_config, graph=graph)

        result = await pipeline.vectorize_event(finance_event)

        assert result.success
        assert result.entities_linked == 0
        assert VectorizeStage.ENTITY_LINKED not in result.states
        assert result.entity_linking_result.errors

    @pytest.mark.asyncio
    async def test_event_without_refs_skips_linking(self, pipeline, graph_client):
        event = make_event(event_type="unknown.thing", payloadPreview="Evening walk in the park")

        result = await pipeline.vectorize_event(event)

        assert result.success
        assert result.entity_linking_result is None
        assert graph_client.batches == []

    @pytest.mark.asyncio
    async def test_result_serialization(self, pipeline, finance_event):
        data = (await pipeline.vectorize_event(finance_event)).to_dict()

        assert data["eventId"] == "evt_1"
        assert data["state"] == "success"
        assert data["skipReason"] is None


# =============================================================================
# BATCH AND QUERIES
# =============================================================================

class TestPipelineQueries:

    @pytest.mark.asyncio
    async def test_batch_keeps_input_order(self, pipeline):
        events = [
            make_event(event_id="a", payload={"merchant": "Bakery"}),
            make_event(event_id="b", event_type="system.heartbeat"),
            make_event(event_id="c", event_type="task.created", payload={"title": "Renew passport"}),
        ]

        batch = await pipeline.vectorize_batch(events)

        assert [r.event_id for r in batch.results] == ["a", "b", "c"]
        assert (batch.total_processed, batch.succeeded, batch.skipped, batch.failed) == (3, 2, 1, 0)

    @pytest.mark.asyncio
    async def test_search_returns_content_view_only(self, pipeline):
        await pipeline.vectorize_event(make_event(event_id="a", payload={"merchant": "Bakery", "merchantId": "m_2"}))
        await pipeline.vectorize_event(
            make_event(event_id="b", event_type="task.created", payload={"title": "Renew passport"})
        )

        results = await pipeline.search_similar("Bakery", VectorSearchFilters(domains=["finance"]))

        assert [r["eventId"] for r in results] == ["a"]
        assert results[0]["textSummary"] == "Bakery"

    @pytest.mark.asyncio
    async def test_event_status(self, pipeline, finance_event):
        await pipeline.vectorize_event(finance_event)

        status = await pipeline.get_event_status(finance_event.event_id)
        missing = await pipeline.get_event_status("nope")

        assert status == {"eventId": "evt_1", "vectorized": True, "views": ["content", "entity"], "placeholder": False}
        assert missing["vectorized"] is False

    @pytest.mark.asyncio
    async def test_coverage_against_totals(self, pipeline):
        await pipeline.vectorize_event(make_event(event_id="a", payload={"merchant": "Bakery"}))

        metrics = await pipeline.get_coverage_metrics({"finance.transaction_created": 4, "task.created": 1})

        assert metrics.total_events == 5
        assert metrics.vectorized_events == 1
        assert metrics.pending_events == 4
        assert metrics.coverage_percent == 20.0
        assert metrics.by_event_type["finance.transaction_created"].coverage == 25.0

    @pytest.mark.asyncio
    async def test_health(self, pipeline, vector_store, graph_client):
        healthy = await pipeline.check_health()
        assert healthy["healthy"]
        assert healthy["checks"] == {"storage": True, "policy": True, "embedding": True, "graph": True}

        graph_client.unavailable = True
        assert (await pipeline.check_health())["healthy"]

        vector_store.fail_reads = True
        assert not (await pipeline.check_health())["healthy"]

    @pytest.mark.asyncio
    async def test_health_reports_embedding_outage(self, policy_config):
        pipeline = build_pipeline(policy_config, MockEmbeddingClient(dimensions=DIMENSIONS, fail_all=True))

        health = await pipeline.check_health()

        assert not health["healthy"]
        assert health["checks"]["embedding"] is False
