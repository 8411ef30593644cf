"""
Embedding Generator Tests

Tests for:
- content and entity text construction
- content failures propagating, entity failures being dropped
- batch isolation between CFDs
- placeholder embeddings
- the OpenAI-compatible client's error mapping
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import openai
import pytest

from brain_vectorize.config.settings import EmbeddingConfig
from brain_vectorize.core.errors import EmbeddingServiceError, InsufficientTextError
from brain_vectorize.layers.normalization import build_cfd
from brain_vectorize.layers.representation import (
    EmbeddingGenerator,
    EmbeddingView,
    MockEmbeddingClient,
    OpenAIEmbeddingClient,
    build_content_text,
    build_entity_text,
    create_placeholder_embedding
)

from tests.conftest import DIMENSIONS, make_event


@pytest.fixture
def finance_cfd(policy_config, finance_event):
    return build_cfd(finance_event, policy_config)


# =============================================================================
# TEXT CONSTRUCTION
# =============================================================================

class TestEmbeddingText:

    def test_content_text_layout(self, finance_cfd):
        assert build_content_text(finance_cfd) == (
            "[finance.transaction_created] | Coffee Shop | Keywords: coffee, shop"
            " | Categories: category:food_and_drink"
        )

    def test_content_text_minimal(self, policy_config):
        cfd = build_cfd(make_event(event_type="unknown.thing"), policy_config)

        assert build_content_text(cfd) == "[unknown.thing]"

    def test_entity_text(self, finance_cfd, policy_config):
        assert build_entity_text(finance_cfd) == "Entities: merchant:m_1"
        assert build_entity_text(build_cfd(make_event(payload={}), policy_config)) == ""


# =============================================================================
# GENERATOR
# =============================================================================

class TestEmbeddingGenerator:

    @pytest.mark.asyncio
    async def test_content_and_entity_views(self, embedding_generator, finance_cfd):
        embeddings = await embedding_generator.generate_all_embeddings(finance_cfd)

        assert [e.view for e in embeddings] == [EmbeddingView.CONTENT, EmbeddingView.ENTITY]
        assert all(e.dimensions == DIMENSIONS for e in embeddings)
        assert all(e.event_id == "evt_1" for e in embeddings)
        assert embeddings[0].model == "mock-embedding"

    @pytest.mark.asyncio
    async def test_mock_vectors_are_deterministic(self, embedding_client):
        first = await embedding_client.embed("same text")
        second = await embedding_client.embed("same text")

        assert first == second
        assert sum(x * x for x in first) == pytest.approx(1.0)

    @pytest.mark.asyncio
    async def test_no_entity_refs_gives_content_only(self, embedding_generator, policy_config):
        cfd = build_cfd(make_event(event_type="unknown.thing", payloadPreview="Morning run"), policy_config)

        embeddings = await embedding_generator.generate_all_embeddings(cfd)

        assert [e.view for e in embeddings] == [EmbeddingView.CONTENT]
        assert await embedding_generator.generate_entity_embedding(cfd) is None

    @pytest.mark.asyncio
    async def test_insufficient_text(self, embedding_generator, policy_config):
        cfd = build_cfd(make_event(event_type=""), policy_config)

        with pytest.raises(InsufficientTextError):
            await embedding_generator.generate_content_embedding(cfd)

    @pytest.mark.asyncio
    async def test_content_failure_propagates(self, finance_cfd):
        generator = EmbeddingGenerator(MockEmbeddingClient(dimensions=DIMENSIONS, fail_all=True))

        with pytest.raises(EmbeddingServiceError):
            await generator.generate_all_embeddings(finance_cfd)

    @pytest.mark.asyncio
    async def test_entity_failure_is_omitted(self, finance_cfd):
        client = MockEmbeddingClient(dimensions=DIMENSIONS, fail_on=["Entities:"])
        generator = EmbeddingGenerator(client)

        embeddings = await generator.generate_all_embeddings(finance_cfd)

        assert [e.view for e in embeddings] == [EmbeddingView.CONTENT]
        assert len(client.calls) == 2

    @pytest.mark.asyncio
    async def test_texts_truncated_to_max_input_length(self, policy_config):
        client = MockEmbeddingClient(dimensions=DIMENSIONS)
        generator = EmbeddingGenerator(client, EmbeddingConfig(max_input_length=40))
        cfd = build_cfd(make_event(event_type="unknown.thing", payloadPreview="word " * 100), policy_config)

        embedding = await generator.generate_content_embedding(cfd)

        assert len(client.calls[0]) == 40
        assert len(embedding.embedded_text) > 40

    @pytest.mark.asyncio
    async def test_batch_isolates_failures(self, policy_config):
        client = MockEmbeddingClient(dimensions=DIMENSIONS, fail_on=["broken"])
        generator = EmbeddingGenerator(client, EmbeddingConfig(max_batch_size=2))
        cfds = [
            build_cfd(make_event(event_id=f"e{i}", event_type="unknown.thing", payloadPreview=text), policy_config)
            for i, text in enumerate(["first note", "broken note", "third note"])
        ]

        result = await generator.generate_embeddings_batch(cfds)

        assert [e.event_id for e in result.embeddings] == ["e0", "e2"]
        assert [f["eventId"] for f in result.failed] == ["e1"]

    def test_placeholder(self, embedding_generator):
        placeholder = embedding_generator.create_placeholder_embedding("e9", "service down")

        assert placeholder.is_placeholder
        assert placeholder.view == EmbeddingView.CONTENT
        assert placeholder.vector == [0.0] * DIMENSIONS
        assert placeholder.embedded_text == "[PLACEHOLDER: service down]"

    def test_module_placeholder_default_dimensions(self):
        assert len(create_placeholder_embedding("e1", "x").vector) == 1536


# =============================================================================
# OPENAI-COMPATIBLE CLIENT
# =============================================================================

class TestOpenAIEmbeddingClient:

    def _client(self, create):
        api = MagicMock()
        api.embeddings.create = create
        return OpenAIEmbeddingClient(EmbeddingConfig(), client=api)

    @pytest.mark.asyncio
    async def test_returns_first_embedding(self):
        create = AsyncMock(return_value=SimpleNamespace(data=[SimpleNamespace(embedding=[0.1, 0.2])]))
        client = self._client(create)

        assert await client.embed("hello world") == [0.1, 0.2]
        create.assert_awaited_once_with(model="openai/text-embedding-3-small", input="hello world")

    @pytest.mark.asyncio
    async def test_provider_error_is_wrapped(self):
        client = self._client(AsyncMock(side_effect=openai.OpenAIError("rate limited")))

        with pytest.raises(EmbeddingServiceError, match="rate limited"):
            await client.embed("hello world")

    @pytest.mark.asyncio
    async def test_empty_response(self):
        client = self._client(AsyncMock(return_value=SimpleNamespace(data=[])))

        with pytest.raises(EmbeddingServiceError, match="No embedding returned"):
            await client.embed("hello world")
