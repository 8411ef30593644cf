"""
Shared fixtures: sample events and a pipeline over in-memory backends.
"""

import pytest

from brain_vectorize.config.policy import DEFAULT_POLICY_CONFIG
from brain_vectorize.config.settings import EmbeddingConfig
from brain_vectorize.core.events import RawEvent
from brain_vectorize.layers.graph import EntityLinker, InMemoryGraphClient
from brain_vectorize.layers.orchestration import VectorizationPipeline
from brain_vectorize.layers.representation import (
    EmbeddingGenerator,
    InMemoryVectorStore,
    MockEmbeddingClient
)

DIMENSIONS = 32


def make_event(
    event_id: str = "evt_1",
    event_type: str = "finance.transaction_created",
    payload: dict = None,
    timestamp_ms: int = 1_700_000_000_000,
    **overrides
) -> RawEvent:
    data = {
        "eventId": event_id,
        "traceId": f"trace_{event_id}",
        "userId": "user_1",
        "eventType": event_type,
        "sourceApp": "test-app",
        "domain": event_type.split(".")[0],
        "timestampMs": timestamp_ms,
        "receivedAtMs": timestamp_ms,
        "privacyScope": "private",
        "consentVersion": "1.0",
        "payload": payload if payload is not None else {},
        "blobRefs": [],
    }
    data.update(overrides)
    return RawEvent.from_dict(data)


@pytest.fixture
def finance_event() -> RawEvent:
    return make_event(payload={
        "amount": 42.50,
        "merchant": "Coffee Shop",
        "merchantId": "m_1",
        "category": "food_and_drink",
    })


@pytest.fixture
def policy_config():
    return DEFAULT_POLICY_CONFIG


@pytest.fixture
def embedding_client() -> MockEmbeddingClient:
    return MockEmbeddingClient(dimensions=DIMENSIONS)


@pytest.fixture
def embedding_generator(embedding_client) -> EmbeddingGenerator:
    return EmbeddingGenerator(embedding_client, EmbeddingConfig(dimensions=DIMENSIONS))


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def graph_client() -> InMemoryGraphClient:
    return InMemoryGraphClient()


@pytest.fixture
def pipeline(policy_config, embedding_generator, vector_store, graph_client) -> VectorizationPipeline:
    return VectorizationPipeline(
        policy_config=policy_config,
        embedding_generator=embedding_generator,
        vector_store=vector_store,
        entity_linker=EntityLinker(graph_client)
    )
