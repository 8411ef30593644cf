"""
Configuration Tests

Tests for:
- environment-driven settings per backend
- provider factories
- policy loading from JSON (camelCase) and its failure modes
- redaction rules
"""

import json

import pytest

from brain_vectorize.config import (
    DEFAULT_POLICY_CONFIG,
    EmbeddingConfig,
    EmbeddingPolicyConfig,
    GraphStoreConfig,
    Settings,
    VectorStoreConfig,
    get_embedding_client,
    get_graph_client,
    get_vector_store,
    load_policy_config
)
from brain_vectorize.config.settings import EmbeddingProviderType, VectorStoreType
from brain_vectorize.core.errors import PolicyError
from brain_vectorize.core.events import Modality
from brain_vectorize.layers.graph import Neo4jHttpGraphClient
from brain_vectorize.layers.representation import (
    InMemoryVectorStore,
    MockEmbeddingClient,
    OpenAIEmbeddingClient,
    QdrantVectorStore
)


# =============================================================================
# SETTINGS
# =============================================================================

class TestSettings:

    def test_defaults(self):
        config = EmbeddingConfig()

        assert config.model_name == "openai/text-embedding-3-small"
        assert config.base_url == "https://openrouter.ai/api/v1"
        assert VectorStoreConfig().collection_name == "vectors_events"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("EMBEDDING_PROVIDER", "mock")
        monkeypatch.setenv("EMBEDDING_DIMENSIONS", "64")
        monkeypatch.setenv("OPENROUTER_API_KEY", "sk-test")
        monkeypatch.setenv("VECTORSTORE_BACKEND", "qdrant")
        monkeypatch.setenv("NEO4J_HTTP_URL", "http://graph:7474")
        monkeypatch.setenv("OBSERVABILITY_JSON_LOGS", "true")

        settings = Settings.from_env()

        assert settings.embedding.provider == EmbeddingProviderType.MOCK
        assert settings.embedding.dimensions == 64
        assert settings.embedding.api_key.get_secret_value() == "sk-test"
        assert settings.vectorstore.backend == VectorStoreType.QDRANT
        assert settings.graph.http_url == "http://graph:7474"
        assert settings.observability.json_logs is True


class TestProviders:

    def test_embedding_clients(self):
        mock = get_embedding_client(EmbeddingConfig(provider="mock", dimensions=8))
        openai_client = get_embedding_client(EmbeddingConfig(provider="openai"))

        assert isinstance(mock, MockEmbeddingClient)
        assert mock.dimensions == 8
        assert isinstance(openai_client, OpenAIEmbeddingClient)

    def test_vector_stores(self):
        in_memory = get_vector_store(VectorStoreConfig(backend="in_memory"), dimensions=8)
        qdrant = get_vector_store(VectorStoreConfig(backend="qdrant"), dimensions=8)

        assert isinstance(in_memory, InMemoryVectorStore)
        assert isinstance(qdrant, QdrantVectorStore)
        assert qdrant.dimensions == 8

    def test_graph_client(self):
        client = get_graph_client(GraphStoreConfig(http_url="http://graph:7474"))

        assert isinstance(client, Neo4jHttpGraphClient)
        assert client.configured


# =============================================================================
# POLICY
# =============================================================================

class TestPolicyConfig:

    def test_default_when_no_path(self):
        assert load_policy_config(None) is DEFAULT_POLICY_CONFIG

    def test_load_camel_case_json(self, tmp_path):
        path = tmp_path / "policies.json"
        path.write_text(json.dumps({
            "version": "2.0.0",
            "globalRedactKeys": ["pin"],
            "defaultPolicy": {"embedTextFields": ["payloadPreview"]},
            "policies": {
                "health.sleep_logged": {
                    "embedStructuredFields": ["payload.hours"],
                    "entityRefPaths": ["payload.deviceId"],
                    "modalityHint": "structured",
                },
                "system.ping": {"enabled": False},
            },
        }))

        config = load_policy_config(path)

        assert config.version == "2.0.0"
        policy = config.get_policy("health.sleep_logged")
        assert policy.embed_structured_fields == ["payload.hours"]
        assert policy.modality_hint == Modality.STRUCTURED
        assert not config.should_vectorize("system.ping")
        assert config.get_policy("other.type").embed_text_fields == ["payloadPreview"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(PolicyError, match="Cannot read"):
            load_policy_config(tmp_path / "absent.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")

        with pytest.raises(PolicyError):
            load_policy_config(path)

    def test_invalid_shape(self, tmp_path):
        path = tmp_path / "wrong.json"
        path.write_text(json.dumps({"policies": {"a.b": {"enabled": "sometimes"}}}))

        with pytest.raises(PolicyError, match="Invalid policy file"):
            load_policy_config(path)

    def test_builtin_policies(self):
        assert not DEFAULT_POLICY_CONFIG.should_vectorize("system.heartbeat")
        assert DEFAULT_POLICY_CONFIG.should_vectorize("never.seen")
        finance = DEFAULT_POLICY_CONFIG.get_policy("finance.transaction_created")
        assert finance.modality_hint == Modality.STRUCTURED

    def test_redaction_rules(self):
        config = EmbeddingPolicyConfig(global_redact_keys=["apiKey"])
        policy = config.get_policy("any")

        assert config.is_redacted(policy, "payload.auth.APIKEY")
        assert not config.is_redacted(policy, "payload.apiKeyHint")
        assert DEFAULT_POLICY_CONFIG.is_redacted(
            DEFAULT_POLICY_CONFIG.get_policy("email.message_sent"),
            "payload.toAddresses"
        )
