"""
Configuration Management

Centralized configuration for:
- Embedding service (OpenRouter/OpenAI, local HuggingFace, mock)
- Vector store (Qdrant, in-memory)
- Graph store (Neo4j HTTP API)
- Logging
- Embedding policies per event type
"""

from .settings import (
    Settings,
    EmbeddingConfig,
    VectorStoreConfig,
    GraphStoreConfig,
    ObservabilityConfig,
    get_settings
)
from .policy import (
    ExtractionPolicy,
    EmbeddingPolicyConfig,
    DEFAULT_POLICY_CONFIG,
    load_policy_config
)
from .providers import (
    EmbeddingProvider,
    get_embedding_client,
    get_vector_store,
    get_graph_client
)

__all__ = [
    "Settings",
    "EmbeddingConfig",
    "VectorStoreConfig",
    "GraphStoreConfig",
    "ObservabilityConfig",
    "get_settings",
    "ExtractionPolicy",
    "EmbeddingPolicyConfig",
    "DEFAULT_POLICY_CONFIG",
    "load_policy_config",
    "EmbeddingProvider",
    "get_embedding_client",
    "get_vector_store",
    "get_graph_client"
]
