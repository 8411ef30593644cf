"""
Representation Layer

From CFD to stored vectors:
- Embedding generation (content and entity views, placeholder fallback)
- Vector persistence with insert-if-absent semantics and coverage stats
"""

from .embeddings import (
    EmbeddingView,
    GeneratedEmbedding,
    EmbeddingBatchResult,
    EmbeddingClient,
    OpenAIEmbeddingClient,
    LangChainEmbeddingClient,
    MockEmbeddingClient,
    EmbeddingGenerator,
    build_content_text,
    build_entity_text,
    create_placeholder_embedding
)
from .vector_store import (
    VectorEventRow,
    VectorSearchFilters,
    VectorWriteResult,
    VectorSearchResult,
    CoverageStats,
    VectorStore,
    InMemoryVectorStore,
    QdrantVectorStore,
    to_vector_event_row
)

__all__ = [
    "EmbeddingView",
    "GeneratedEmbedding",
    "EmbeddingBatchResult",
    "EmbeddingClient",
    "OpenAIEmbeddingClient",
    "LangChainEmbeddingClient",
    "MockEmbeddingClient",
    "EmbeddingGenerator",
    "build_content_text",
    "build_entity_text",
    "create_placeholder_embedding",
    "VectorEventRow",
    "VectorSearchFilters",
    "VectorWriteResult",
    "VectorSearchResult",
    "CoverageStats",
    "VectorStore",
    "InMemoryVectorStore",
    "QdrantVectorStore",
    "to_vector_event_row"
]
