"""
Embedding, Vector Store and Graph Provider Factory

Turns configuration into backend clients:
- Embedding clients (OpenAI-compatible API, local HuggingFace via LangChain, mock)
- Vector stores (Qdrant, in-memory)
- Graph clients (Neo4j HTTP API)

Backends are imported lazily so optional packages are only needed when
they are configured.
"""

from .settings import (
    EmbeddingConfig,
    EmbeddingProviderType,
    GraphStoreConfig,
    VectorStoreConfig,
    VectorStoreType,
    get_settings
)


class EmbeddingProvider:
    """
    Factory for embedding clients.

    Supports:
    - OpenAI-compatible embeddings (OpenRouter by default)
    - HuggingFace sentence-transformers through LangChain (local)
    - Mock embeddings (tests, QA, offline runs)
    """

    def __init__(self, config: EmbeddingConfig = None):
        self.config = config or get_settings().embedding
        self._client = None

    def get_client(self):
        """Get embedding client instance (lazy initialization)."""
        if self._client is None:
            self._client = self._create_client()
        return self._client

    def _create_client(self):
        provider = self.config.provider

        if provider == EmbeddingProviderType.OPENAI:
            return self._create_openai_client()
        elif provider == EmbeddingProviderType.HUGGINGFACE:
            return self._create_huggingface_client()
        elif provider == EmbeddingProviderType.MOCK:
            return self._create_mock_client()
        else:
            raise ValueError(f"Unsupported embedding provider: {provider}")

    def _create_openai_client(self):
        from ..layers.representation.embeddings import OpenAIEmbeddingClient
        return OpenAIEmbeddingClient(self.config)

    def _create_huggingface_client(self):
        """Create a local sentence-transformers client."""
        from ..layers.representation.embeddings import LangChainEmbeddingClient
        try:
            from langchain_community.embeddings import HuggingFaceEmbeddings
        except ImportError:
            raise ImportError(
                "Install langchain extras: pip install -e '.[langchain]'"
            )

        embeddings = HuggingFaceEmbeddings(
            model_name=self.config.sentence_transformer_model,
            model_kwargs={'device': 'cpu'},
            encode_kwargs={'normalize_embeddings': True}
        )
        return LangChainEmbeddingClient(
            embeddings,
            model_name=self.config.sentence_transformer_model,
            dimensions=self.config.dimensions
        )

    def _create_mock_client(self):
        from ..layers.representation.embeddings import MockEmbeddingClient
        return MockEmbeddingClient(dimensions=self.config.dimensions)


def get_embedding_client(config: EmbeddingConfig = None):
    """Get embedding client instance."""
    return EmbeddingProvider(config).get_client()


def get_vector_store(config: VectorStoreConfig = None, dimensions: int = None):
    """Get vector store for the configured backend."""
    config = config or get_settings().vectorstore
    dimensions = dimensions or get_settings().embedding.dimensions

    if config.backend == VectorStoreType.QDRANT:
        from ..layers.representation.vector_store import QdrantVectorStore
        return QdrantVectorStore(config, dimensions=dimensions)
    elif config.backend == VectorStoreType.IN_MEMORY:
        from ..layers.representation.vector_store import InMemoryVectorStore
        return InMemoryVectorStore()
    else:
        raise ValueError(f"Unsupported vector store backend: {config.backend}")


def get_graph_client(config: GraphStoreConfig = None):
    """Get graph client (Neo4j HTTP API)."""
    from ..layers.graph.graph_client import Neo4jHttpGraphClient
    return Neo4jHttpGraphClient(config or get_settings().graph)
