"""
Settings Management with Pydantic

Provides type-safe configuration management with:
- Environment variable support (.env file included)
- Validation
- Per-backend configurations (embedding service, vector store, graph store)
"""

from enum import Enum
from typing import Optional
from functools import lru_cache

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class EmbeddingProviderType(str, Enum):
    """Supported embedding providers."""
    OPENAI = "openai"
    HUGGINGFACE = "huggingface"
    MOCK = "mock"


class VectorStoreType(str, Enum):
    """Supported vector store backends."""
    QDRANT = "qdrant"
    IN_MEMORY = "in_memory"


class EmbeddingConfig(BaseSettings):
    """Embedding service configuration."""
    model_config = SettingsConfigDict(
        env_prefix="EMBEDDING_",
        extra="ignore",
        populate_by_name=True
    )

    provider: EmbeddingProviderType = EmbeddingProviderType.OPENAI
    model_name: str = "openai/text-embedding-3-small"
    dimensions: int = 1536
    max_input_length: int = 8000
    max_batch_size: int = 100
    timeout: int = 60

    # OpenAI-compatible endpoint (OpenRouter by default)
    base_url: str = "https://openrouter.ai/api/v1"
    api_key: Optional[SecretStr] = Field(default=None, alias="OPENROUTER_API_KEY")
    app_title: str = "brain-vectorize"

    # For local sentence-transformers through LangChain
    sentence_transformer_model: str = "all-MiniLM-L6-v2"


class VectorStoreConfig(BaseSettings):
    """Vector store configuration."""
    model_config = SettingsConfigDict(
        env_prefix="VECTORSTORE_",
        extra="ignore"
    )

    backend: VectorStoreType = VectorStoreType.IN_MEMORY
    collection_name: str = "vectors_events"

    # Qdrant settings
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: Optional[SecretStr] = None
    distance: str = "cosine"


class GraphStoreConfig(BaseSettings):
    """Graph store (Neo4j HTTP API) configuration."""
    model_config = SettingsConfigDict(
        env_prefix="NEO4J_",
        extra="ignore"
    )

    # Unset means entity linking reports "not configured" for every statement
    http_url: Optional[str] = None
    user: str = "neo4j"
    password: Optional[SecretStr] = None
    database: str = "neo4j"
    timeout: int = 30


class ObservabilityConfig(BaseSettings):
    """Logging configuration."""
    model_config = SettingsConfigDict(
        env_prefix="OBSERVABILITY_",
        extra="ignore"
    )

    log_level: str = "INFO"
    json_logs: bool = False


class Settings(BaseSettings):
    """Main application settings."""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Application
    app_name: str = "Brain Vectorize"
    debug: bool = False

    # Sub-configurations
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    vectorstore: VectorStoreConfig = Field(default_factory=VectorStoreConfig)
    graph: GraphStoreConfig = Field(default_factory=GraphStoreConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    # Pipeline specific
    policy_path: Optional[str] = None
    entity_linking_enabled: bool = True
    backfill_batch_size: int = 50

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings from environment variables."""
        return cls(
            embedding=EmbeddingConfig(),
            vectorstore=VectorStoreConfig(),
            graph=GraphStoreConfig(),
            observability=ObservabilityConfig()
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()
