"""
Embedding Generation for Canonical Feature Documents

Turns a CFD into named vector views:
- content: event type + text summary + keywords + categories (required)
- entity: the CFD's entity references (optional)

Embedding clients hide the provider behind one async `embed(text)` call:
- OpenAIEmbeddingClient: OpenAI-compatible /embeddings endpoint (OpenRouter)
- LangChainEmbeddingClient: any LangChain `Embeddings` (local HuggingFace models)
- MockEmbeddingClient: deterministic pseudo-embeddings for tests and QA runs

A content failure propagates to the caller, who substitutes a placeholder
embedding so every event still ends up with a vector row.
"""

import asyncio
import hashlib
import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ...config.settings import EmbeddingConfig
from ...core.errors import EmbeddingServiceError, InsufficientTextError
from ...core.events import CanonicalFeatureDocument, now_ms
from ...observability import get_logger


logger = get_logger(__name__)

MIN_EMBEDDING_TEXT_LENGTH = 5
PLACEHOLDER_MODEL = "placeholder"


class EmbeddingView(str, Enum):
    """Named vector views of one event."""
    CONTENT = "content"
    ENTITY = "entity"


@dataclass
class GeneratedEmbedding:
    """One vector view of an event."""
    event_id: str
    view: EmbeddingView
    vector: list[float]
    embedded_text: str
    model: str
    dimensions: int
    generated_at: int = field(default_factory=now_ms)

    @property
    def is_placeholder(self) -> bool:
        return self.model == PLACEHOLDER_MODEL

    def to_dict(self) -> dict:
        return {
            "eventId": self.event_id,
            "view": self.view.value,
            "vector": list(self.vector),
            "embeddedText": self.embedded_text,
            "model": self.model,
            "dimensions": self.dimensions,
            "generatedAt": self.generated_at
        }


@dataclass
class EmbeddingBatchResult:
    """Outcome of embedding a list of CFDs."""
    embeddings: list[GeneratedEmbedding] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)  # {eventId, error}
    processing_time_ms: int = 0


class EmbeddingClient(ABC):
    """
    Abstract base class for embedding providers.

    Implementations return a single vector for a single text and raise
    EmbeddingServiceError when the provider fails or returns nothing.
    """

    model_name: str = ""
    dimensions: int = 0

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Embed one text."""
        pass

    async def close(self) -> None:
        """Release underlying connections."""
        return None


class OpenAIEmbeddingClient(EmbeddingClient):
    """
    OpenAI-compatible embeddings client.

    Defaults to OpenRouter (`POST {base_url}/embeddings`) with the
    `openai/text-embedding-3-small` model.
    """

    def __init__(self, config: EmbeddingConfig = None, client=None):
        self.config = config or EmbeddingConfig()
        self.model_name = self.config.model_name
        self.dimensions = self.config.dimensions
        self._client = client

    def _get_client(self):
        """Lazy initialization of the AsyncOpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError:
                raise ImportError("openai package required: pip install openai")

            api_key = self.config.api_key
            self._client = AsyncOpenAI(
                api_key=api_key.get_secret_value() if api_key else "unset",
                base_url=self.config.base_url,
                timeout=self.config.timeout,
                max_retries=0,
                default_headers={"X-Title": self.config.app_title}
            )
        return self._client

    async def embed(self, text: str) -> list[float]:
        from openai import OpenAIError

        client = self._get_client()
        try:
            response = await client.embeddings.create(model=self.model_name, input=text)
        except OpenAIError as e:
            raise EmbeddingServiceError(f"Embedding generation failed: {e}") from e

        data = getattr(response, "data", None) or []
        embedding = data[0].embedding if data else None
        if not embedding:
            raise EmbeddingServiceError("No embedding returned from API")
        return list(embedding)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()


class LangChainEmbeddingClient(EmbeddingClient):
    """
    Adapter over a LangChain `Embeddings` instance.

    Used for local sentence-transformer models through
    langchain-community's HuggingFaceEmbeddings.
    """

    def __init__(self, embeddings, model_name: str = "", dimensions: int = 0):
        self._embeddings = embeddings
        self.model_name = model_name or getattr(embeddings, "model_name", "langchain")
        self.dimensions = dimensions

    async def embed(self, text: str) -> list[float]:
        try:
            vector = await self._embeddings.aembed_query(text)
        except Exception as e:
            raise EmbeddingServiceError(f"Embedding generation failed: {e}") from e
        if not vector:
            raise EmbeddingServiceError("No embedding returned from model")
        return list(vector)


class MockEmbeddingClient(EmbeddingClient):
    """
    Mock embedding client for testing and QA runs.

    Generates deterministic, normalized pseudo-embeddings seeded from the
    text hash. Texts containing any of `fail_on` (or every text when
    `fail_all` is set) raise EmbeddingServiceError.
    """

    def __init__(
        self,
        dimensions: int = 1536,
        model_name: str = "mock-embedding",
        fail_on: Optional[list[str]] = None,
        fail_all: bool = False
    ):
        self.dimensions = dimensions
        self.model_name = model_name
        self.fail_on = list(fail_on or [])
        self.fail_all = fail_all
        self.calls: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.fail_all or any(marker in text for marker in self.fail_on):
            raise EmbeddingServiceError("Mock embedding failure")
        return self._text_to_pseudo_embedding(text)

    def _text_to_pseudo_embedding(self, text: str) -> list[float]:
        seed = int(hashlib.sha256(text.encode()).hexdigest()[:16], 16) % (2**32)
        rng = random.Random(seed)

        embedding = [rng.gauss(0, 1) for _ in range(self.dimensions)]
        magnitude = sum(x**2 for x in embedding) ** 0.5
        return [x / magnitude for x in embedding] if magnitude else embedding


def build_content_text(cfd: CanonicalFeatureDocument) -> str:
    """`[eventType] | summary | Keywords: a, b | Categories: k:v, k:v`"""
    parts = [f"[{cfd.event_type}]"]

    if cfd.text_summary:
        parts.append(cfd.text_summary)

    if cfd.keywords:
        parts.append(f"Keywords: {', '.join(cfd.keywords)}")

    if cfd.facets.categories:
        categories = ", ".join(f"{key}:{value}" for key, value in cfd.facets.categories.items())
        parts.append(f"Categories: {categories}")

    return " | ".join(parts)


def build_entity_text(cfd: CanonicalFeatureDocument) -> str:
    """`Entities: type:id, type:id`, or empty when there are no refs."""
    if not cfd.entity_refs:
        return ""
    return "Entities: " + ", ".join(f"{ref.type}:{ref.id}" for ref in cfd.entity_refs)


class EmbeddingGenerator:
    """
    Generates content and entity embeddings for CFDs.

    Texts are truncated to `max_input_length` characters before they are
    sent to the client.
    """

    def __init__(self, client: EmbeddingClient, config: EmbeddingConfig = None):
        self.client = client
        self.config = config or EmbeddingConfig()

    @property
    def dimensions(self) -> int:
        return self.client.dimensions or self.config.dimensions

    def _truncate(self, text: str) -> str:
        return text[:self.config.max_input_length]

    async def _embed_view(self, cfd: CanonicalFeatureDocument, view: EmbeddingView, text: str) -> GeneratedEmbedding:
        vector = await self.client.embed(self._truncate(text))
        return GeneratedEmbedding(
            event_id=cfd.event_id,
            view=view,
            vector=vector,
            embedded_text=text,
            model=self.client.model_name,
            dimensions=len(vector)
        )

    async def generate_content_embedding(self, cfd: CanonicalFeatureDocument) -> GeneratedEmbedding:
        """Content view; raises InsufficientTextError for texts under 5 characters."""
        text = build_content_text(cfd)
        if len(text) < MIN_EMBEDDING_TEXT_LENGTH:
            raise InsufficientTextError(cfd.event_id)
        return await self._embed_view(cfd, EmbeddingView.CONTENT, text)

    async def generate_entity_embedding(self, cfd: CanonicalFeatureDocument) -> Optional[GeneratedEmbedding]:
        """Entity view, or None when the CFD has no entity text."""
        text = build_entity_text(cfd)
        if len(text) < MIN_EMBEDDING_TEXT_LENGTH:
            return None
        return await self._embed_view(cfd, EmbeddingView.ENTITY, text)

    async def generate_all_embeddings(self, cfd: CanonicalFeatureDocument) -> list[GeneratedEmbedding]:
        """
        Content embedding (required) plus entity embedding (optional).

        Entity failures are logged and omitted; content failures propagate.
        """
        try:
            embeddings = [await self.generate_content_embedding(cfd)]
        except Exception as e:
            logger.error("content_embedding_failed", event_id=cfd.event_id, error=str(e))
            raise

        try:
            entity_embedding = await self.generate_entity_embedding(cfd)
        except Exception as e:
            logger.warning("entity_embedding_failed", event_id=cfd.event_id, error=str(e))
            entity_embedding = None

        if entity_embedding is not None:
            embeddings.append(entity_embedding)
        return embeddings

    async def generate_embeddings_batch(self, cfds: list[CanonicalFeatureDocument]) -> EmbeddingBatchResult:
        """
        Embed many CFDs, concurrently within each chunk of `max_batch_size`.

        A failure for one CFD is recorded in `failed` and does not cancel
        its siblings.
        """
        started = time.monotonic()
        result = EmbeddingBatchResult()
        chunk_size = max(1, self.config.max_batch_size)

        for i in range(0, len(cfds), chunk_size):
            chunk = cfds[i:i + chunk_size]
            outcomes = await asyncio.gather(
                *(self.generate_all_embeddings(cfd) for cfd in chunk),
                return_exceptions=True
            )
            for cfd, outcome in zip(chunk, outcomes):
                if isinstance(outcome, BaseException):
                    result.failed.append({"eventId": cfd.event_id, "error": str(outcome)})
                else:
                    result.embeddings.extend(outcome)

        result.processing_time_ms = int((time.monotonic() - started) * 1000)
        return result

    def create_placeholder_embedding(self, event_id: str, reason: str) -> GeneratedEmbedding:
        """Zero-vector content embedding that keeps coverage at 100%."""
        return create_placeholder_embedding(event_id, reason, self.dimensions)

    async def embed_query(self, text: str) -> list[float]:
        """Embed free text for similarity search."""
        return await self.client.embed(self._truncate(text))


def create_placeholder_embedding(event_id: str, reason: str, dimensions: int = 1536) -> GeneratedEmbedding:
    return GeneratedEmbedding(
        event_id=event_id,
        view=EmbeddingView.CONTENT,
        vector=[0.0] * dimensions,
        embedded_text=f"[PLACEHOLDER: {reason}]",
        model=PLACEHOLDER_MODEL,
        dimensions=dimensions
    )
