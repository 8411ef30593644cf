"""
Vector Writer - Idempotent Persistence of Event Vectors

One VectorEventRow per (event, view), keyed by `<eventId>_<view>`.
Writes are insert-if-absent: a row that already exists, or a second row
for the same key inside one batch, is counted as skipped rather than
overwritten. The content-view row doubles as the "already vectorized"
marker consulted by the pipeline.

Backends:
- InMemoryVectorStore: tests, QA runs, dry environments
- QdrantVectorStore: qdrant-client AsyncQdrantClient
"""

import math
import uuid
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from ...config.settings import VectorStoreConfig
from ...core.errors import StorageError
from ...core.events import CanonicalFeatureDocument, now_ms
from ...observability import get_logger
from .embeddings import PLACEHOLDER_MODEL, EmbeddingView, GeneratedEmbedding


logger = get_logger(__name__)

# Fixed namespace so a row id always maps to the same point id
POINT_ID_NAMESPACE = uuid.UUID("6f1c2a4e-3b8d-5e7f-9a1b-2c3d4e5f6a7b")


def make_row_id(event_id: str, view: str) -> str:
    return f"{event_id}_{view}"


@dataclass
class VectorEventRow:
    """Flattened CFD + embedding, the unit persisted to the vector store."""
    id: str
    event_id: str
    user_id: str
    event_type: str
    domain: str
    source_app: str
    privacy_scope: str
    timestamp_ms: int
    embedding_view: str
    vector: list[float]
    embedded_text: str
    embedding_model: str
    text_summary: str = ""
    keywords: list[str] = field(default_factory=list)
    entity_refs: list[dict] = field(default_factory=list)
    facets: dict = field(default_factory=dict)
    dedupe_key: str = ""
    trace_id: str = ""
    created_at: int = field(default_factory=now_ms)

    @property
    def is_placeholder(self) -> bool:
        return self.embedding_model == PLACEHOLDER_MODEL

    def to_payload(self) -> dict:
        """Metadata stored next to the vector."""
        return {
            "rowId": self.id,
            "eventId": self.event_id,
            "userId": self.user_id,
            "eventType": self.event_type,
            "domain": self.domain,
            "sourceApp": self.source_app,
            "privacyScope": self.privacy_scope,
            "timestampMs": self.timestamp_ms,
            "embeddingView": self.embedding_view,
            "embeddedText": self.embedded_text,
            "embeddingModel": self.embedding_model,
            "textSummary": self.text_summary,
            "keywords": list(self.keywords),
            "entityRefs": list(self.entity_refs),
            "facets": dict(self.facets),
            "dedupeKey": self.dedupe_key,
            "traceId": self.trace_id,
            "createdAt": self.created_at
        }

    @classmethod
    def from_payload(cls, payload: dict, vector: Optional[list[float]] = None) -> "VectorEventRow":
        return cls(
            id=payload["rowId"],
            event_id=payload["eventId"],
            user_id=payload.get("userId", ""),
            event_type=payload.get("eventType", ""),
            domain=payload.get("domain", ""),
            source_app=payload.get("sourceApp", ""),
            privacy_scope=payload.get("privacyScope", "private"),
            timestamp_ms=payload.get("timestampMs", 0),
            embedding_view=payload.get("embeddingView", EmbeddingView.CONTENT.value),
            vector=list(vector or []),
            embedded_text=payload.get("embeddedText", ""),
            embedding_model=payload.get("embeddingModel", ""),
            text_summary=payload.get("textSummary", ""),
            keywords=list(payload.get("keywords") or []),
            entity_refs=list(payload.get("entityRefs") or []),
            facets=dict(payload.get("facets") or {}),
            dedupe_key=payload.get("dedupeKey", ""),
            trace_id=payload.get("traceId", ""),
            created_at=payload.get("createdAt", 0)
        )


def to_vector_event_row(cfd: CanonicalFeatureDocument, embedding: GeneratedEmbedding) -> VectorEventRow:
    """Join a CFD with one of its embeddings."""
    return VectorEventRow(
        id=make_row_id(cfd.event_id, embedding.view.value),
        event_id=cfd.event_id,
        user_id=cfd.user_id,
        event_type=cfd.event_type,
        domain=cfd.domain,
        source_app=cfd.source_app,
        privacy_scope=cfd.privacy_scope.value,
        timestamp_ms=cfd.timestamp_ms,
        embedding_view=embedding.view.value,
        vector=list(embedding.vector),
        embedded_text=embedding.embedded_text,
        embedding_model=embedding.model,
        text_summary=cfd.text_summary,
        keywords=list(cfd.keywords),
        entity_refs=[ref.to_dict() for ref in cfd.entity_refs],
        facets=cfd.facets.to_dict(),
        dedupe_key=cfd.dedupe_key,
        trace_id=cfd.trace_id
    )


@dataclass
class VectorSearchFilters:
    """Metadata predicate applied to similarity search."""
    user_id: Optional[str] = None
    event_types: Optional[list[str]] = None
    domains: Optional[list[str]] = None
    privacy_scope: Optional[str] = None
    embedding_view: Optional[str] = None
    start_timestamp_ms: Optional[int] = None
    end_timestamp_ms: Optional[int] = None

    def matches(self, row: VectorEventRow) -> bool:
        if self.user_id and row.user_id != self.user_id:
            return False
        if self.event_types and row.event_type not in self.event_types:
            return False
        if self.domains and row.domain not in self.domains:
            return False
        if self.privacy_scope and row.privacy_scope != self.privacy_scope:
            return False
        if self.embedding_view and row.embedding_view != self.embedding_view:
            return False
        if self.start_timestamp_ms is not None and row.timestamp_ms < self.start_timestamp_ms:
            return False
        if self.end_timestamp_ms is not None and row.timestamp_ms > self.end_timestamp_ms:
            return False
        return True


@dataclass
class VectorWriteResult:
    written: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class VectorSearchResult:
    row: VectorEventRow
    similarity: float


@dataclass
class CoverageStats:
    """Aggregate view of what has been vectorized."""
    total_rows: int = 0
    by_event_type: dict[str, int] = field(default_factory=dict)
    by_view: dict[str, int] = field(default_factory=dict)
    by_domain: dict[str, int] = field(default_factory=dict)
    placeholder_rows: int = 0

    @classmethod
    def from_rows(cls, rows) -> "CoverageStats":
        rows = list(rows)
        # Event-type and domain counts are per vectorized event (content view)
        content_rows = [r for r in rows if r.embedding_view == EmbeddingView.CONTENT.value]
        return cls(
            total_rows=len(rows),
            by_event_type=dict(Counter(r.event_type for r in content_rows)),
            by_view=dict(Counter(r.embedding_view for r in rows)),
            by_domain=dict(Counter(r.domain for r in content_rows)),
            placeholder_rows=sum(1 for r in rows if r.is_placeholder)
        )

    def to_dict(self) -> dict:
        return {
            "totalRows": self.total_rows,
            "byEventType": dict(self.by_event_type),
            "byView": dict(self.by_view),
            "byDomain": dict(self.by_domain),
            "placeholderRows": self.placeholder_rows
        }


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity; 0.0 when either vector is zero."""
    if len(a) != len(b):
        raise ValueError("Vectors must have same dimensions")

    dot_product = sum(x * y for x, y in zip(a, b))
    magnitude_a = math.sqrt(sum(x * x for x in a))
    magnitude_b = math.sqrt(sum(x * x for x in b))

    if magnitude_a == 0 or magnitude_b == 0:
        return 0.0
    return dot_product / (magnitude_a * magnitude_b)


class VectorStore(ABC):
    """
    Abstract base class for vector stores.

    All operations raise StorageError when the backend cannot be reached.
    """

    @abstractmethod
    async def has_vector(self, event_id: str) -> bool:
        """True when the event already has a content-view row."""
        pass

    @abstractmethod
    async def write_rows(self, rows: list[VectorEventRow]) -> VectorWriteResult:
        """Insert rows that are not present yet."""
        pass

    @abstractmethod
    async def get_by_event_id(self, event_id: str) -> list[VectorEventRow]:
        pass

    @abstractmethod
    async def search_similar(
        self,
        vector: list[float],
        filters: Optional[VectorSearchFilters] = None,
        limit: int = 20
    ) -> list[VectorSearchResult]:
        pass

    @abstractmethod
    async def get_coverage_stats(self) -> CoverageStats:
        pass

    async def ping(self) -> bool:
        """Cheap reachability check."""
        return True

    async def close(self) -> None:
        return None


class InMemoryVectorStore(VectorStore):
    """
    Dict-backed vector store.

    Set `fail_writes` / `fail_reads` to simulate an unreachable backend.
    """

    def __init__(self):
        self._rows: dict[str, VectorEventRow] = {}
        self.fail_writes = False
        self.fail_reads = False

    def _check_reads(self) -> None:
        if self.fail_reads:
            raise StorageError("In-memory store configured to fail reads")

    async def has_vector(self, event_id: str) -> bool:
        self._check_reads()
        return make_row_id(event_id, EmbeddingView.CONTENT.value) in self._rows

    async def write_rows(self, rows: list[VectorEventRow]) -> VectorWriteResult:
        if self.fail_writes:
            raise StorageError("In-memory store configured to fail writes")

        result = VectorWriteResult()
        for row in rows:
            if row.id in self._rows:
                result.skipped += 1
                continue
            self._rows[row.id] = row
            result.written += 1
        return result

    async def get_by_event_id(self, event_id: str) -> list[VectorEventRow]:
        self._check_reads()
        return [row for row in self._rows.values() if row.event_id == event_id]

    async def search_similar(
        self,
        vector: list[float],
        filters: Optional[VectorSearchFilters] = None,
        limit: int = 20
    ) -> list[VectorSearchResult]:
        self._check_reads()
        filters = filters or VectorSearchFilters()

        scored = [
            VectorSearchResult(row=row, similarity=cosine_similarity(vector, row.vector))
            for row in self._rows.values()
            if filters.matches(row)
        ]
        scored.sort(key=lambda r: r.similarity, reverse=True)
        return scored[:limit]

    async def get_coverage_stats(self) -> CoverageStats:
        self._check_reads()
        return CoverageStats.from_rows(self._rows.values())

    async def ping(self) -> bool:
        return not self.fail_reads

    def __len__(self) -> int:
        return len(self._rows)


class QdrantVectorStore(VectorStore):
    """
    Qdrant-backed vector store.

    Point ids are UUIDv5 values derived from the row id, so the same
    (event, view) always lands on the same point. The collection is created
    on first use with the configured dimensions and distance.
    """

    SCROLL_PAGE_SIZE = 256

    def __init__(self, config: VectorStoreConfig = None, dimensions: int = 1536, client=None):
        self.config = config or VectorStoreConfig()
        self.dimensions = dimensions
        self.collection_name = self.config.collection_name
        self._client = client
        self._collection_ready = False

    def _get_client(self):
        """Lazy initialization of the AsyncQdrantClient."""
        if self._client is None:
            try:
                from qdrant_client import AsyncQdrantClient
            except ImportError:
                raise ImportError("Install qdrant-client: pip install qdrant-client")

            api_key = self.config.qdrant_api_key
            self._client = AsyncQdrantClient(
                url=self.config.qdrant_url,
                api_key=api_key.get_secret_value() if api_key else None
            )
        return self._client

    @staticmethod
    def point_id(row_id: str) -> str:
        return str(uuid.uuid5(POINT_ID_NAMESPACE, row_id))

    async def _ensure_collection(self) -> None:
        if self._collection_ready:
            return
        from qdrant_client import models

        client = self._get_client()
        if not await client.collection_exists(self.collection_name):
            distance = models.Distance(self.config.distance.capitalize())
            await client.create_collection(
                collection_name=self.collection_name,
                vectors_config=models.VectorParams(size=self.dimensions, distance=distance)
            )
            logger.info(
                "qdrant_collection_created",
                collection=self.collection_name,
                dimensions=self.dimensions,
                distance=distance.value
            )
        self._collection_ready = True

    def _build_filter(self, filters: Optional[VectorSearchFilters]):
        from qdrant_client import models

        if filters is None:
            return None

        must = []
        if filters.user_id:
            must.append(models.FieldCondition(key="userId", match=models.MatchValue(value=filters.user_id)))
        if filters.event_types:
            must.append(models.FieldCondition(key="eventType", match=models.MatchAny(any=filters.event_types)))
        if filters.domains:
            must.append(models.FieldCondition(key="domain", match=models.MatchAny(any=filters.domains)))
        if filters.privacy_scope:
            must.append(models.FieldCondition(key="privacyScope", match=models.MatchValue(value=filters.privacy_scope)))
        if filters.embedding_view:
            must.append(models.FieldCondition(key="embeddingView", match=models.MatchValue(value=filters.embedding_view)))
        if filters.start_timestamp_ms is not None or filters.end_timestamp_ms is not None:
            must.append(models.FieldCondition(
                key="timestampMs",
                range=models.Range(gte=filters.start_timestamp_ms, lte=filters.end_timestamp_ms)
            ))
        return models.Filter(must=must) if must else None

    async def has_vector(self, event_id: str) -> bool:
        try:
            await self._ensure_collection()
            points = await self._get_client().retrieve(
                collection_name=self.collection_name,
                ids=[self.point_id(make_row_id(event_id, EmbeddingView.CONTENT.value))],
                with_payload=False,
                with_vectors=False
            )
        except Exception as e:
            raise StorageError(f"Vector existence check failed: {e}") from e
        return len(points) > 0

    async def write_rows(self, rows: list[VectorEventRow]) -> VectorWriteResult:
        from qdrant_client import models

        result = VectorWriteResult()
        unique: dict[str, VectorEventRow] = {}
        for row in rows:
            if row.id in unique:
                result.skipped += 1
            else:
                unique[row.id] = row
        if not unique:
            return result

        try:
            await self._ensure_collection()
            client = self._get_client()
            point_ids = {self.point_id(row_id): row for row_id, row in unique.items()}
            existing = await client.retrieve(
                collection_name=self.collection_name,
                ids=list(point_ids),
                with_payload=False,
                with_vectors=False
            )
            existing_ids = {str(point.id) for point in existing}

            points = [
                models.PointStruct(id=point_id, vector=row.vector, payload=row.to_payload())
                for point_id, row in point_ids.items()
                if point_id not in existing_ids
            ]
            if points:
                await client.upsert(collection_name=self.collection_name, points=points, wait=True)
        except Exception as e:
            raise StorageError(f"Vector write failed: {e}") from e

        result.written += len(points)
        result.skipped += len(existing_ids)
        return result

    async def get_by_event_id(self, event_id: str) -> list[VectorEventRow]:
        ids = [self.point_id(make_row_id(event_id, view.value)) for view in EmbeddingView]
        try:
            await self._ensure_collection()
            points = await self._get_client().retrieve(
                collection_name=self.collection_name,
                ids=ids,
                with_payload=True,
                with_vectors=True
            )
        except Exception as e:
            raise StorageError(f"Vector lookup failed: {e}") from e
        return [VectorEventRow.from_payload(point.payload, point.vector) for point in points]

    async def search_similar(
        self,
        vector: list[float],
        filters: Optional[VectorSearchFilters] = None,
        limit: int = 20
    ) -> list[VectorSearchResult]:
        try:
            await self._ensure_collection()
            response = await self._get_client().query_points(
                collection_name=self.collection_name,
                query=vector,
                query_filter=self._build_filter(filters),
                limit=limit,
                with_payload=True
            )
        except Exception as e:
            raise StorageError(f"Vector search failed: {e}") from e

        return [
            VectorSearchResult(row=VectorEventRow.from_payload(point.payload), similarity=point.score)
            for point in response.points
        ]

    async def get_coverage_stats(self) -> CoverageStats:
        rows = []
        offset = None
        try:
            await self._ensure_collection()
            client = self._get_client()
            while True:
                points, offset = await client.scroll(
                    collection_name=self.collection_name,
                    limit=self.SCROLL_PAGE_SIZE,
                    offset=offset,
                    with_payload=["rowId", "eventId", "eventType", "domain", "embeddingView", "embeddingModel"],
                    with_vectors=False
                )
                rows.extend(VectorEventRow.from_payload(point.payload) for point in points)
                if offset is None:
                    break
        except Exception as e:
            raise StorageError(f"Coverage aggregation failed: {e}") from e
        return CoverageStats.from_rows(rows)

    async def ping(self) -> bool:
        try:
            await self._get_client().get_collections()
        except Exception as e:
            logger.warning("qdrant_unreachable", error=str(e))
            return False
        return True

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
