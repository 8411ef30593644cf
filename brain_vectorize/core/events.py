"""
Event Records - Raw Events and Canonical Feature Documents

This module defines the records that flow through the pipeline:
- RawEvent: immutable, per-application event supplied by the event store
- EntityRef: typed pointer from an event to another domain object
- Facets: normalized structured features extracted from a payload
- CanonicalFeatureDocument: deterministic projection of one RawEvent,
  the unit handed to the embedding generator

RawEvents arrive in their wire shape (camelCase keys). `RawEvent.from_dict`
accepts that shape and `RawEvent.to_document` reproduces it, so policy
field paths such as "payload.merchantId" resolve the same way they do
in the policy files.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional
import time


CFD_SCHEMA_VERSION = "1.0.0"


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class PrivacyScope(str, Enum):
    """Visibility of an event's data."""
    PRIVATE = "private"
    SOCIAL = "social"
    PUBLIC = "public"


class Modality(str, Enum):
    """Primary content kind of an event."""
    TEXT = "text"
    STRUCTURED = "structured"
    AUDIO = "audio"
    VIDEO = "video"
    IMAGE = "image"


@dataclass(frozen=True)
class RawEvent:
    """
    An event as produced by the external event store.

    Immutable and identified uniquely by event_id. The pipeline never
    mutates or re-emits it.
    """
    event_id: str
    event_type: str
    user_id: str
    trace_id: str = ""
    source_app: str = ""
    domain: str = ""
    timestamp_ms: int = 0
    received_at_ms: int = 0
    privacy_scope: PrivacyScope = PrivacyScope.PRIVATE
    consent_version: str = ""
    payload: dict = field(default_factory=dict)
    blob_refs: tuple = ()

    # Short human-readable preview some sources attach to the event
    payload_preview: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "RawEvent":
        """Create an event from its wire (camelCase) representation."""
        payload = data.get("payload")
        blob_refs = data.get("blobRefs") or ()
        return cls(
            event_id=str(data["eventId"]),
            event_type=str(data.get("eventType", "")),
            user_id=str(data.get("userId") or data.get("clerkUserId") or ""),
            trace_id=str(data.get("traceId", "")),
            source_app=str(data.get("sourceApp", "")),
            domain=str(data.get("domain", "")),
            timestamp_ms=int(data.get("timestampMs") or 0),
            received_at_ms=int(data.get("receivedAtMs") or 0),
            privacy_scope=PrivacyScope(data.get("privacyScope") or "private"),
            consent_version=str(data.get("consentVersion", "")),
            payload=payload if isinstance(payload, dict) else {},
            blob_refs=tuple(blob_refs) if isinstance(blob_refs, (list, tuple)) else (),
            payload_preview=data.get("payloadPreview")
        )

    def to_document(self) -> dict:
        """Wire representation used for policy path lookups."""
        document = {
            "eventId": self.event_id,
            "traceId": self.trace_id,
            "userId": self.user_id,
            "eventType": self.event_type,
            "sourceApp": self.source_app,
            "domain": self.domain,
            "timestampMs": self.timestamp_ms,
            "receivedAtMs": self.received_at_ms,
            "privacyScope": self.privacy_scope.value,
            "consentVersion": self.consent_version,
            "payload": self.payload,
            "blobRefs": list(self.blob_refs)
        }
        if self.payload_preview is not None:
            document["payloadPreview"] = self.payload_preview
        return document


@dataclass(frozen=True)
class EntityRef:
    """Typed pointer into another domain entity (merchant, contact, task...)."""
    type: str
    id: str
    source_path: str

    def to_dict(self) -> dict:
        return {"type": self.type, "id": self.id, "sourcePath": self.source_path}


@dataclass
class Facets:
    """Normalized structured features, bucketed by kind."""
    amounts: dict = field(default_factory=dict)
    categories: dict = field(default_factory=dict)
    timestamps: dict = field(default_factory=dict)
    locations: dict = field(default_factory=dict)
    counts: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Serialize only the non-empty buckets."""
        buckets = {
            "amounts": self.amounts,
            "categories": self.categories,
            "timestamps": self.timestamps,
            "locations": self.locations,
            "counts": self.counts
        }
        return {name: dict(values) for name, values in buckets.items() if values}


@dataclass
class CanonicalFeatureDocument:
    """
    Canonical Feature Document (CFD).

    Created fresh per event and never updated once embedded. The dedupe
    key (user_id:event_type:event_id) is the idempotency key used for
    at-most-once vectorization.
    """
    event_id: str
    event_type: str
    timestamp_ms: int
    user_id: str
    privacy_scope: PrivacyScope
    consent_version: str
    source_app: str
    domain: str
    modality: Modality
    dedupe_key: str
    trace_id: str = ""

    entity_refs: list[EntityRef] = field(default_factory=list)

    # Always present, possibly empty
    text_summary: str = ""
    keywords: list[str] = field(default_factory=list)
    facets: Facets = field(default_factory=Facets)
    source_refs: list[str] = field(default_factory=list)

    generated_at: int = field(default_factory=now_ms)
    schema_version: str = CFD_SCHEMA_VERSION

    def to_dict(self) -> dict:
        """Convert to a JSON-friendly dictionary."""
        return {
            "eventId": self.event_id,
            "eventType": self.event_type,
            "timestampMs": self.timestamp_ms,
            "userId": self.user_id,
            "privacyScope": self.privacy_scope.value,
            "consentVersion": self.consent_version,
            "sourceApp": self.source_app,
            "domain": self.domain,
            "entityRefs": [ref.to_dict() for ref in self.entity_refs],
            "modality": self.modality.value,
            "textSummary": self.text_summary,
            "keywords": list(self.keywords),
            "facets": self.facets.to_dict(),
            "sourceRefs": list(self.source_refs),
            "dedupeKey": self.dedupe_key,
            "traceId": self.trace_id,
            "generatedAt": self.generated_at,
            "schemaVersion": self.schema_version
        }


def make_dedupe_key(user_id: str, event_type: str, event_id: str) -> str:
    """Idempotency key for one event."""
    return f"{user_id}:{event_type}:{event_id}"


def domain_of(event_type: str) -> str:
    """First dot-segment of an event type."""
    return event_type.split(".")[0] or "unknown"
