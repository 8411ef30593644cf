"""
Canonical Feature Document Builder

Transforms a RawEvent into the normalized CFD handed to the embedding
generator. The embedding policy for the event type decides:
- which fields become the text summary
- which fields feed the structured fallback text
- which fields are entity references for graph linking
- which fields are redacted

Building is pure and total: any well-formed RawEvent (an empty payload
included) yields a CFD, with an empty text summary at worst.
"""

import re
from datetime import datetime, timezone
from typing import Optional

from ...config.policy import EmbeddingPolicyConfig, ExtractionPolicy
from ...core.events import (
    CanonicalFeatureDocument,
    EntityRef,
    Facets,
    Modality,
    RawEvent,
    domain_of,
    make_dedupe_key,
)
from ...core.lookups import DEFAULT_LOOKUPS, EntityLookups
from .paths import (
    extract_text_value,
    get_by_path,
    is_number,
    last_segment,
    to_compact_json,
)


MAX_KEYWORDS = 20
MIN_KEYWORD_LENGTH = 3
MAX_KEYWORD_LENGTH = 30

STOP_WORDS = frozenset([
    "the", "and", "for", "are", "but", "not", "you", "all", "can",
    "had", "her", "was", "one", "our", "out", "has", "have", "been",
    "will", "your", "from", "they", "were", "said", "each", "which",
    "their", "there", "what", "about", "would", "this", "with", "that",
    "into", "than", "them", "then", "some", "could",
])

# Facet whitelists over top-level payload keys
AMOUNT_FIELDS = ("amount", "balance", "price", "value", "cost", "total")
CATEGORY_FIELDS = ("category", "subcategory", "type", "status", "priority", "mealType", "postType")
TIMESTAMP_FIELDS = ("startTime", "endTime", "dueDate", "completedAt", "createdAt", "updatedAt")
COUNT_FIELDS = ("count", "attendeeCount", "recipientCount", "attachmentCount", "pageCount", "wordCount")
LOCATION_FIELDS = ("location", "city", "region", "country", "placeName")

TEXT_SEPARATOR = " | "
STRUCTURED_SEPARATOR = "; "

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9\s]")


def extract_keywords(text: str) -> list[str]:
    """
    Tokenize text into at most 20 distinct keywords.

    Lowercases, replaces non-alphanumerics with spaces, keeps tokens of
    length 3..29 that are not stop words, in first-seen order.
    """
    if not text:
        return []

    tokens = _NON_ALPHANUMERIC.sub(" ", text.lower()).split()
    keywords: list[str] = []
    seen: set[str] = set()
    for token in tokens:
        if not MIN_KEYWORD_LENGTH <= len(token) < MAX_KEYWORD_LENGTH:
            continue
        if token in STOP_WORDS or token in seen:
            continue
        seen.add(token)
        keywords.append(token)
        if len(keywords) == MAX_KEYWORDS:
            break
    return keywords


def epoch_ms_to_iso(value: float) -> Optional[str]:
    """Render epoch milliseconds as `YYYY-MM-DDTHH:MM:SS.mmmZ`, None if out of range."""
    try:
        moment = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


class CFDBuilder:
    """
    Builds Canonical Feature Documents under one policy configuration.

    The policy config and entity lookups are injected once and read-only
    afterwards, so a builder can be shared across events.
    """

    def __init__(
        self,
        policy_config: EmbeddingPolicyConfig,
        lookups: Optional[EntityLookups] = None
    ):
        self.policy_config = policy_config
        self.lookups = lookups or DEFAULT_LOOKUPS

    def build(self, event: RawEvent) -> CanonicalFeatureDocument:
        """Project a RawEvent into a CFD."""
        policy = self.policy_config.get_policy(event.event_type)
        document = event.to_document()

        text_summary = self.build_text_summary(document, policy)

        return CanonicalFeatureDocument(
            event_id=event.event_id,
            event_type=event.event_type,
            timestamp_ms=event.timestamp_ms,
            user_id=event.user_id,
            privacy_scope=event.privacy_scope,
            consent_version=event.consent_version,
            source_app=event.source_app,
            domain=domain_of(event.event_type),
            modality=policy.modality_hint,
            dedupe_key=make_dedupe_key(event.user_id, event.event_type, event.event_id),
            trace_id=event.trace_id,
            entity_refs=self.extract_entity_refs(document, policy),
            text_summary=text_summary,
            keywords=extract_keywords(text_summary),
            facets=self.extract_facets(event.payload, policy),
            source_refs=self.extract_source_refs(event)
        )

    def build_text_summary(self, document: dict, policy: ExtractionPolicy) -> str:
        """
        Join the configured text fields with " | ".

        When no text field yields content and the policy is structured, a
        deterministic "field: value; field: value" string is rendered from
        the structured fields instead.
        """
        parts = []
        for path in policy.embed_text_fields:
            if self.policy_config.is_redacted(policy, path):
                continue
            value = extract_text_value(document, path)
            if value:
                parts.append(value)

        if not parts and policy.modality_hint == Modality.STRUCTURED:
            return self.build_structured_text(document, policy)

        return TEXT_SEPARATOR.join(parts)

    def build_structured_text(self, document: dict, policy: ExtractionPolicy) -> str:
        structured_parts = []
        for path in policy.embed_structured_fields:
            if self.policy_config.is_redacted(policy, path):
                continue
            value = get_by_path(document, path)
            if value is not None:
                structured_parts.append(f"{last_segment(path)}: {to_compact_json(value)}")
        return STRUCTURED_SEPARATOR.join(structured_parts)

    def extract_entity_refs(self, document: dict, policy: ExtractionPolicy) -> list[EntityRef]:
        """One ref per string value (or string list element) at each entity path."""
        refs = []
        for path in policy.entity_ref_paths:
            value = get_by_path(document, path)
            if not value:
                continue

            entity_type = self.lookups.infer_entity_type(last_segment(path))
            if isinstance(value, str):
                refs.append(EntityRef(type=entity_type, id=value, source_path=path))
            elif isinstance(value, list):
                for item in value:
                    if isinstance(item, str) and item:
                        refs.append(EntityRef(type=entity_type, id=item, source_path=path))
        return refs

    def extract_facets(self, payload: dict, policy: ExtractionPolicy) -> Facets:
        """Bucket whitelisted top-level payload values by kind."""
        facets = Facets()
        if not payload:
            return facets

        def visible(key: str) -> bool:
            return key in payload and not self.policy_config.is_redacted(policy, f"payload.{key}")

        for key in AMOUNT_FIELDS:
            if visible(key) and is_number(payload[key]):
                facets.amounts[key] = payload[key]

        for key in CATEGORY_FIELDS:
            if visible(key) and isinstance(payload[key], str):
                facets.categories[key] = payload[key]

        for key in TIMESTAMP_FIELDS:
            if not visible(key):
                continue
            value = payload[key]
            if isinstance(value, str):
                facets.timestamps[key] = value
            elif is_number(value):
                iso = epoch_ms_to_iso(value)
                if iso is not None:
                    facets.timestamps[key] = iso

        for key in COUNT_FIELDS:
            if visible(key) and is_number(payload[key]):
                facets.counts[key] = payload[key]

        for key in LOCATION_FIELDS:
            if visible(key) and isinstance(payload[key], str) and payload[key]:
                facets.locations[key] = payload[key]

        return facets

    @staticmethod
    def extract_source_refs(event: RawEvent) -> list[str]:
        """Blob references: strings verbatim, mappings by their r2Key."""
        refs = []
        for ref in event.blob_refs:
            if isinstance(ref, str):
                refs.append(ref)
            elif isinstance(ref, dict) and isinstance(ref.get("r2Key"), str):
                refs.append(ref["r2Key"])
        return refs


def build_cfd(
    event: RawEvent,
    policy_config: EmbeddingPolicyConfig,
    lookups: Optional[EntityLookups] = None
) -> CanonicalFeatureDocument:
    """Build a CFD for one event."""
    return CFDBuilder(policy_config, lookups).build(event)
