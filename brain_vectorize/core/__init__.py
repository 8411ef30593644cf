"""
Core Domain Records

- Raw events and Canonical Feature Documents
- Injected entity lookup tables
- Error taxonomy
"""

from .events import (
    RawEvent,
    EntityRef,
    Facets,
    CanonicalFeatureDocument,
    PrivacyScope,
    Modality,
    make_dedupe_key,
    domain_of
)
from .lookups import EntityLookups, DEFAULT_LOOKUPS
from .errors import (
    VectorizationError,
    InsufficientTextError,
    EmbeddingServiceError,
    StorageError,
    GraphStoreError,
    PolicyError
)

__all__ = [
    "RawEvent",
    "EntityRef",
    "Facets",
    "CanonicalFeatureDocument",
    "PrivacyScope",
    "Modality",
    "make_dedupe_key",
    "domain_of",
    "EntityLookups",
    "DEFAULT_LOOKUPS",
    "VectorizationError",
    "InsufficientTextError",
    "EmbeddingServiceError",
    "StorageError",
    "GraphStoreError",
    "PolicyError"
]
