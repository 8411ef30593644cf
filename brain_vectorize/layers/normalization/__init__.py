"""
Normalization Layer

Turns raw events into Canonical Feature Documents:
- Typed path accessor over the event document
- Policy-driven CFD builder (text summary, keywords, entity refs, facets)
"""

from .paths import get_by_path, extract_text_value
from .cfd import CFDBuilder, build_cfd, extract_keywords, epoch_ms_to_iso

__all__ = [
    "get_by_path",
    "extract_text_value",
    "CFDBuilder",
    "build_cfd",
    "extract_keywords",
    "epoch_ms_to_iso"
]
