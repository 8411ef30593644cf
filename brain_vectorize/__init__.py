"""
Brain Vectorize

Event vectorization pipeline: turns immutable per-application events into
Canonical Feature Documents, embeds them into named vector views, stores
them idempotently, links their entity references in a graph store, and
backfills historical events while tracking vector coverage.
"""

__version__ = "0.1.0"
