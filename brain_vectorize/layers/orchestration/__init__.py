"""
Orchestration Layer

Sequences the pipeline stages:
- Per-event and per-batch vectorization with skip/idempotency/fallback logic
- Backfill over historical events with progress reporting and abort
"""

from .pipeline import (
    VectorizeStage,
    SkipReason,
    VectorizeResult,
    BatchVectorizeResult,
    VectorizationPipeline,
    create_vectorization_pipeline
)
from .backfill import (
    BackfillConfig,
    BackfillProgress,
    BackfillError,
    BackfillResult,
    BackfillJob,
    run_backfill
)

__all__ = [
    "VectorizeStage",
    "SkipReason",
    "VectorizeResult",
    "BatchVectorizeResult",
    "VectorizationPipeline",
    "create_vectorization_pipeline",
    "BackfillConfig",
    "BackfillProgress",
    "BackfillError",
    "BackfillResult",
    "BackfillJob",
    "run_backfill"
]
