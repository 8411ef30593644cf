"""
Vector Coverage Metrics

Coverage = fraction of eligible events that have at least one vector row.

The vector store only knows what it holds, so totals come from the event
source when the caller can supply them (`event_totals`, per event type).
Without totals, vectorized counts stand in for totals and coverage reads
100% for every type the store has seen.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..core.events import now_ms
from ..layers.representation.vector_store import CoverageStats


@dataclass
class EventTypeCoverage:
    total: int
    vectorized: int
    coverage: float

    def to_dict(self) -> dict:
        return {"total": self.total, "vectorized": self.vectorized, "coverage": self.coverage}


@dataclass
class VectorCoverageMetrics:
    """Coverage snapshot across event types."""
    total_events: int = 0
    vectorized_events: int = 0
    coverage_percent: float = 100.0
    pending_events: int = 0
    placeholder_events: int = 0
    total_rows: int = 0
    by_event_type: dict[str, EventTypeCoverage] = field(default_factory=dict)
    by_domain: dict[str, int] = field(default_factory=dict)
    last_updated_at: int = field(default_factory=now_ms)

    def to_dict(self) -> dict:
        return {
            "totalEvents": self.total_events,
            "vectorizedEvents": self.vectorized_events,
            "coveragePercent": self.coverage_percent,
            "pendingEvents": self.pending_events,
            "placeholderEvents": self.placeholder_events,
            "totalRows": self.total_rows,
            "byEventType": {k: v.to_dict() for k, v in self.by_event_type.items()},
            "byDomain": dict(self.by_domain),
            "lastUpdatedAt": self.last_updated_at
        }


def _percent(part: int, whole: int) -> float:
    if whole <= 0:
        return 100.0
    return round(min(part, whole) / whole * 100, 2)


class CoverageCalculator:
    """Derives coverage metrics from vector store stats."""

    def calculate(
        self,
        stats: CoverageStats,
        event_totals: Optional[dict[str, int]] = None
    ) -> VectorCoverageMetrics:
        vectorized_by_type = dict(stats.by_event_type)
        totals = dict(event_totals) if event_totals is not None else dict(vectorized_by_type)

        by_event_type = {}
        for event_type in sorted(set(totals) | set(vectorized_by_type)):
            vectorized = vectorized_by_type.get(event_type, 0)
            # Rows may exist for events the caller did not count
            total = max(totals.get(event_type, 0), vectorized)
            by_event_type[event_type] = EventTypeCoverage(
                total=total,
                vectorized=vectorized,
                coverage=_percent(vectorized, total)
            )

        total_events = sum(c.total for c in by_event_type.values())
        vectorized_events = sum(c.vectorized for c in by_event_type.values())

        return VectorCoverageMetrics(
            total_events=total_events,
            vectorized_events=vectorized_events,
            coverage_percent=_percent(vectorized_events, total_events),
            pending_events=max(total_events - vectorized_events, 0),
            placeholder_events=stats.placeholder_rows,
            total_rows=stats.total_rows,
            by_event_type=by_event_type,
            by_domain=dict(stats.by_domain)
        )
