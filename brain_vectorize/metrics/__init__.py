"""
Metrics

Vector coverage: the fraction of eligible events that have at least one
vector row, overall and per event type.
"""

from .coverage import CoverageCalculator, VectorCoverageMetrics, EventTypeCoverage

__all__ = [
    "CoverageCalculator",
    "VectorCoverageMetrics",
    "EventTypeCoverage"
]
