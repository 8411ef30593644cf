"""
QA Harness

Sample-event generators plus declarative assertions that exercise the
full pipeline end-to-end against stubbed backends.
"""

from .samples import SAMPLE_EVENTS
from .harness import (
    AssertionResult,
    QATestCase,
    QATestResult,
    QASuiteResult,
    QA_TEST_CASES,
    QAHarness,
    create_stub_pipeline,
    run_quick_validation
)

__all__ = [
    "SAMPLE_EVENTS",
    "AssertionResult",
    "QATestCase",
    "QATestResult",
    "QASuiteResult",
    "QA_TEST_CASES",
    "QAHarness",
    "create_stub_pipeline",
    "run_quick_validation"
]
