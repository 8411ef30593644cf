"""
Vectorization QA Harness

End-to-end checks of the CFD, embedding and entity-link contracts:
- each test case generates a sample event for its event type
- builds the CFD the pipeline will see
- runs the event through a real orchestrator
- evaluates declarative assertions against the result and the CFD

The vector store, graph store and embedding service can all be stubbed
(`create_stub_pipeline`) so the suite runs without live backends. QA
failures are reported per test; they are never raised.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..config.policy import DEFAULT_POLICY_CONFIG, EmbeddingPolicyConfig
from ..core.events import CanonicalFeatureDocument, PrivacyScope
from ..layers.graph.entity_linker import EntityLinker
from ..layers.graph.graph_client import InMemoryGraphClient
from ..layers.normalization.cfd import build_cfd
from ..layers.orchestration.pipeline import VectorizationPipeline, VectorizeResult
from ..layers.representation.embeddings import EmbeddingGenerator, MockEmbeddingClient
from ..layers.representation.vector_store import InMemoryVectorStore
from ..config.settings import EmbeddingConfig
from ..observability import get_logger
from .samples import SAMPLE_EVENTS


logger = get_logger(__name__)


@dataclass
class AssertionResult:
    name: str
    passed: bool
    message: str


AssertionFn = Callable[[VectorizeResult, Optional[CanonicalFeatureDocument]], list[AssertionResult]]


@dataclass
class QATestCase:
    """A declarative end-to-end check for one event type."""
    name: str
    event_type: str
    assertions: AssertionFn
    expected_outcome: str = "success"  # success, skip, fail
    description: str = ""


@dataclass
class QATestResult:
    test_case: str
    passed: bool
    assertions: list[AssertionResult] = field(default_factory=list)
    vectorize_result: Optional[VectorizeResult] = None
    duration_ms: int = 0


@dataclass
class QASuiteResult:
    total_tests: int = 0
    passed: int = 0
    failed: int = 0
    results: list[QATestResult] = field(default_factory=list)
    duration_ms: int = 0

    def to_dict(self) -> dict:
        return {
            "totalTests": self.total_tests,
            "passed": self.passed,
            "failed": self.failed,
            "durationMs": self.duration_ms,
            "results": [
                {
                    "testCase": r.test_case,
                    "passed": r.passed,
                    "assertions": [
                        {"name": a.name, "passed": a.passed, "message": a.message}
                        for a in r.assertions
                    ]
                }
                for r in self.results
            ]
        }


def _processed(result: VectorizeResult) -> AssertionResult:
    return AssertionResult(
        name="Event processed successfully",
        passed=result.success,
        message="Success" if result.success else f"Failed: {result.error}"
    )


def _finance_assertions(result, cfd):
    amount = cfd.facets.amounts.get("amount", 0) if cfd else 0
    ref_types = [ref.type for ref in cfd.entity_refs] if cfd else []
    summary = cfd.text_summary if cfd else ""
    return [
        _processed(result),
        AssertionResult(
            name="Embeddings generated",
            passed=result.embeddings_generated > 0,
            message=f"Generated {result.embeddings_generated} embeddings"
        ),
        AssertionResult(
            name="CFD has text summary",
            passed=bool(summary),
            message=f"Summary: {summary[:100]}" if summary else "No summary"
        ),
        AssertionResult(
            name="CFD has merchant entity ref",
            passed="merchant" in ref_types,
            message=f"Entity refs: {', '.join(ref_types) or 'none'}"
        ),
        AssertionResult(
            name="CFD has amount facet",
            passed=amount > 0,
            message=f"Amount: {amount}"
        ),
    ]


def _browser_assertions(result, cfd):
    keywords = cfd.keywords if cfd else []
    return [
        _processed(result),
        AssertionResult(
            name="Domain extracted correctly",
            passed=cfd is not None and cfd.domain == "browser",
            message=f"Domain: {cfd.domain if cfd else None}"
        ),
        AssertionResult(
            name="Keywords extracted",
            passed=len(keywords) > 0,
            message=f"Keywords: {', '.join(keywords[:5])}"
        ),
    ]


def _email_assertions(result, cfd):
    summary = cfd.text_summary if cfd else ""
    return [
        _processed(result),
        AssertionResult(
            name="Privacy scope is private",
            passed=cfd is not None and cfd.privacy_scope == PrivacyScope.PRIVATE,
            message=f"Privacy: {cfd.privacy_scope.value if cfd else None}"
        ),
        AssertionResult(
            name="Text summary contains subject",
            passed="Meeting" in summary,
            message=f"Contains email subject: {'Meeting' in summary}"
        ),
        AssertionResult(
            name="Sender address redacted",
            passed="colleague@company.com" not in summary,
            message="Sender address absent from summary"
        ),
    ]


def _task_assertions(result, cfd):
    ref_types = [ref.type for ref in cfd.entity_refs] if cfd else []
    categories = cfd.facets.categories if cfd else {}
    return [
        _processed(result),
        AssertionResult(
            name="CFD has task entity ref",
            passed="task" in ref_types,
            message=f"Entity refs: {', '.join(ref_types) or 'none'}"
        ),
        AssertionResult(
            name="Priority captured as category",
            passed=categories.get("priority") == "high",
            message=f"Categories: {categories}"
        ),
        AssertionResult(
            name="Due date normalized",
            passed=bool(cfd and cfd.facets.timestamps.get("dueDate", "").endswith("Z")),
            message=f"Timestamps: {cfd.facets.timestamps if cfd else {}}"
        ),
    ]


def _calendar_assertions(result, cfd):
    ref_types = [ref.type for ref in cfd.entity_refs] if cfd else []
    return [
        _processed(result),
        AssertionResult(
            name="Calendar entities referenced",
            passed="calendar" in ref_types and "calendarEvent" in ref_types,
            message=f"Entity refs: {', '.join(ref_types) or 'none'}"
        ),
        AssertionResult(
            name="Attendee count facet",
            passed=bool(cfd and cfd.facets.counts.get("attendeeCount") == 6),
            message=f"Counts: {cfd.facets.counts if cfd else {}}"
        ),
    ]


def _social_assertions(result, cfd):
    keywords = cfd.keywords if cfd else []
    return [
        _processed(result),
        AssertionResult(
            name="Privacy scope is social",
            passed=cfd is not None and cfd.privacy_scope == PrivacyScope.SOCIAL,
            message=f"Privacy: {cfd.privacy_scope.value if cfd else None}"
        ),
        AssertionResult(
            name="Tags extracted as keywords",
            passed=any(k in ("launch", "project", "tech") for k in keywords),
            message=f"Keywords include tags: {', '.join(keywords[:5])}"
        ),
    ]


def _heartbeat_assertions(result, cfd):
    return [
        AssertionResult(
            name="No embeddings generated",
            passed=result.embeddings_generated == 0,
            message=f"Generated {result.embeddings_generated} embeddings"
        ),
    ]


QA_TEST_CASES = [
    QATestCase(
        name="Finance Transaction Vectorization",
        description="Finance transactions are vectorized with merchant entity linking",
        event_type="finance.transaction_created",
        assertions=_finance_assertions
    ),
    QATestCase(
        name="Browser Page View Vectorization",
        description="Browser page views extract URL, title and domain entities",
        event_type="browser.page_viewed",
        assertions=_browser_assertions
    ),
    QATestCase(
        name="Email Message Vectorization",
        description="Email messages keep subject text and drop addresses",
        event_type="email.message_received",
        assertions=_email_assertions
    ),
    QATestCase(
        name="Task Creation Vectorization",
        description="Tasks carry task refs, priority and a normalized due date",
        event_type="task.created",
        assertions=_task_assertions
    ),
    QATestCase(
        name="Calendar Event Vectorization",
        description="Calendar events reference the calendar and the event",
        event_type="calendar.event_created",
        assertions=_calendar_assertions
    ),
    QATestCase(
        name="Social Post Vectorization",
        description="Social posts keep the social privacy scope",
        event_type="social.post_created",
        assertions=_social_assertions
    ),
    QATestCase(
        name="Disabled Policy Skip",
        description="Heartbeats are skipped by policy",
        event_type="system.heartbeat",
        expected_outcome="skip",
        assertions=_heartbeat_assertions
    ),
]


def _outcome_assertion(expected: str, result: VectorizeResult) -> AssertionResult:
    if result.skipped:
        actual = "skip"
    elif result.success:
        actual = "success"
    else:
        actual = "fail"
    return AssertionResult(
        name=f"Outcome is {expected}",
        passed=actual == expected,
        message=f"Outcome: {actual}"
    )


def create_stub_pipeline(
    policy_config: EmbeddingPolicyConfig = None,
    dimensions: int = 256
) -> VectorizationPipeline:
    """Orchestrator over in-memory storage, an in-memory graph and mock embeddings."""
    client = MockEmbeddingClient(dimensions=dimensions)
    return VectorizationPipeline(
        policy_config=policy_config or DEFAULT_POLICY_CONFIG,
        embedding_generator=EmbeddingGenerator(client, EmbeddingConfig(dimensions=dimensions)),
        vector_store=InMemoryVectorStore(),
        entity_linker=EntityLinker(InMemoryGraphClient())
    )


class QAHarness:
    """Runs QA test cases against one pipeline."""

    def __init__(self, pipeline: VectorizationPipeline = None):
        self.pipeline = pipeline or create_stub_pipeline()

    async def run_test(self, test_case: QATestCase) -> QATestResult:
        started = time.monotonic()

        generator = SAMPLE_EVENTS.get(test_case.event_type)
        if generator is None:
            return QATestResult(
                test_case=test_case.name,
                passed=False,
                assertions=[AssertionResult(
                    name="Event generator exists",
                    passed=False,
                    message=f"No sample event generator for type: {test_case.event_type}"
                )],
                duration_ms=int((time.monotonic() - started) * 1000)
            )

        event = generator()
        cfd = build_cfd(event, self.pipeline.policy_config, self.pipeline.cfd_builder.lookups)
        result = await self.pipeline.vectorize_event(event)

        assertions = [_outcome_assertion(test_case.expected_outcome, result)]
        try:
            assertions.extend(test_case.assertions(result, cfd))
        except Exception as e:
            assertions.append(AssertionResult(
                name="Assertions evaluated",
                passed=False,
                message=f"Assertion raised {type(e).__name__}: {e}"
            ))

        return QATestResult(
            test_case=test_case.name,
            passed=all(a.passed for a in assertions),
            assertions=assertions,
            vectorize_result=result,
            duration_ms=int((time.monotonic() - started) * 1000)
        )

    async def run_all_tests(self, test_cases: list[QATestCase] = None) -> QASuiteResult:
        started = time.monotonic()
        suite = QASuiteResult()

        for test_case in test_cases if test_cases is not None else QA_TEST_CASES:
            result = await self.run_test(test_case)
            suite.results.append(result)
            logger.info("qa_test_finished", test_case=test_case.name, passed=result.passed)

        suite.total_tests = len(suite.results)
        suite.passed = sum(1 for r in suite.results if r.passed)
        suite.failed = suite.total_tests - suite.passed
        suite.duration_ms = int((time.monotonic() - started) * 1000)
        return suite

    @staticmethod
    def generate_report(suite: QASuiteResult) -> str:
        lines = [
            "╔" + "═" * 60 + "╗",
            "║" + "VECTORIZATION QA TEST REPORT".center(60) + "║",
            "╠" + "═" * 60 + "╣",
            f"║ Total Tests: {suite.total_tests:<46}║",
            f"║ Passed: {suite.passed:<51}║",
            f"║ Failed: {suite.failed:<51}║",
            f"║ Duration: {str(suite.duration_ms) + 'ms':<49}║",
            "╠" + "═" * 60 + "╣",
        ]

        for result in suite.results:
            status = "✓ PASS" if result.passed else "✗ FAIL"
            lines.append(f"║ {status} │ {result.test_case[:50]:<50}║")
            for assertion in result.assertions:
                mark = "  ✓" if assertion.passed else "  ✗"
                lines.append(f"║    {mark} {assertion.name[:52]:<52}║")
            lines.append("╟" + "─" * 60 + "╢")

        lines.append("╚" + "═" * 60 + "╝")
        return "\n".join(lines)


async def run_quick_validation(pipeline: VectorizationPipeline = None) -> dict:
    """Run the built-in suite and summarize it as {success, message, details}."""
    try:
        suite = await QAHarness(pipeline).run_all_tests()
    except Exception as e:
        logger.error("qa_validation_error", error=str(e))
        return {"success": False, "message": f"QA validation error: {e}", "details": None}

    if suite.failed > 0:
        return {
            "success": False,
            "message": f"QA validation failed: {suite.failed}/{suite.total_tests} tests failed",
            "details": suite
        }
    return {
        "success": True,
        "message": f"QA validation passed: {suite.passed}/{suite.total_tests} tests passed",
        "details": suite
    }
