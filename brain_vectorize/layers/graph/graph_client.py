"""
Graph Store Clients

Statements are submitted as one transactional batch and every client
returns an ordered list of per-statement outcomes, so a partial failure
inside a batch is explicit instead of being inferred from a flat error
list.

- Neo4jHttpGraphClient: Neo4j HTTP transactional API via httpx
- InMemoryGraphClient: records statements; tests and QA runs
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from ...config.settings import GraphStoreConfig
from ...core.errors import GraphStoreError
from ...observability import get_logger


logger = get_logger(__name__)

NOT_EXECUTED = "not executed: an earlier statement in the transaction failed"


@dataclass(frozen=True)
class GraphStatement:
    """A parameterized Cypher statement."""
    statement: str
    parameters: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"statement": self.statement, "parameters": dict(self.parameters)}


@dataclass(frozen=True)
class StatementOutcome:
    """Result of one statement in a batch, in submission order."""
    index: int
    success: bool
    error: Optional[str] = None


def fail_all(statements: list[GraphStatement], error: str) -> list[StatementOutcome]:
    return [StatementOutcome(index=i, success=False, error=error) for i in range(len(statements))]


class GraphClient(ABC):
    """Abstract base class for graph stores."""

    @abstractmethod
    async def execute(self, statements: list[GraphStatement]) -> list[StatementOutcome]:
        """
        Run statements in one transaction.

        Returns exactly one outcome per statement, in order. Transport and
        server failures are reported as outcomes, not raised.
        """
        pass

    async def ping(self) -> bool:
        return True


class Neo4jHttpGraphClient(GraphClient):
    """
    Neo4j over the HTTP transactional endpoint.

    POSTs `{"statements": [...]}` to `{http_url}/db/{database}/tx/commit`.
    Statements with a result entry succeeded; the first statement past the
    results carries the server's error; the remainder were not executed.
    An error with every statement answered failed at commit, so every
    statement is reported failed.
    """

    def __init__(self, config: GraphStoreConfig = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or GraphStoreConfig()
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.config.http_url)

    def _client(self) -> httpx.AsyncClient:
        password = self.config.password.get_secret_value() if self.config.password else ""
        return httpx.AsyncClient(
            base_url=self.config.http_url.rstrip("/"),
            auth=(self.config.user, password),
            timeout=float(self.config.timeout),
            transport=self._transport
        )

    async def execute(self, statements: list[GraphStatement]) -> list[StatementOutcome]:
        if not statements:
            return []
        if not self.configured:
            return fail_all(statements, "NEO4J_HTTP_URL not configured")

        body = {"statements": [s.to_dict() for s in statements]}
        try:
            async with self._client() as client:
                response = await client.post(f"/db/{self.config.database}/tx/commit", json=body)
        except httpx.HTTPError as e:
            logger.error("neo4j_request_failed", error=str(e))
            return fail_all(statements, f"Neo4j request failed: {e}")

        if response.status_code >= 300:
            return fail_all(statements, f"Neo4j HTTP error: {response.status_code} - {response.text}")

        try:
            data = response.json()
        except ValueError:
            return fail_all(statements, "Neo4j returned a non-JSON response")

        return self._outcomes(statements, data)

    @staticmethod
    def _outcomes(statements: list[GraphStatement], data: dict[str, Any]) -> list[StatementOutcome]:
        results = data.get("results") or []
        errors = data.get("errors") or []
        if not errors:
            return [StatementOutcome(index=i, success=True) for i in range(len(statements))]

        message = "; ".join(
            f"{err.get('code', 'Neo.Unknown')}: {err.get('message', '')}" for err in errors
        )
        # Every statement answered, so the error came at commit and nothing was applied
        if len(results) >= len(statements):
            return fail_all(statements, message)

        failed_at = len(results)
        outcomes = []
        for i in range(len(statements)):
            if i < failed_at:
                outcomes.append(StatementOutcome(index=i, success=True))
            elif i == failed_at:
                outcomes.append(StatementOutcome(index=i, success=False, error=message))
            else:
                outcomes.append(StatementOutcome(index=i, success=False, error=NOT_EXECUTED))
        return outcomes

    async def ping(self) -> bool:
        if not self.configured:
            return False
        try:
            async with self._client() as client:
                response = await client.get("/")
        except httpx.HTTPError as e:
            logger.warning("neo4j_unreachable", error=str(e))
            return False
        return response.status_code < 300


class InMemoryGraphClient(GraphClient):
    """
    Records executed statements.

    `fail_indices` makes the statements at those batch positions fail,
    mimicking a store that keeps earlier statements applied. Setting
    `unavailable` raises GraphStoreError from `execute`.
    """

    def __init__(self, fail_indices: Optional[set[int]] = None):
        self.fail_indices = set(fail_indices or ())
        self.unavailable = False
        self.executed: list[GraphStatement] = []
        self.batches: list[list[GraphStatement]] = []

    async def execute(self, statements: list[GraphStatement]) -> list[StatementOutcome]:
        if self.unavailable:
            raise GraphStoreError("In-memory graph store configured as unavailable")

        self.batches.append(list(statements))
        outcomes = []
        for i, statement in enumerate(statements):
            if i in self.fail_indices:
                outcomes.append(StatementOutcome(index=i, success=False, error=f"Statement {i} rejected"))
            else:
                self.executed.append(statement)
                outcomes.append(StatementOutcome(index=i, success=True))
        return outcomes

    async def ping(self) -> bool:
        return not self.unavailable
