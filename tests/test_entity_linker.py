"""
Entity Linker Tests

Tests for:
- Cypher statement construction (labels, relationships, parameters)
- per-statement outcome accounting on partial failures
- unreachable graph stores
- the Neo4j HTTP client against httpx.MockTransport
"""

import json

import httpx
import pytest

from brain_vectorize.config.settings import GraphStoreConfig
from brain_vectorize.core.events import EntityRef
from brain_vectorize.core.lookups import EntityLookups
from brain_vectorize.layers.graph import (
    EntityLinker,
    GraphStatement,
    InMemoryGraphClient,
    Neo4jHttpGraphClient
)
from brain_vectorize.layers.graph.graph_client import NOT_EXECUTED
from brain_vectorize.layers.normalization import build_cfd

from tests.conftest import make_event


@pytest.fixture
def two_ref_cfd(policy_config):
    event = make_event(payload={"merchantId": "m_1", "accountId": "acc_9"})
    return build_cfd(event, policy_config)


# =============================================================================
# STATEMENTS
# =============================================================================

class TestStatementBuilding:

    def test_entity_upsert(self, graph_client):
        linker = EntityLinker(graph_client)
        ref = EntityRef(type="merchant", id="m_1", source_path="payload.merchantId")

        statement = linker.build_entity_upsert(ref, "user_1", "evt_1", 123)

        assert statement.statement.startswith("MERGE (n:Merchant {merchantId: $entityId})")
        assert "ON CREATE SET" in statement.statement
        assert "ON MATCH SET n.updatedAt = $timestamp, n.lastEventId = $eventId" in statement.statement
        assert statement.parameters == {
            "entityId": "m_1",
            "userId": "user_1",
            "eventId": "evt_1",
            "sourcePath": "payload.merchantId",
            "timestamp": 123,
        }

    def test_event_relationship(self, graph_client, two_ref_cfd):
        linker = EntityLinker(graph_client)

        statement = linker.build_event_relationship(two_ref_cfd.entity_refs[0], two_ref_cfd, 123)

        assert "MERGE (e:Event {eventId: $eventId})" in statement.statement
        assert "MATCH (n:Merchant {merchantId: $entityId})" in statement.statement
        assert "MERGE (e)-[r:INVOLVES_MERCHANT]->(n)" in statement.statement
        assert statement.parameters["eventType"] == "finance.transaction_created"

    def test_unknown_type_uses_generic_label(self, graph_client):
        linker = EntityLinker(graph_client)
        ref = EntityRef(type="entity", id="x", source_path="payload.widgetId")

        assert "MERGE (n:Entity {entityId: $entityId})" in linker.build_entity_upsert(ref, "u", "e", 1).statement

    def test_lookup_overrides(self, graph_client):
        lookups = EntityLookups().with_overrides(node_labels={"merchant": "Vendor"}, relationships={"merchant": "PAID"})
        linker = EntityLinker(graph_client, lookups)
        ref = EntityRef(type="merchant", id="m_1", source_path="payload.merchantId")

        assert "(n:Vendor {merchantId: $entityId})" in linker.build_entity_upsert(ref, "u", "e", 1).statement

    def test_upserts_precede_relationships(self, graph_client, two_ref_cfd):
        statements = EntityLinker(graph_client).build_statements(two_ref_cfd)

        assert len(statements) == 4
        assert all(s.statement.startswith("MERGE (n:") for s in statements[:2])
        assert all(s.statement.startswith("MERGE (e:Event") for s in statements[2:])


# =============================================================================
# LINKING
# =============================================================================

class TestLinkEntities:

    @pytest.mark.asyncio
    async def test_all_statements_succeed(self, graph_client, two_ref_cfd):
        result = await EntityLinker(graph_client).link_entities(two_ref_cfd)

        assert result.success
        assert (result.entities_processed, result.relationships_created) == (2, 2)
        assert len(graph_client.batches) == 1

    @pytest.mark.asyncio
    async def test_partial_failure_counts_only_successes(self, two_ref_cfd):
        graph_client = InMemoryGraphClient(fail_indices={1, 3})

        result = await EntityLinker(graph_client).link_entities(two_ref_cfd)

        assert not result.success
        assert (result.entities_processed, result.relationships_created) == (1, 1)
        assert result.errors == ["statement 1: Statement 1 rejected", "statement 3: Statement 3 rejected"]

    @pytest.mark.asyncio
    async def test_unavailable_graph_is_reported(self, graph_client, two_ref_cfd):
        graph_client.unavailable = True

        result = await EntityLinker(graph_client).link_entities(two_ref_cfd)

        assert not result.success
        assert result.entities_processed == 0
        assert len(result.errors) == 1

    @pytest.mark.asyncio
    async def test_no_refs_is_noop(self, graph_client, policy_config):
        cfd = build_cfd(make_event(payload={}), policy_config)

        result = await EntityLinker(graph_client).link_entities(cfd)

        assert result.success
        assert graph_client.batches == []


# =============================================================================
# NEO4J HTTP CLIENT
# =============================================================================

STATEMENTS = [GraphStatement(f"RETURN {i}") for i in range(3)]


def neo4j_client(handler) -> Neo4jHttpGraphClient:
    config = GraphStoreConfig(http_url="http://neo4j.test:7474/", database="brain")
    return Neo4jHttpGraphClient(config, transport=httpx.MockTransport(handler))


class TestNeo4jHttpGraphClient:

    @pytest.mark.asyncio
    async def test_posts_to_commit_endpoint(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("authorization", "")
            return httpx.Response(200, json={"results": [{}, {}, {}], "errors": []})

        outcomes = await neo4j_client(handler).execute(STATEMENTS)

        assert seen["url"] == "http://neo4j.test:7474/db/brain/tx/commit"
        assert seen["body"]["statements"][0] == {"statement": "RETURN 0", "parameters": {}}
        assert seen["auth"].startswith("Basic ")
        assert [o.success for o in outcomes] == [True, True, True]

    @pytest.mark.asyncio
    async def test_error_attributed_to_first_unanswered_statement(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={
                "results": [{}],
                "errors": [{"code": "Neo.ClientError.Statement.SyntaxError", "message": "bad"}],
            })

        outcomes = await neo4j_client(handler).execute(STATEMENTS)

        assert [o.success for o in outcomes] == [True, False, False]
        assert outcomes[1].error == "Neo.ClientError.Statement.SyntaxError: bad"
        assert outcomes[2].error == NOT_EXECUTED

    @pytest.mark.asyncio
    async def test_commit_error_fails_every_statement(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={
                "results": [{}, {}, {}],
                "errors": [{"code": "Neo.TransientError", "message": "deadlock at commit"}],
            })

        outcomes = await neo4j_client(handler).execute(STATEMENTS)

        assert [o.success for o in outcomes] == [False, False, False]
        assert {o.error for o in outcomes} == {"Neo.TransientError: deadlock at commit"}

    @pytest.mark.asyncio
    async def test_http_error_fails_every_statement(self):
        outcomes = await neo4j_client(lambda request: httpx.Response(503, text="down")).execute(STATEMENTS)

        assert all(not o.success for o in outcomes)
        assert outcomes[0].error == "Neo4j HTTP error: 503 - down"

    @pytest.mark.asyncio
    async def test_transport_error_fails_every_statement(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        outcomes = await neo4j_client(handler).execute(STATEMENTS)

        assert len(outcomes) == 3
        assert all("refused" in o.error for o in outcomes)

    @pytest.mark.asyncio
    async def test_unconfigured(self):
        client = Neo4jHttpGraphClient(GraphStoreConfig(http_url=None))

        outcomes = await client.execute(STATEMENTS)

        assert {o.error for o in outcomes} == {"NEO4J_HTTP_URL not configured"}
        assert await client.ping() is False
