"""Neo4j backend: Cypher parameters, row mapping and error translation."""

import json
from unittest.mock import AsyncMock

import pytest
from conftest import make_record, unit
from fakes import FakeNeo4jDriver, FakeNeo4jSession, FakeResult, mock_session
from neo4j.exceptions import ConstraintError, ServiceUnavailable

from semantic_memory.core.base import ErrorCode, OperationStage
from semantic_memory.core.errors import BackendError
from semantic_memory.infrastructure.backends import Neo4jVectorBackend
from semantic_memory.infrastructure.neo4j import VectorMemoryQueries


def node_for(record) -> dict:
    properties = record.to_document()
    properties["metadata"] = json.dumps(record.metadata)
    return properties


def build(session):
    return Neo4jVectorBackend(FakeNeo4jDriver(session))


class TestQueries:
    """Statement builders."""

    def test_search_orders_by_similarity_then_id(self):
        query, params = VectorMemoryQueries.similarity_search("agent-1", "default", unit(0), 5, 0.7)
        assert "ORDER BY similarity DESC, m.id ASC" in query
        assert "similarity >= $threshold" in query
        assert params == {
            "owner": "agent-1",
            "namespace": "default",
            "query_vector": unit(0),
            "limit": 5,
            "threshold": 0.7,
        }

    def test_store_merges_on_owner_and_hash(self):
        record = make_record("Cats are small felines.", unit(0))
        query, params = VectorMemoryQueries.store(record.to_document())
        assert "MERGE (m:VectorMemory {owner: $owner, content_hash: $content_hash})" in query
        assert params["owner"] == "agent-1"
        assert params["content_hash"] == record.content_hash

    def test_schema_declares_owner_hash_uniqueness(self):
        constraint, index = VectorMemoryQueries.schema()
        assert "REQUIRE (m.owner, m.content_hash) IS UNIQUE" in constraint
        assert "ON (m.owner, m.namespace)" in index


class TestStore:
    """Writes and the uniqueness race."""

    @pytest.mark.asyncio
    async def test_metadata_sent_as_json_and_parsed_back(self):
        record = make_record("Cats are small felines.", unit(0), metadata={"topic": "cats"})
        session = mock_session([{"m": node_for(record)}])

        stored = await build(session).store(record)

        _, params = session.run.call_args.args
        assert params["properties"]["metadata"] == '{"topic": "cats"}'
        assert stored.metadata == {"topic": "cats"}
        assert stored.id == record.id

    @pytest.mark.asyncio
    async def test_constraint_race_returns_winning_node(self):
        winner = make_record("Cats are small felines.", unit(0))
        loser = make_record("Cats are small felines.", unit(1))
        session = mock_session()
        session.run = AsyncMock(
            side_effect=[
                FakeResult([]),
                FakeResult([]),
                ConstraintError("already exists"),
                FakeResult([{"m": node_for(winner)}]),
            ]
        )

        stored = await build(session).store(loser)

        assert stored.id == winner.id
        refetch_query, refetch_params = session.run.call_args_list[3].args
        assert refetch_query.strip().startswith("MATCH")
        assert refetch_params == {"owner": "agent-1", "content_hash": loser.content_hash}

    @pytest.mark.asyncio
    async def test_driver_failure_on_write(self):
        session = mock_session()
        session.run = AsyncMock(side_effect=ServiceUnavailable("connection refused"))

        with pytest.raises(BackendError) as exc_info:
            await build(session).store(make_record("Cats are small felines.", unit(0)))

        assert exc_info.value.code == ErrorCode.BACKEND_WRITE
        assert exc_info.value.stage == OperationStage.STORE
        assert isinstance(exc_info.value.__cause__, ServiceUnavailable)


class TestReads:
    """Search, delete and statistics row mapping."""

    @pytest.mark.asyncio
    async def test_search_maps_rows_to_results(self):
        record = make_record("Cats are small felines.", unit(0))
        session = mock_session([{"m": node_for(record), "similarity": 0.91}])

        results = await build(session).search("agent-1", "default", unit(0), limit=5, threshold=0.7)

        assert [(r.id, r.similarity) for r in results] == [(record.id, 0.91)]

    @pytest.mark.asyncio
    async def test_search_failure_is_query_error(self):
        session = mock_session()
        session.run = AsyncMock(side_effect=ServiceUnavailable("connection refused"))

        with pytest.raises(BackendError) as exc_info:
            await build(session).search("agent-1", "default", unit(0), limit=5, threshold=0.7)

        assert exc_info.value.code == ErrorCode.BACKEND_QUERY
        assert exc_info.value.stage == OperationStage.SEARCH

    @pytest.mark.asyncio
    async def test_delete_returns_count(self):
        session = mock_session([{"deleted": 3}])

        assert await build(session).delete("agent-1", "default", source="manual") == 3
        _, params = session.run.call_args.args
        assert params == {"owner": "agent-1", "namespace": "default", "source": "manual"}

    @pytest.mark.asyncio
    async def test_statistics_skip_missing_sources(self):
        session = mock_session(
            [
                {
                    "total_memories": 3,
                    "total_tokens": 42,
                    "providers": ["voyage", "voyage", "openai"],
                    "sources": ["notes", None],
                }
            ]
        )

        stats = await build(session).statistics("agent-1", "default")

        assert stats.total_memories == 3
        assert stats.total_tokens == 42
        assert stats.providers == {"voyage": 2, "openai": 1}
        assert stats.sources == {"notes": 1}


class TestLifecycle:
    """Schema, availability and shutdown."""

    @pytest.mark.asyncio
    async def test_ensure_schema_runs_every_statement(self):
        session = mock_session()

        await build(session).ensure_schema()

        queries = [call.args[0] for call in session.run.call_args_list]
        assert queries == VectorMemoryQueries.schema()

    @pytest.mark.asyncio
    async def test_first_store_creates_schema_once(self):
        record = make_record("Cats are small felines.", unit(0))
        session = mock_session([{"m": node_for(record)}])
        backend = build(session)

        await backend.store(record)
        await backend.store(record)

        queries = [call.args[0] for call in session.run.call_args_list]
        assert queries[:2] == VectorMemoryQueries.schema()
        assert sum("CREATE CONSTRAINT" in q for q in queries) == 1
        assert len(queries) == 4

    @pytest.mark.asyncio
    async def test_lookup_creates_schema_before_matching(self):
        session = FakeNeo4jSession()
        backend = build(session)

        assert await backend.find_by_content_hash("agent-1", "missing") is None

        queries = [query for query, _ in session.queries]
        assert queries[:2] == VectorMemoryQueries.schema()
        assert queries[2].strip().startswith("MATCH")

    @pytest.mark.asyncio
    async def test_schema_failure_blocks_the_write(self):
        session = mock_session()
        session.run = AsyncMock(side_effect=ServiceUnavailable("connection refused"))
        backend = build(session)

        with pytest.raises(BackendError):
            await backend.store(make_record("Cats are small felines.", unit(0)))

        assert session.run.await_count == 1
        assert backend._schema_ready is False

    @pytest.mark.asyncio
    async def test_unreachable_server_is_unavailable(self):
        driver = FakeNeo4jDriver(mock_session())
        driver.verify_connectivity.side_effect = ServiceUnavailable("no route")

        assert await Neo4jVectorBackend(driver).is_available() is False

    @pytest.mark.asyncio
    async def test_close_closes_driver(self):
        driver = FakeNeo4jDriver(mock_session())

        await Neo4jVectorBackend(driver).close()

        driver.close.assert_awaited_once()
