"""Neo4j vector backend: records are ``VectorMemory`` nodes ranked server-side."""

import asyncio
import json
from collections import Counter
from typing import Any, LiteralString

from neo4j import AsyncSession
from neo4j.exceptions import ConstraintError, DriverError, Neo4jError

from semantic_memory.core.base import ErrorCode, ErrorLevel, MemoryErrorDetails, OperationStage
from semantic_memory.core.decorators import with_error_handling, with_session
from semantic_memory.core.errors import BackendError
from semantic_memory.core.logging import get_logger
from semantic_memory.domain.models import MemoryRecord, MemoryStatistics, SearchResult
from semantic_memory.infrastructure.backends.base import VectorBackend
from semantic_memory.infrastructure.neo4j import Neo4jDriver, VectorMemoryQueries

logger = get_logger(__name__)


def _node_to_record(node: dict[str, Any]) -> MemoryRecord:
    data = dict(node)
    metadata = data.get("metadata")
    if isinstance(metadata, str):
        data["metadata"] = json.loads(metadata) if metadata else {}
    return MemoryRecord.model_validate(data)


def _record_to_properties(record: MemoryRecord) -> dict[str, Any]:
    # Node properties can't hold maps
    properties = record.to_document()
    properties["metadata"] = json.dumps(record.metadata, sort_keys=True)
    return properties


class Neo4jVectorBackend(VectorBackend):
    """Vector memories stored as nodes, cosine computed by the GDS library."""

    name = "neo4j"

    def __init__(self, driver: Neo4jDriver):
        self.driver = driver
        self._schema_ready = False
        self._schema_lock = asyncio.Lock()

    async def _fetch(
        self,
        session: AsyncSession,
        query: LiteralString,
        params: dict[str, Any],
        stage: OperationStage,
        owner: str | None = None,
    ) -> list[dict[str, Any]]:
        try:
            result = await session.run(query, params)
            return await result.data()
        except ConstraintError:
            raise
        except (Neo4jError, DriverError) as e:
            raise BackendError(
                message=f"Neo4j {stage.value} query failed: {e!s}",
                owner=owner,
                stage=stage,
                code=ErrorCode.BACKEND_WRITE if stage is OperationStage.STORE else ErrorCode.BACKEND_QUERY,
                details=MemoryErrorDetails(
                    source="neo4j_backend",
                    operation=stage.value,
                    owner=owner,
                    stage=stage,
                    cause=str(e),
                ),
            ) from e

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    @with_session()
    async def ensure_schema(self, session: AsyncSession) -> None:
        await self._ensure_schema(session)

    async def _ensure_schema(self, session: AsyncSession, owner: str | None = None) -> None:
        """Create the owner/hash constraint once, before the first write or lookup."""
        if self._schema_ready:
            return
        async with self._schema_lock:
            if self._schema_ready:
                return
            for statement in VectorMemoryQueries.schema():
                await self._fetch(session, statement, {}, OperationStage.STORE, owner)
            self._schema_ready = True
            logger.info("Ensured Neo4j vector memory schema")

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    @with_session()
    async def store(self, session: AsyncSession, record: MemoryRecord) -> MemoryRecord:
        await self._ensure_schema(session, record.owner)
        query, params = VectorMemoryQueries.store(_record_to_properties(record))
        try:
            rows = await self._fetch(session, query, params, OperationStage.STORE, record.owner)
        except ConstraintError:
            # A concurrent MERGE created the node first
            logger.debug("Store lost uniqueness race, returning stored record", owner=record.owner)
            query, params = VectorMemoryQueries.find_by_content_hash(record.owner, record.content_hash)
            rows = await self._fetch(session, query, params, OperationStage.STORE, record.owner)

        if not rows:
            raise BackendError(
                message="Neo4j store returned no node",
                owner=record.owner,
                stage=OperationStage.STORE,
                code=ErrorCode.BACKEND_WRITE,
            )
        return _node_to_record(rows[0]["m"])

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    @with_session()
    async def find_by_content_hash(
        self, session: AsyncSession, owner: str, content_hash: str
    ) -> MemoryRecord | None:
        await self._ensure_schema(session, owner)
        query, params = VectorMemoryQueries.find_by_content_hash(owner, content_hash)
        rows = await self._fetch(session, query, params, OperationStage.STORE, owner)
        return _node_to_record(rows[0]["m"]) if rows else None

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    @with_session()
    async def search(
        self,
        session: AsyncSession,
        owner: str,
        namespace: str,
        query_vector: list[float],
        limit: int,
        threshold: float,
    ) -> list[SearchResult]:
        query, params = VectorMemoryQueries.similarity_search(owner, namespace, query_vector, limit, threshold)
        rows = await self._fetch(session, query, params, OperationStage.SEARCH, owner)
        return [
            SearchResult(record=_node_to_record(row["m"]), similarity=float(row["similarity"]))
            for row in rows
        ]

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    @with_session()
    async def delete(self, session: AsyncSession, owner: str, namespace: str, source: str | None = None) -> int:
        query, params = VectorMemoryQueries.delete(owner, namespace, source)
        rows = await self._fetch(session, query, params, OperationStage.DELETE, owner)
        return int(rows[0]["deleted"]) if rows else 0

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    @with_session()
    async def statistics(self, session: AsyncSession, owner: str, namespace: str) -> MemoryStatistics:
        query, params = VectorMemoryQueries.statistics(owner, namespace)
        rows = await self._fetch(session, query, params, OperationStage.STATISTICS, owner)
        if not rows:
            return MemoryStatistics()

        row = rows[0]
        return MemoryStatistics(
            total_memories=int(row["total_memories"]),
            total_tokens=int(row["total_tokens"] or 0),
            providers=dict(Counter(p for p in row["providers"] if p)),
            sources=dict(Counter(s for s in row["sources"] if s)),
        )

    async def is_available(self) -> bool:
        try:
            await self.driver.verify_connectivity()
        except (Neo4jError, DriverError, OSError) as e:
            logger.warning(f"Neo4j unavailable: {e!s}")
            return False
        return True

    async def close(self) -> None:
        await self.driver.close()
