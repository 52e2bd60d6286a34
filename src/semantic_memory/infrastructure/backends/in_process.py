"""In-process backend: exhaustive numpy cosine over a record store."""

import sqlite3
from collections import Counter

from semantic_memory.core.base import ErrorCode, ErrorLevel, MemoryErrorDetails, OperationStage
from semantic_memory.core.decorators import with_error_handling
from semantic_memory.core.errors import BackendError
from semantic_memory.core.logging import get_logger
from semantic_memory.domain.models import MemoryRecord, MemoryStatistics, SearchResult
from semantic_memory.domain.similarity import rank_records
from semantic_memory.infrastructure.backends.base import VectorBackend
from semantic_memory.infrastructure.backends.stores import InMemoryRecordStore, RecordStore

logger = get_logger(__name__)


def _store_error(stage: OperationStage, owner: str, error: Exception) -> BackendError:
    return BackendError(
        message=f"Record store {stage.value} failed: {error!s}",
        owner=owner,
        stage=stage,
        code=ErrorCode.BACKEND_WRITE if stage is OperationStage.STORE else ErrorCode.BACKEND_QUERY,
        details=MemoryErrorDetails(
            source="in_process_backend",
            operation=stage.value,
            owner=owner,
            stage=stage,
            cause=str(error),
        ),
    )


class InProcessVectorBackend(VectorBackend):
    """Loads an owner's namespace and ranks it in memory.

    Used when no external vector engine is configured.
    """

    name = "in_process"

    def __init__(self, store: RecordStore | None = None):
        self.records = store or InMemoryRecordStore()

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def store(self, record: MemoryRecord) -> MemoryRecord:
        try:
            return await self.records.insert(record)
        except sqlite3.Error as e:
            raise _store_error(OperationStage.STORE, record.owner, e) from e

    async def find_by_content_hash(self, owner: str, content_hash: str) -> MemoryRecord | None:
        try:
            return await self.records.get_by_hash(owner, content_hash)
        except sqlite3.Error as e:
            raise _store_error(OperationStage.STORE, owner, e) from e

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def search(
        self,
        owner: str,
        namespace: str,
        query_vector: list[float],
        limit: int,
        threshold: float,
    ) -> list[SearchResult]:
        try:
            records = await self.records.list_records(owner, namespace)
        except sqlite3.Error as e:
            raise _store_error(OperationStage.SEARCH, owner, e) from e

        results = rank_records(records, query_vector, limit, threshold)
        logger.debug(
            "In-process vector search completed",
            owner=owner,
            namespace=namespace,
            candidates=len(records),
            results=len(results),
        )
        return results

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def delete(self, owner: str, namespace: str, source: str | None = None) -> int:
        try:
            return await self.records.delete(owner, namespace, source)
        except sqlite3.Error as e:
            raise _store_error(OperationStage.DELETE, owner, e) from e

    async def statistics(self, owner: str, namespace: str) -> MemoryStatistics:
        try:
            records = await self.records.list_records(owner, namespace)
        except sqlite3.Error as e:
            raise _store_error(OperationStage.STATISTICS, owner, e) from e

        return MemoryStatistics(
            total_memories=len(records),
            total_tokens=sum(r.token_count for r in records),
            providers=dict(Counter(r.embedding_provider for r in records)),
            sources=dict(Counter(r.source for r in records if r.source)),
        )

    async def close(self) -> None:
        await self.records.close()
