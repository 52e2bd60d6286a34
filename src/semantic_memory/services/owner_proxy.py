"""Owner-bound view of a memory manager."""

import asyncio

from semantic_memory.core.base import OperationStage
from semantic_memory.core.errors import ValidationError
from semantic_memory.domain.models import (
    IngestChunkOptions,
    IngestDocumentOptions,
    MemoryRecord,
    MemoryStatistics,
    RagContext,
    RagOptions,
    SearchOptions,
    SearchResult,
)
from semantic_memory.services.memory_manager import MemoryManager


class OwnerMemoryProxy:
    """Forwards every manager operation with a fixed owner."""

    def __init__(self, manager: MemoryManager, owner: str):
        if not isinstance(owner, str) or not owner.strip():
            raise ValidationError("owner must be a non-blank string", field="owner", stage=OperationStage.STORE)
        self.manager = manager
        self.owner = owner

    async def ingest_document(
        self,
        content: str,
        options: IngestDocumentOptions | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[MemoryRecord]:
        return await self.manager.ingest_document(self.owner, content, options, cancel_event=cancel_event)

    async def ingest_chunk(
        self,
        content: str,
        options: IngestChunkOptions | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> MemoryRecord | None:
        return await self.manager.ingest_chunk(self.owner, content, options, cancel_event=cancel_event)

    async def search(
        self,
        query: str,
        options: SearchOptions | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[SearchResult]:
        return await self.manager.search(self.owner, query, options, cancel_event=cancel_event)

    async def generate_rag_context(
        self,
        query: str,
        options: RagOptions | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> RagContext:
        return await self.manager.generate_rag_context(self.owner, query, options, cancel_event=cancel_event)

    async def delete_memories(
        self,
        namespace: str | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> int:
        return await self.manager.delete_memories(self.owner, namespace, cancel_event=cancel_event)

    async def delete_memories_by_source(
        self,
        source: str,
        namespace: str | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> int:
        return await self.manager.delete_memories_by_source(self.owner, source, namespace, cancel_event=cancel_event)

    async def get_statistics(self, namespace: str | None = None) -> MemoryStatistics:
        return await self.manager.get_statistics(self.owner, namespace)
