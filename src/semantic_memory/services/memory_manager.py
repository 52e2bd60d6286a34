"""Memory manager: ingestion, deduplication, search and RAG context assembly.

The manager holds no per-call state. Owners are always passed explicitly,
and every collaborator failure is raised with the owner and the stage it
happened in. Nothing is retried.
"""

import asyncio
import json
import math
import re
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from semantic_memory.core.base import ApplicationError, ErrorCode, MemoryErrorDetails, OperationStage
from semantic_memory.core.config import RagConfig, SearchConfig, Settings, settings
from semantic_memory.core.errors import (
    BackendError,
    EmbeddingProviderError,
    MemoryOperationError,
    OperationCancelledError,
    ValidationError,
)
from semantic_memory.core.logging import bound_log_context, get_logger
from semantic_memory.domain.models import (
    IngestChunkOptions,
    IngestDocumentOptions,
    MemoryRecord,
    MemoryStatistics,
    RagContext,
    RagOptions,
    RagSource,
    SearchOptions,
    SearchResult,
)
from semantic_memory.domain.models.utils import (
    estimate_token_count,
    generate_content_hash,
    new_identifier,
)
from semantic_memory.domain.similarity import vector_norm
from semantic_memory.infrastructure.backends import VectorBackend, create_backend
from semantic_memory.infrastructure.embeddings import create_embedding_provider
from semantic_memory.services import EmbeddingProvider
from semantic_memory.services.chunker import Chunker

logger = get_logger(__name__)

T = TypeVar("T")

CONTEXT_SEPARATOR = "\n\n---\n\n"
METADATA_ANNOTATION = "\n[Metadata: {metadata}]"
_PLACEHOLDER = re.compile(r"\{(context|query)\}")


def render_template(template: str, context: str, query: str) -> str:
    """Substitute ``{context}`` and ``{query}`` in one pass.

    Braces inside the substituted text are left alone.
    """
    values = {"context": context, "query": query}
    return _PLACEHOLDER.sub(lambda match: values[match.group(1)], template)


class MemoryManager:
    """Owner-scoped semantic memory over one embedding provider and one backend."""

    def __init__(
        self,
        embedding_provider: EmbeddingProvider,
        backend: VectorBackend,
        chunker: Chunker | None = None,
        rag_config: RagConfig | None = None,
        search_config: SearchConfig | None = None,
        default_namespace: str | None = None,
    ):
        self.embedding_provider = embedding_provider
        self.backend = backend
        self.chunker = chunker or Chunker(settings.chunking)
        self.rag_config = rag_config or settings.rag
        self.search_config = search_config or settings.search
        self.default_namespace = default_namespace or settings.default_namespace

    # ==========================================================================
    # Guards
    # ==========================================================================

    @staticmethod
    def _require_owner(owner: str, stage: OperationStage) -> str:
        if not isinstance(owner, str) or not owner.strip():
            raise ValidationError("owner must be a non-blank string", field="owner", stage=stage)
        return owner

    @staticmethod
    def _require_content(content: str, owner: str, stage: OperationStage) -> str:
        if not isinstance(content, str):
            raise ValidationError(
                "content must be a string",
                field="content",
                owner=owner,
                stage=stage,
            )
        return content

    @staticmethod
    def _check_cancelled(cancel_event: asyncio.Event | None, owner: str, stage: OperationStage) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError(f"Operation cancelled before {stage.value}", owner=owner, stage=stage)

    async def _guarded(
        self,
        stage: OperationStage,
        owner: str,
        namespace: str | None,
        error_cls: type[MemoryOperationError],
        call: Callable[..., Awaitable[T]],
        *args: Any,
    ) -> T:
        """Await a collaborator call, re-raising failures with owner and stage."""
        try:
            return await call(*args)
        except (ValidationError, OperationCancelledError):
            raise
        except Exception as e:
            code = e.code if isinstance(e, ApplicationError) else None
            # Application errors were already logged where they were raised
            if code is None:
                logger.error(
                    f"{stage.value} failed for owner {owner}: {e!s}",
                    owner=owner,
                    namespace=namespace,
                    stage=stage.value,
                    error_type=type(e).__name__,
                )
            raise error_cls(
                message=f"{stage.value} failed for owner '{owner}': {e!s}",
                owner=owner,
                stage=stage,
                code=code,
                details=MemoryErrorDetails(
                    source="memory_manager",
                    operation=stage.value,
                    owner=owner,
                    stage=stage,
                    namespace=namespace,
                    cause=str(e),
                ),
            ) from e

    async def _embed_one(
        self,
        text: str,
        owner: str,
        namespace: str,
        cancel_event: asyncio.Event | None,
    ) -> list[float]:
        """Embed a single text and check the vector before it is used."""
        self._check_cancelled(cancel_event, owner, OperationStage.EMBED)
        vectors = await self._guarded(
            OperationStage.EMBED,
            owner,
            namespace,
            EmbeddingProviderError,
            self.embedding_provider.embed,
            [text],
        )

        expected = self.embedding_provider.get_dimensions()
        vector = vectors[0] if isinstance(vectors, list) and len(vectors) == 1 else None
        if not vector or len(vector) != expected or not all(math.isfinite(v) for v in vector):
            size = len(vector) if vector else 0
            raise EmbeddingProviderError(
                message=f"Provider returned a malformed embedding ({size} values, expected {expected})",
                owner=owner,
                stage=OperationStage.EMBED,
                code=ErrorCode.EMBEDDING_MALFORMED,
            )
        return [float(v) for v in vector]

    # ==========================================================================
    # Ingestion
    # ==========================================================================

    async def ingest_document(
        self,
        owner: str,
        content: str,
        options: IngestDocumentOptions | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[MemoryRecord]:
        """Chunk a document and ingest every chunk in order.

        All chunks share ``source`` (default: the owner) and ``source_id``
        (default: a fresh identifier). Chunks that already exist for the
        owner come back as their stored record.
        """
        owner = self._require_owner(owner, OperationStage.CHUNK)
        content = self._require_content(content, owner, OperationStage.CHUNK)
        options = options or IngestDocumentOptions()
        namespace = options.namespace or self.default_namespace
        source = options.source or owner
        source_id = options.source_id or new_identifier()

        self._check_cancelled(cancel_event, owner, OperationStage.CHUNK)
        try:
            chunks = self.chunker.chunk(content)
        except Exception as e:
            raise MemoryOperationError(
                message=f"chunk failed for owner '{owner}': {e!s}",
                owner=owner,
                stage=OperationStage.CHUNK,
                code=ErrorCode.CHUNKING_FAILED,
            ) from e

        records: list[MemoryRecord] = []
        with bound_log_context(owner=owner, namespace=namespace, source_id=source_id):
            for index, chunk in enumerate(chunks):
                record = await self.ingest_chunk(
                    owner,
                    chunk,
                    IngestChunkOptions(
                        metadata={**options.metadata, "chunk_index": index},
                        namespace=namespace,
                        source=source,
                        source_id=source_id,
                        chunk_index=index,
                    ),
                    cancel_event=cancel_event,
                )
                if record is not None:
                    records.append(record)

            logger.info(
                "Ingested document",
                source=source,
                content_length=len(content),
                chunks=len(chunks),
                records=len(records),
            )
        return records

    async def ingest_chunk(
        self,
        owner: str,
        content: str,
        options: IngestChunkOptions | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> MemoryRecord | None:
        """Store one chunk unless the owner already has identical content.

        Returns ``None`` for blank content. For a duplicate the existing
        record is returned and the embedding provider is not called.
        """
        owner = self._require_owner(owner, OperationStage.STORE)
        content = self._require_content(content, owner, OperationStage.STORE)
        options = options or IngestChunkOptions()
        namespace = options.namespace or self.default_namespace

        content = content.strip()
        if not content:
            return None

        content_hash = generate_content_hash(owner, content)

        self._check_cancelled(cancel_event, owner, OperationStage.STORE)
        existing = await self._guarded(
            OperationStage.STORE,
            owner,
            namespace,
            BackendError,
            self.backend.find_by_content_hash,
            owner,
            content_hash,
        )
        if existing is not None:
            logger.debug("Duplicate chunk, returning stored record", owner=owner, record_id=existing.id)
            return existing

        vector = await self._embed_one(content, owner, namespace, cancel_event)

        record = MemoryRecord(
            owner=owner,
            namespace=namespace,
            content=content,
            metadata=options.metadata,
            source=options.source,
            source_id=options.source_id,
            chunk_index=options.chunk_index,
            embedding_vector=vector,
            embedding_provider=self.embedding_provider.get_provider_name(),
            embedding_model=self.embedding_provider.get_model(),
            embedding_dimensions=len(vector),
            embedding_norm=vector_norm(vector),
            content_hash=content_hash,
            token_count=estimate_token_count(content),
        )

        self._check_cancelled(cancel_event, owner, OperationStage.STORE)
        stored = await self._guarded(
            OperationStage.STORE,
            owner,
            namespace,
            BackendError,
            self.backend.store,
            record,
        )
        if stored.id != record.id:
            logger.debug("Concurrent insert won, returning stored record", owner=owner, record_id=stored.id)
        return stored

    # ==========================================================================
    # Retrieval
    # ==========================================================================

    async def search(
        self,
        owner: str,
        query: str,
        options: SearchOptions | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> list[SearchResult]:
        """Records of one owner/namespace most similar to the query.

        Ordered by similarity, descending, ties by record id. An empty list
        is a valid result.
        """
        owner = self._require_owner(owner, OperationStage.SEARCH)
        if not isinstance(query, str) or not query.strip():
            raise ValidationError(
                "query must be a non-blank string",
                field="query",
                owner=owner,
                stage=OperationStage.SEARCH,
            )

        options = options or SearchOptions()
        namespace = options.namespace or self.default_namespace
        limit = options.limit or self.search_config.default_limit
        threshold = (
            options.similarity_threshold
            if options.similarity_threshold is not None
            else self.search_config.similarity_threshold
        )

        vector = await self._embed_one(query.strip(), owner, namespace, cancel_event)

        self._check_cancelled(cancel_event, owner, OperationStage.SEARCH)
        results = await self._guarded(
            OperationStage.SEARCH,
            owner,
            namespace,
            BackendError,
            self.backend.search,
            owner,
            namespace,
            vector,
            limit,
            threshold,
        )

        logger.debug(
            "Search completed",
            owner=owner,
            namespace=namespace,
            backend=self.backend.name,
            limit=limit,
            threshold=threshold,
            results=len(results),
        )
        return results

    async def generate_rag_context(
        self,
        owner: str,
        query: str,
        options: RagOptions | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> RagContext:
        """Pack the best search results into a context string.

        Results are taken in rank order and packing stops at the first one
        that does not fit. Each candidate is measured as rendered, so separators
        and every copy of the template text count toward ``max_context_length``.
        """
        options = options or RagOptions()
        results = await self.search(owner, query, options, cancel_event=cancel_event)

        max_length = options.max_context_length or self.rag_config.max_context_length
        include_metadata = (
            options.include_metadata
            if options.include_metadata is not None
            else self.rag_config.include_metadata
        )
        template = (options.context_template or self.rag_config.context_template) if options.use_template else None

        empty = RagContext(context="", sources=[], query=query, total_results=len(results))
        if not results:
            return empty

        pieces: list[str] = []
        sources: list[RagSource] = []
        for result in results:
            piece = result.content
            if include_metadata and result.metadata:
                piece += METADATA_ANNOTATION.format(metadata=json.dumps(result.metadata, default=str))

            candidate = CONTEXT_SEPARATOR.join([*pieces, piece])
            if template:
                candidate = render_template(template, candidate, query)
            if len(candidate) > max_length:
                break

            pieces.append(piece)
            sources.append(
                RagSource(
                    id=result.record.id,
                    source=result.record.source,
                    source_id=result.record.source_id,
                    similarity=result.similarity,
                    created_at=result.record.created_at,
                )
            )

        if not pieces:
            logger.debug("No result fits the context length", owner=owner, max_length=max_length)
            return empty

        context = CONTEXT_SEPARATOR.join(pieces)
        if template:
            context = render_template(template, context, query)

        return RagContext(context=context, sources=sources, query=query, total_results=len(results))

    # ==========================================================================
    # Maintenance
    # ==========================================================================

    async def delete_memories(
        self,
        owner: str,
        namespace: str | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> int:
        """Delete every record of the owner in a namespace; returns the count."""
        owner = self._require_owner(owner, OperationStage.DELETE)
        namespace = namespace or self.default_namespace

        self._check_cancelled(cancel_event, owner, OperationStage.DELETE)
        deleted = await self._guarded(
            OperationStage.DELETE,
            owner,
            namespace,
            BackendError,
            self.backend.delete,
            owner,
            namespace,
        )
        logger.info("Deleted memories", owner=owner, namespace=namespace, deleted=deleted)
        return deleted

    async def delete_memories_by_source(
        self,
        owner: str,
        source: str,
        namespace: str | None = None,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> int:
        """Delete the owner's records from one source in a namespace."""
        owner = self._require_owner(owner, OperationStage.DELETE)
        if not isinstance(source, str) or not source.strip():
            raise ValidationError(
                "source must be a non-blank string",
                field="source",
                owner=owner,
                stage=OperationStage.DELETE,
            )
        namespace = namespace or self.default_namespace

        self._check_cancelled(cancel_event, owner, OperationStage.DELETE)
        deleted = await self._guarded(
            OperationStage.DELETE,
            owner,
            namespace,
            BackendError,
            self.backend.delete,
            owner,
            namespace,
            source,
        )
        logger.info("Deleted memories by source", owner=owner, namespace=namespace, source=source, deleted=deleted)
        return deleted

    async def get_statistics(self, owner: str, namespace: str | None = None) -> MemoryStatistics:
        owner = self._require_owner(owner, OperationStage.STATISTICS)
        namespace = namespace or self.default_namespace
        return await self._guarded(
            OperationStage.STATISTICS,
            owner,
            namespace,
            BackendError,
            self.backend.statistics,
            owner,
            namespace,
        )

    async def close(self) -> None:
        """Close the backend and, where it has one, the provider client."""
        await self.backend.close()
        close = getattr(self.embedding_provider, "close", None)
        if close is not None:
            await close()


def create_memory_manager(config: Settings | None = None) -> MemoryManager:
    """Wire the configured provider, backend and chunker into a manager."""
    config = config or settings
    provider = create_embedding_provider(config)
    backend = create_backend(provider.get_dimensions(), config)
    return MemoryManager(
        embedding_provider=provider,
        backend=backend,
        chunker=Chunker(config.chunking),
        rag_config=config.rag,
        search_config=config.search,
        default_namespace=config.default_namespace,
    )
