"""Meilisearch vector backend over the REST API.

All records live in one index keyed by ``doc_key`` (the content hash, which
already includes the owner), so a duplicate write collapses onto the same
document. Vectors are user-provided; the engine's ranking picks candidates
and exact cosine from the stored vector decides the final similarity.
"""

import asyncio
from collections import Counter
from typing import Any

import httpx

from semantic_memory.core.base import ErrorCode, ErrorLevel, MemoryErrorDetails, OperationStage
from semantic_memory.core.config import settings
from semantic_memory.core.decorators import with_error_handling
from semantic_memory.core.errors import BackendError
from semantic_memory.core.logging import get_logger
from semantic_memory.domain.models import MemoryRecord, MemoryStatistics, SearchResult
from semantic_memory.domain.similarity import cosine_similarity, order_results
from semantic_memory.infrastructure.backends.base import VectorBackend

logger = get_logger(__name__)

PRIMARY_KEY = "doc_key"
FETCH_PAGE_SIZE = 1000
TASK_POLL_INTERVAL = 0.05
# Extra engine candidates so exact rescoring can settle ties at the cut
CANDIDATE_SLACK = 10

FILTERABLE_ATTRIBUTES = ["owner", "namespace", "source", "content_hash", "embedding_dimensions"]
_ENGINE_FIELDS = (PRIMARY_KEY, "_vectors", "_rankingScore")


def filter_value(value: str | int) -> str:
    """Quote a value for a Meilisearch filter expression."""
    if isinstance(value, int):
        return str(value)
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_filter(**conditions: str | int | None) -> str:
    """``AND`` of equality conditions; ``None`` values are left out."""
    return " AND ".join(
        f"{field} = {filter_value(value)}" for field, value in conditions.items() if value is not None
    )


class MeilisearchVectorBackend(VectorBackend):
    """Vector memories in a single Meilisearch index."""

    name = "meilisearch"

    def __init__(
        self,
        dimensions: int,
        host: str | None = None,
        api_key: str | None = None,
        index_prefix: str | None = None,
        embedder: str | None = None,
        task_timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.dimensions = dimensions
        self.host = (host or settings.meilisearch_host).rstrip("/")
        self.index_uid = f"{index_prefix if index_prefix is not None else settings.meilisearch_index_prefix}memories"
        self.embedder = embedder or settings.meilisearch_embedder
        self.task_timeout = task_timeout or settings.meilisearch_task_timeout

        if api_key is None and settings.meilisearch_api_key is not None:
            api_key = settings.meilisearch_api_key.get_secret_value()
        self._headers = {"Content-Type": "application/json"}
        if api_key:
            self._headers["Authorization"] = f"Bearer {api_key}"

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=30.0)
        self._index_ready = False
        self._index_lock = asyncio.Lock()

    def _url(self, path: str) -> str:
        return f"{self.host}{path}"

    def _error(self, message: str, stage: OperationStage, owner: str | None, cause: Exception | None = None) -> BackendError:
        return BackendError(
            message=message,
            owner=owner,
            stage=stage,
            code=ErrorCode.BACKEND_WRITE if stage is OperationStage.STORE else ErrorCode.BACKEND_QUERY,
            details=MemoryErrorDetails(
                source="meilisearch_backend",
                operation=stage.value,
                owner=owner,
                stage=stage,
                cause=str(cause) if cause else None,
            ),
        )

    async def _request(
        self,
        method: str,
        path: str,
        stage: OperationStage,
        owner: str | None = None,
        json: Any = None,
        allow_missing: bool = False,
    ) -> dict[str, Any] | None:
        """Send one request; a 404 yields ``None`` when ``allow_missing``."""
        try:
            response = await self.client.request(method, self._url(path), headers=self._headers, json=json)
        except httpx.HTTPError as e:
            raise self._error(f"Meilisearch request failed: {e!s}", stage, owner, e) from e

        if response.status_code == 404 and allow_missing:
            return None
        if response.is_error:
            raise self._error(
                f"Meilisearch API error: {response.status_code} - {response.text}",
                stage,
                owner,
            )
        return response.json() if response.content else {}

    async def _wait_for_task(self, task: dict[str, Any] | None, stage: OperationStage, owner: str | None = None) -> dict[str, Any]:
        """Poll an enqueued task until it finishes; failed tasks raise."""
        task_uid = (task or {}).get("taskUid")
        if task_uid is None:
            raise self._error("Meilisearch did not return a task id", stage, owner)

        try:
            async with asyncio.timeout(self.task_timeout):
                while True:
                    status = await self._request("GET", f"/tasks/{task_uid}", stage, owner) or {}
                    if status.get("status") == "succeeded":
                        return status
                    if status.get("status") in ("failed", "canceled"):
                        error = status.get("error") or {}
                        raise self._error(
                            f"Meilisearch task {task_uid} {status.get('status')}: {error.get('message', 'unknown error')}",
                            stage,
                            owner,
                        )
                    await asyncio.sleep(TASK_POLL_INTERVAL)
        except TimeoutError as e:
            raise self._error(
                f"Meilisearch task {task_uid} did not finish within {self.task_timeout}s",
                stage,
                owner,
                e,
            ) from e

    async def _ensure_index(self, stage: OperationStage, owner: str | None = None) -> None:
        if self._index_ready:
            return
        async with self._index_lock:
            if self._index_ready:
                return

            existing = await self._request("GET", f"/indexes/{self.index_uid}", stage, owner, allow_missing=True)
            if existing is None:
                task = await self._request(
                    "POST",
                    "/indexes",
                    stage,
                    owner,
                    json={"uid": self.index_uid, "primaryKey": PRIMARY_KEY},
                )
                await self._wait_for_task(task, stage, owner)

            task = await self._request(
                "PATCH",
                f"/indexes/{self.index_uid}/settings",
                stage,
                owner,
                json={
                    "searchableAttributes": ["content"],
                    "filterableAttributes": FILTERABLE_ATTRIBUTES,
                    "sortableAttributes": ["created_at"],
                    "embedders": {
                        self.embedder: {"source": "userProvided", "dimensions": self.dimensions},
                    },
                },
            )
            await self._wait_for_task(task, stage, owner)
            self._index_ready = True
            logger.info("Configured Meilisearch index", index=self.index_uid, dimensions=self.dimensions)

    def _to_document(self, record: MemoryRecord) -> dict[str, Any]:
        document = record.to_document()
        document[PRIMARY_KEY] = record.content_hash
        document["_vectors"] = {self.embedder: record.embedding_vector}
        return document

    @staticmethod
    def _to_record(document: dict[str, Any]) -> MemoryRecord:
        data = {key: value for key, value in document.items() if key not in _ENGINE_FIELDS}
        return MemoryRecord.model_validate(data)

    async def ensure_schema(self) -> None:
        await self._ensure_index(OperationStage.STORE)

    async def _get_document(self, content_hash: str, stage: OperationStage, owner: str) -> MemoryRecord | None:
        document = await self._request(
            "GET",
            f"/indexes/{self.index_uid}/documents/{content_hash}",
            stage,
            owner,
            allow_missing=True,
        )
        if not document or document.get("owner") != owner:
            return None
        return self._to_record(document)

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def store(self, record: MemoryRecord) -> MemoryRecord:
        await self._ensure_index(OperationStage.STORE, record.owner)

        existing = await self._get_document(record.content_hash, OperationStage.STORE, record.owner)
        if existing is not None:
            return existing

        task = await self._request(
            "POST",
            f"/indexes/{self.index_uid}/documents",
            OperationStage.STORE,
            record.owner,
            json=[self._to_document(record)],
        )
        await self._wait_for_task(task, OperationStage.STORE, record.owner)

        # A concurrent writer of the same hash may have replaced our document
        stored = await self._get_document(record.content_hash, OperationStage.STORE, record.owner)
        logger.debug("Stored document in Meilisearch", index=self.index_uid, document_id=record.id)
        return stored or record

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def find_by_content_hash(self, owner: str, content_hash: str) -> MemoryRecord | None:
        await self._ensure_index(OperationStage.STORE, owner)
        return await self._get_document(content_hash, OperationStage.STORE, owner)

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def search(
        self,
        owner: str,
        namespace: str,
        query_vector: list[float],
        limit: int,
        threshold: float,
    ) -> list[SearchResult]:
        await self._ensure_index(OperationStage.SEARCH, owner)

        response = await self._request(
            "POST",
            f"/indexes/{self.index_uid}/search",
            OperationStage.SEARCH,
            owner,
            json={
                "vector": query_vector,
                "hybrid": {"embedder": self.embedder, "semanticRatio": 1.0},
                "limit": limit + CANDIDATE_SLACK,
                "filter": build_filter(
                    owner=owner,
                    namespace=namespace,
                    embedding_dimensions=len(query_vector),
                ),
                "showRankingScore": True,
            },
        ) or {}

        results: list[SearchResult] = []
        for hit in response.get("hits", []):
            record = self._to_record(hit)
            similarity = cosine_similarity(
                record.embedding_vector,
                query_vector,
                norm_a=record.embedding_norm,
            )
            if similarity >= threshold:
                results.append(SearchResult(record=record, similarity=similarity))

        ranked = order_results(results, limit)
        logger.debug(
            "Meilisearch vector search completed",
            index=self.index_uid,
            candidates=len(response.get("hits", [])),
            results=len(ranked),
        )
        return ranked

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def delete(self, owner: str, namespace: str, source: str | None = None) -> int:
        await self._ensure_index(OperationStage.DELETE, owner)

        task = await self._request(
            "POST",
            f"/indexes/{self.index_uid}/documents/delete",
            OperationStage.DELETE,
            owner,
            json={"filter": build_filter(owner=owner, namespace=namespace, source=source)},
        )
        finished = await self._wait_for_task(task, OperationStage.DELETE, owner)
        return int((finished.get("details") or {}).get("deletedDocuments") or 0)

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def statistics(self, owner: str, namespace: str) -> MemoryStatistics:
        await self._ensure_index(OperationStage.STATISTICS, owner)

        providers: Counter[str] = Counter()
        sources: Counter[str] = Counter()
        total_memories = 0
        total_tokens = 0
        offset = 0

        while True:
            page = await self._request(
                "POST",
                f"/indexes/{self.index_uid}/documents/fetch",
                OperationStage.STATISTICS,
                owner,
                json={
                    "filter": build_filter(owner=owner, namespace=namespace),
                    "fields": ["embedding_provider", "source", "token_count"],
                    "offset": offset,
                    "limit": FETCH_PAGE_SIZE,
                },
            ) or {}
            documents = page.get("results", [])
            for document in documents:
                total_memories += 1
                total_tokens += int(document.get("token_count") or 0)
                providers[document.get("embedding_provider") or "unknown"] += 1
                if document.get("source"):
                    sources[document["source"]] += 1

            offset += len(documents)
            if not documents or offset >= int(page.get("total", 0)):
                break

        return MemoryStatistics(
            total_memories=total_memories,
            total_tokens=total_tokens,
            providers=dict(providers),
            sources=dict(sources),
        )

    async def is_available(self) -> bool:
        try:
            response = await self.client.get(self._url("/health"), headers=self._headers)
        except httpx.HTTPError as e:
            logger.warning(f"Meilisearch unavailable: {e!s}", host=self.host)
            return False
        return response.status_code == 200

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
