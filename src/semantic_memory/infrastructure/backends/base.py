"""Vector backend strategy interface."""

from abc import ABC, abstractmethod

from semantic_memory.domain.models import MemoryRecord, MemoryStatistics, SearchResult


class VectorBackend(ABC):
    """Storage and similarity search for memory records.

    One implementation is chosen when the memory manager is built. Every
    implementation ranks by raw cosine similarity, descending, ties broken by
    record id ascending, keeps results whose similarity is at least the
    threshold and returns at most ``limit`` of them.
    """

    name: str = "backend"

    @abstractmethod
    async def store(self, record: MemoryRecord) -> MemoryRecord:
        """Persist a record.

        At most one record exists per ``(owner, content_hash)``. When another
        writer got there first, the already stored record is returned instead.
        """

    @abstractmethod
    async def find_by_content_hash(self, owner: str, content_hash: str) -> MemoryRecord | None:
        """Existing record for the owner with this content hash, in any namespace."""

    @abstractmethod
    async def search(
        self,
        owner: str,
        namespace: str,
        query_vector: list[float],
        limit: int,
        threshold: float,
    ) -> list[SearchResult]:
        """Nearest records of one owner/namespace."""

    @abstractmethod
    async def delete(self, owner: str, namespace: str, source: str | None = None) -> int:
        """Delete an owner's records in a namespace, optionally only one source.

        Returns the number of records removed.
        """

    @abstractmethod
    async def statistics(self, owner: str, namespace: str) -> MemoryStatistics:
        """Counts for one owner/namespace."""

    async def is_available(self) -> bool:
        """Whether the backing store can currently be reached."""
        return True

    async def ensure_schema(self) -> None:
        """Create indexes or constraints the backend relies on. Idempotent."""

    async def close(self) -> None:
        """Release connections."""
