"""Result models returned by the memory manager."""

from datetime import datetime

from pydantic import BaseModel, Field


class RagSource(BaseModel):
    """Citation entry for one result packed into a RAG context."""

    id: str
    source: str | None = None
    source_id: str | None = None
    similarity: float
    created_at: datetime


class RagContext(BaseModel):
    """Assembled retrieval-augmented context."""

    context: str = ""
    sources: list[RagSource] = Field(default_factory=list)
    query: str
    total_results: int = 0


class MemoryStatistics(BaseModel):
    """Counts for one owner/namespace."""

    total_memories: int = 0
    total_tokens: int = 0
    providers: dict[str, int] = Field(default_factory=dict)
    sources: dict[str, int] = Field(default_factory=dict)
