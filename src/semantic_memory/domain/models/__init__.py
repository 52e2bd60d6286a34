"""Domain models for the semantic memory engine."""

from .memory import MemoryRecord, SearchResult
from .options import (
    IngestChunkOptions,
    IngestDocumentOptions,
    RagOptions,
    SearchOptions,
)
from .results import MemoryStatistics, RagContext, RagSource

__all__ = [
    # Options
    "IngestChunkOptions",
    "IngestDocumentOptions",
    # Records
    "MemoryRecord",
    # Results
    "MemoryStatistics",
    "RagContext",
    "RagOptions",
    "RagSource",
    "SearchOptions",
    "SearchResult",
]
