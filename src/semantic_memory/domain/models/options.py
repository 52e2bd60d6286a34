"""Typed option structures, one per memory operation.

Every field is named and defaulted. ``None`` means "use the manager's
configured default" (namespace, threshold, RAG settings).
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Options(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class IngestDocumentOptions(_Options):
    """Options for ingesting a whole document."""

    metadata: dict[str, Any] = Field(default_factory=dict)
    namespace: str | None = None
    source: str | None = Field(default=None, description="Defaults to the owner id")
    source_id: str | None = Field(default=None, description="Defaults to a fresh identifier shared by all chunks")


class IngestChunkOptions(_Options):
    """Options for ingesting one chunk."""

    metadata: dict[str, Any] = Field(default_factory=dict)
    namespace: str | None = None
    source: str | None = None
    source_id: str | None = None
    chunk_index: int = Field(default=0, ge=0)


class SearchOptions(_Options):
    """Options for a similarity search."""

    namespace: str | None = None
    limit: int | None = Field(default=None, gt=0)
    similarity_threshold: float | None = Field(default=None, ge=-1.0, le=1.0)


class RagOptions(SearchOptions):
    """Search options plus context assembly overrides."""

    max_context_length: int | None = Field(default=None, gt=0)
    include_metadata: bool | None = None
    context_template: str | None = None
    use_template: bool = Field(default=True, description="False skips template wrapping entirely")
