"""Memory record domain models."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from semantic_memory.domain.models.utils import new_identifier, utc_now


class MemoryRecord(BaseModel):
    """One persisted chunk with its embedding and provenance.

    Records are immutable after creation; deletion is the only mutation.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_identifier)
    owner: str = Field(min_length=1)
    namespace: str = "default"
    content: str = Field(min_length=1)
    metadata: dict[str, Any] = Field(default_factory=dict)
    source: str | None = None
    source_id: str | None = None
    chunk_index: int = Field(default=0, ge=0)
    embedding_vector: list[float]
    embedding_provider: str
    embedding_model: str
    embedding_dimensions: int = Field(gt=0)
    embedding_norm: float = Field(ge=0.0)
    content_hash: str
    token_count: int = Field(ge=0)
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("owner")
    @classmethod
    def _owner_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("owner must not be blank")
        return value

    @model_validator(mode="after")
    def _vector_matches_dimensions(self) -> "MemoryRecord":
        if len(self.embedding_vector) != self.embedding_dimensions:
            raise ValueError(
                f"embedding_vector has {len(self.embedding_vector)} values, "
                f"expected {self.embedding_dimensions}"
            )
        return self

    def to_document(self) -> dict[str, Any]:
        """Plain dict form used by storage drivers."""
        return self.model_dump(mode="json")


class SearchResult(BaseModel):
    """A record returned by a search, with its cosine similarity to the query."""

    model_config = ConfigDict(frozen=True)

    record: MemoryRecord
    similarity: float

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def content(self) -> str:
        return self.record.content

    @property
    def metadata(self) -> dict[str, Any]:
        return self.record.metadata
