"""
Shared fixtures for the semantic memory test suite.

Everything runs without external services: embeddings come from a
deterministic fake provider and storage from the in-memory record store.
"""

import asyncio
import hashlib

import pytest

from semantic_memory.core.config import ChunkingConfig, RagConfig, SearchConfig
from semantic_memory.domain.models import MemoryRecord
from semantic_memory.domain.models.utils import estimate_token_count, generate_content_hash
from semantic_memory.domain.similarity import vector_norm
from semantic_memory.infrastructure.backends import InMemoryRecordStore, InProcessVectorBackend
from semantic_memory.services.chunker import Chunker
from semantic_memory.services.memory_manager import MemoryManager

DIMENSIONS = 8


# ---------------------------------------------------------------------------
# Fake embedding provider
# ---------------------------------------------------------------------------

class FakeEmbeddingProvider:
    """Deterministic embedding provider that records every call.

    Texts listed in ``vectors`` get that exact vector; anything else gets a
    vector derived from its sha256 digest.
    """

    def __init__(self, dimensions: int = DIMENSIONS, vectors: dict[str, list[float]] | None = None):
        self.dimensions = dimensions
        self.vectors = dict(vectors or {})
        self.calls: list[list[str]] = []
        self.fail_with: Exception | None = None
        self.malformed = False
        # Seconds to sleep inside embed, to interleave concurrent calls
        self.delay = 0.0

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def vector_for(self, text: str) -> list[float]:
        if text in self.vectors:
            return list(self.vectors[text])
        digest = hashlib.sha256(text.encode()).digest()
        return [(byte / 255.0) - 0.5 for byte in digest[: self.dimensions]]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        if self.malformed:
            return [[0.1] * (self.dimensions - 1) for _ in texts]
        return [self.vector_for(text) for text in texts]

    def get_provider_name(self) -> str:
        return "fake"

    def get_model(self) -> str:
        return "fake-embedding-v1"

    def get_dimensions(self) -> int:
        return self.dimensions


def unit(index: int, dimensions: int = DIMENSIONS) -> list[float]:
    """One-hot vector."""
    vector = [0.0] * dimensions
    vector[index] = 1.0
    return vector


def blend(similarity: float, dimensions: int = DIMENSIONS) -> list[float]:
    """Unit vector whose cosine similarity with ``unit(0)`` is ``similarity``."""
    vector = [0.0] * dimensions
    vector[0] = similarity
    vector[1] = (1.0 - similarity**2) ** 0.5
    return vector


def make_record(
    content: str,
    vector: list[float],
    owner: str = "agent-1",
    namespace: str = "default",
    source: str | None = None,
    **fields,
) -> MemoryRecord:
    """Record as the manager would build it for ``content``."""
    return MemoryRecord(
        owner=owner,
        namespace=namespace,
        content=content,
        source=source,
        embedding_vector=vector,
        embedding_provider=fields.pop("embedding_provider", "fake"),
        embedding_model=fields.pop("embedding_model", "fake-embedding-v1"),
        embedding_dimensions=len(vector),
        embedding_norm=vector_norm(vector),
        content_hash=generate_content_hash(owner, content),
        token_count=estimate_token_count(content),
        **fields,
    )


# ---------------------------------------------------------------------------
# Manager fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def provider():
    return FakeEmbeddingProvider()


@pytest.fixture
def backend():
    return InProcessVectorBackend(InMemoryRecordStore())


@pytest.fixture
def chunker():
    return Chunker(ChunkingConfig(strategy="sentence", chunk_size=1000, overlap=200))


@pytest.fixture
def manager(provider, backend, chunker):
    return MemoryManager(
        embedding_provider=provider,
        backend=backend,
        chunker=chunker,
        rag_config=RagConfig(),
        search_config=SearchConfig(),
        default_namespace="default",
    )
