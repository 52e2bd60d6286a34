"""Service layer interfaces and implementations."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Protocol for embedding providers.

    ``embed`` returns one vector per input text, in input order.
    """

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for the given texts."""
        ...

    def get_provider_name(self) -> str:
        """Short provider identifier, e.g. ``voyage``."""
        ...

    def get_model(self) -> str:
        """Model used to generate the vectors."""
        ...

    def get_dimensions(self) -> int:
        """Length of every vector this provider returns."""
        ...


__all__ = ["EmbeddingProvider"]
