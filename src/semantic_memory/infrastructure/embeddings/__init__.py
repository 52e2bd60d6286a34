"""Embedding provider implementations."""

from .base import RemoteEmbeddingProvider
from .factory import (
    EmbeddingProviderBuilder,
    create_embedding_provider,
    validate_embedding_provider,
)
from .ollama import OllamaEmbeddingProvider
from .openai import OpenAIEmbeddingProvider
from .voyage import VoyageEmbeddingProvider

__all__ = [
    "EmbeddingProviderBuilder",
    "OllamaEmbeddingProvider",
    "OpenAIEmbeddingProvider",
    "RemoteEmbeddingProvider",
    "VoyageEmbeddingProvider",
    "create_embedding_provider",
    "validate_embedding_provider",
]
