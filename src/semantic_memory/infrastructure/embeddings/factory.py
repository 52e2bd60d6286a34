"""Construction of the configured embedding provider.

Providers are built once and injected into the memory manager rather than
looked up globally.
"""

from __future__ import annotations

from semantic_memory.core.base import ServiceErrorDetails
from semantic_memory.core.config import Settings, settings
from semantic_memory.core.decorators import with_error_handling
from semantic_memory.core.errors import ConfigurationError
from semantic_memory.core.logging import get_logger
from semantic_memory.infrastructure.embeddings.ollama import OllamaEmbeddingProvider
from semantic_memory.infrastructure.embeddings.openai import OpenAIEmbeddingProvider
from semantic_memory.infrastructure.embeddings.voyage import VoyageEmbeddingProvider
from semantic_memory.services import EmbeddingProvider

logger = get_logger(__name__)

SUPPORTED_PROVIDERS = ("voyage", "openai", "ollama")


class EmbeddingProviderBuilder:
    """Builder for configured embedding provider instances."""

    def __init__(self, config: Settings | None = None):
        self.config = config or settings
        self._provider: str = self.config.embedding_provider
        self._api_key: str | None = None
        self._model: str | None = None
        self._dimensions: int | None = None

    def with_provider(self, provider: str) -> EmbeddingProviderBuilder:
        self._provider = provider
        return self

    def with_api_key(self, api_key: str) -> EmbeddingProviderBuilder:
        self._api_key = api_key
        return self

    def with_model(self, model: str) -> EmbeddingProviderBuilder:
        self._model = model
        return self

    def with_dimensions(self, dimensions: int) -> EmbeddingProviderBuilder:
        self._dimensions = dimensions
        return self

    @with_error_handling(reraise=True)
    def build(self) -> EmbeddingProvider:
        """Build the configured provider.

        Raises:
            ConfigurationError: If the provider is unknown, a required key is
                missing or the provider reports no dimensions
        """
        if self._provider == "voyage":
            model = self._model or self.config.voyage_model
            provider: EmbeddingProvider = VoyageEmbeddingProvider(
                api_key=self._api_key or self.config.voyage_api_key.get_secret_value(),
                model=model,
                dimensions=self._dimensions or self.config.dimensions_for(model, 1024),
            )
        elif self._provider == "openai":
            model = self._model or self.config.openai_embedding_model
            provider = OpenAIEmbeddingProvider(
                api_key=self._api_key or self.config.openai_api_key.get_secret_value(),
                model=model,
                dimensions=self._dimensions or self.config.dimensions_for(model, 1536),
                base_url=self.config.openai_base_url,
                timeout=self.config.embedding_timeout,
            )
        elif self._provider == "ollama":
            model = self._model or self.config.ollama_embedding_model
            provider = OllamaEmbeddingProvider(
                model=model,
                dimensions=self._dimensions or self.config.dimensions_for(model, 768),
                base_url=self.config.ollama_url,
                timeout=self.config.embedding_timeout,
            )
        else:
            raise ConfigurationError(
                message=(
                    f"Unsupported embedding provider: {self._provider} "
                    f"(expected one of {', '.join(SUPPORTED_PROVIDERS)})"
                ),
                details=ServiceErrorDetails(
                    source="embedding_builder",
                    operation="build",
                    service_name=self._provider,
                ),
            )

        validate_embedding_provider(provider)
        logger.info(
            f"Created {provider.get_provider_name()} embedding provider",
            model=provider.get_model(),
            dimensions=provider.get_dimensions(),
        )
        return provider


def create_embedding_provider(config: Settings | None = None) -> EmbeddingProvider:
    """Build the embedding provider named by ``config.embedding_provider``."""
    return EmbeddingProviderBuilder(config).build()


def validate_embedding_provider(provider: EmbeddingProvider) -> None:
    """Reject providers that do not satisfy the protocol or report no dimensions.

    Raises:
        ConfigurationError: If validation fails
    """
    if not isinstance(provider, EmbeddingProvider):
        raise ConfigurationError(
            message=f"{type(provider).__name__} does not implement EmbeddingProvider",
            details=ServiceErrorDetails(
                source="embedding_validation",
                operation="validate",
                service_name=type(provider).__name__,
            ),
        )

    dimensions = provider.get_dimensions()
    if dimensions <= 0:
        raise ConfigurationError(
            message=f"Invalid embedding dimensions: {dimensions}",
            details=ServiceErrorDetails(
                source="embedding_validation",
                operation="validate",
                service_name=provider.get_provider_name(),
                endpoint="get_dimensions",
            ),
        )

    logger.debug(f"Embedding provider validation passed: {dimensions} dimensions")
