"""Voyage AI embedding provider."""

from typing import Any

import voyageai

from semantic_memory.core.base import ServiceErrorDetails
from semantic_memory.core.config import settings
from semantic_memory.core.errors import ConfigurationError
from semantic_memory.core.logging import get_logger
from semantic_memory.infrastructure.embeddings.base import RemoteEmbeddingProvider

logger = get_logger(__name__)


class VoyageEmbeddingProvider(RemoteEmbeddingProvider):
    """Voyage AI embedding provider.

    Uses ``voyageai.AsyncClient``; batches are sent in a single request.
    """

    provider_name = "voyage"
    # voyage-3 models accept 32k tokens; stay well under in characters
    max_input_length = 30000

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        dimensions: int | None = None,
        client: Any | None = None,
    ) -> None:
        """Initialize the Voyage embedding provider.

        Args:
            api_key: Optional key override (defaults to settings.voyage_api_key)
            model: Optional model override (defaults to settings.voyage_model)
            dimensions: Optional vector size override
            client: Pre-built client, mainly for tests

        Raises:
            ConfigurationError: If no API key is configured and no client given
        """
        model = model or settings.voyage_model
        super().__init__(
            model=model,
            dimensions=dimensions or settings.dimensions_for(model, 1024),
        )

        if client is None:
            api_key = api_key or settings.voyage_api_key.get_secret_value()
            if not api_key:
                raise ConfigurationError(
                    message="Voyage API key not found in settings",
                    details=ServiceErrorDetails(
                        source="VoyageEmbeddingProvider",
                        operation="initialization",
                        service_name="Voyage AI",
                    ),
                )
            client = voyageai.AsyncClient(api_key=api_key)

        # voyageai client doesn't expose a public type
        self.client: Any = client

    async def _embed_remote(self, texts: list[str]) -> list[Any]:
        response = await self.client.embed(texts=texts, model=self.model)
        return list(getattr(response, "embeddings", None) or [])
