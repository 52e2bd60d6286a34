"""OpenAI-compatible embedding provider over REST."""

from typing import Any

import httpx

from semantic_memory.core.base import ErrorCode, OperationStage, ServiceErrorDetails
from semantic_memory.core.config import settings
from semantic_memory.core.errors import ConfigurationError, EmbeddingProviderError
from semantic_memory.core.logging import get_logger
from semantic_memory.infrastructure.embeddings.base import RemoteEmbeddingProvider

logger = get_logger(__name__)


class OpenAIEmbeddingProvider(RemoteEmbeddingProvider):
    """Calls ``POST {base_url}/embeddings`` with the whole batch."""

    provider_name = "openai"
    # 8192 tokens for text-embedding-3-*, approximated in characters
    max_input_length = 30000

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        dimensions: int | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        model = model or settings.openai_embedding_model
        super().__init__(
            model=model,
            dimensions=dimensions or settings.dimensions_for(model, 1536),
        )

        api_key = api_key or settings.openai_api_key.get_secret_value()
        if not api_key:
            raise ConfigurationError(
                message="OpenAI API key is required for embedding generation",
                details=ServiceErrorDetails(
                    source="OpenAIEmbeddingProvider",
                    operation="initialization",
                    service_name="OpenAI",
                ),
            )

        self.base_url = (base_url or settings.openai_base_url).rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout or settings.embedding_timeout)
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    async def _embed_remote(self, texts: list[str]) -> list[Any]:
        response = await self.client.post(
            f"{self.base_url}/embeddings",
            headers=self._headers,
            json={"model": self.model, "input": texts, "encoding_format": "float"},
        )
        response.raise_for_status()
        data = response.json()

        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise EmbeddingProviderError(
                message="Invalid response format from OpenAI embedding API",
                stage=OperationStage.EMBED,
                code=ErrorCode.EMBEDDING_MALFORMED,
                details=self._details("embed", status_code=response.status_code),
            )

        usage = data.get("usage") or {}
        if usage:
            logger.debug(
                "OpenAI embedding usage",
                model=self.model,
                prompt_tokens=usage.get("prompt_tokens", 0),
                total_tokens=usage.get("total_tokens", 0),
            )

        # Items carry their input position; don't trust response order
        ordered = sorted(items, key=lambda item: item.get("index", 0))
        return [item.get("embedding") for item in ordered]

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
