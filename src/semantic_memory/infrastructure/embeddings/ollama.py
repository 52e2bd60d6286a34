"""Ollama embedding provider for locally hosted models."""

from typing import Any

import httpx

from semantic_memory.core.base import ErrorCode, OperationStage
from semantic_memory.core.config import settings
from semantic_memory.core.errors import EmbeddingProviderError
from semantic_memory.core.logging import get_logger
from semantic_memory.infrastructure.embeddings.base import RemoteEmbeddingProvider

logger = get_logger(__name__)


class OllamaEmbeddingProvider(RemoteEmbeddingProvider):
    """Calls ``POST {url}/api/embeddings`` once per text.

    No API key; the server is expected to have the model pulled.
    """

    provider_name = "ollama"
    max_input_length = 8000

    def __init__(
        self,
        model: str | None = None,
        dimensions: int | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        model = model or settings.ollama_embedding_model
        super().__init__(
            model=model,
            dimensions=dimensions or settings.dimensions_for(model, 768),
        )
        self.base_url = (base_url or settings.ollama_url).rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout or settings.embedding_timeout)

    async def _embed_remote(self, texts: list[str]) -> list[Any]:
        vectors: list[Any] = []
        for text in texts:
            response = await self.client.post(
                f"{self.base_url}/api/embeddings",
                json={"model": self.model, "prompt": text},
            )
            response.raise_for_status()
            data = response.json()

            embedding = data.get("embedding") if isinstance(data, dict) else None
            if not isinstance(embedding, list):
                raise EmbeddingProviderError(
                    message="Invalid response format from Ollama embedding API",
                    stage=OperationStage.EMBED,
                    code=ErrorCode.EMBEDDING_MALFORMED,
                    details=self._details("embed", status_code=response.status_code),
                )
            vectors.append(embedding)
        return vectors

    async def is_available(self) -> bool:
        """Whether the Ollama server answers and has the configured model."""
        try:
            response = await self.client.get(f"{self.base_url}/api/tags", timeout=5.0)
            response.raise_for_status()
            models = response.json().get("models") or []
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Ollama availability check failed: {e!s}", url=self.base_url)
            return False

        return any(self.model in str(entry.get("name", "")) for entry in models)

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
