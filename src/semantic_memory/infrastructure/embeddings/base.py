"""Shared behaviour for remote embedding providers."""

import math
from abc import ABC, abstractmethod
from typing import Any

from semantic_memory.core.base import ErrorCode, ErrorLevel, OperationStage, ServiceErrorDetails
from semantic_memory.core.circuit_breaker import CircuitBreaker
from semantic_memory.core.decorators import with_error_handling
from semantic_memory.core.errors import EmbeddingProviderError, ServiceError
from semantic_memory.core.logging import get_logger

logger = get_logger(__name__)


class RemoteEmbeddingProvider(ABC):
    """Base class for providers that call a remote embedding API.

    Subclasses implement ``_embed_remote``; this class validates inputs and
    outputs, guards the call with a circuit breaker and maps every failure
    to ``EmbeddingProviderError``. Nothing is retried.
    """

    provider_name: str = "remote"
    max_input_length: int = 8000

    def __init__(
        self,
        model: str,
        dimensions: int,
        failure_threshold: int = 3,
        recovery_timeout: float = 30.0,
    ) -> None:
        if dimensions <= 0:
            raise EmbeddingProviderError(
                message=f"Embedding dimensions must be positive, got {dimensions}",
                stage=OperationStage.EMBED,
                code=ErrorCode.CONFIG_INVALID,
            )
        self.model = model
        self.dimensions = dimensions
        self._circuit_breaker = CircuitBreaker(
            name=f"{self.provider_name}_api",
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            expected_exception_types=(Exception,),
        )

    def get_provider_name(self) -> str:
        return self.provider_name

    def get_model(self) -> str:
        return self.model

    def get_dimensions(self) -> int:
        return self.dimensions

    @abstractmethod
    async def _embed_remote(self, texts: list[str]) -> list[Any]:
        """Call the remote API and return its raw vectors, one per text."""

    def _details(self, operation: str, status_code: int | None = None) -> ServiceErrorDetails:
        return ServiceErrorDetails(
            source=f"{self.provider_name}_embedding",
            operation=operation,
            service_name=self.provider_name,
            status_code=status_code,
        )

    def _validate_inputs(self, texts: list[str]) -> None:
        for index, text in enumerate(texts):
            if not text.strip():
                raise EmbeddingProviderError(
                    message=f"Cannot embed empty text at position {index}",
                    stage=OperationStage.EMBED,
                    code=ErrorCode.INVALID_INPUT,
                    details=self._details("validate_input"),
                )
            if len(text) > self.max_input_length:
                raise EmbeddingProviderError(
                    message=f"Input text exceeds maximum length of {self.max_input_length} characters",
                    stage=OperationStage.EMBED,
                    code=ErrorCode.INVALID_INPUT,
                    details=self._details("validate_input"),
                )

    def _validate_vectors(self, raw: list[Any], expected: int) -> list[list[float]]:
        if len(raw) != expected:
            raise EmbeddingProviderError(
                message=f"{self.provider_name} returned {len(raw)} embeddings for {expected} texts",
                stage=OperationStage.EMBED,
                code=ErrorCode.EMBEDDING_MALFORMED,
                details=self._details("validate_output", status_code=200),
            )

        vectors: list[list[float]] = []
        for vector in raw:
            if not isinstance(vector, list | tuple) or len(vector) != self.dimensions:
                size = len(vector) if isinstance(vector, list | tuple) else 0
                raise EmbeddingProviderError(
                    message=f"{self.provider_name} returned a vector of length {size}, expected {self.dimensions}",
                    stage=OperationStage.EMBED,
                    code=ErrorCode.EMBEDDING_MALFORMED,
                    details=self._details("validate_output", status_code=200),
                )
            try:
                values = [float(value) for value in vector]
            except (TypeError, ValueError) as e:
                raise EmbeddingProviderError(
                    message=f"{self.provider_name} returned non-numeric embedding values",
                    stage=OperationStage.EMBED,
                    code=ErrorCode.EMBEDDING_MALFORMED,
                    details=self._details("validate_output", status_code=200),
                ) from e
            if not all(math.isfinite(value) for value in values):
                raise EmbeddingProviderError(
                    message=f"{self.provider_name} returned non-finite embedding values",
                    stage=OperationStage.EMBED,
                    code=ErrorCode.EMBEDDING_MALFORMED,
                    details=self._details("validate_output", status_code=200),
                )
            vectors.append(values)
        return vectors

    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch of texts, one vector per text in input order.

        Raises:
            EmbeddingProviderError: If the input is invalid, the call fails,
                the circuit is open or the response is malformed
        """
        if not texts:
            return []

        self._validate_inputs(texts)

        try:
            raw = await self._circuit_breaker.call_async(self._embed_remote, texts)
        except EmbeddingProviderError:
            raise
        except ServiceError as e:
            raise EmbeddingProviderError(
                message=e.message,
                stage=OperationStage.EMBED,
                code=ErrorCode.SERVICE_UNAVAILABLE,
                details=self._details("embed", status_code=503),
            ) from e
        except Exception as e:
            raise EmbeddingProviderError(
                message=f"Failed to generate {self.provider_name} embeddings: {e!s}",
                stage=OperationStage.EMBED,
                details=self._details("embed"),
            ) from e

        vectors = self._validate_vectors(raw, len(texts))
        logger.debug(
            "Generated embeddings",
            provider=self.provider_name,
            model=self.model,
            count=len(vectors),
        )
        return vectors

    async def close(self) -> None:
        """Release any client resources."""
