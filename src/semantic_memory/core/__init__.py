"""Errors, configuration, logging and resilience helpers shared by every layer."""

from .base import (
    ErrorCode,
    ErrorLevel,
    OperationStage,
    ServiceErrorDetails,
)
from .circuit_breaker import CircuitBreaker, CircuitState
from .errors import (
    BackendError,
    ConfigurationError,
    EmbeddingProviderError,
    MemoryOperationError,
    OperationCancelledError,
    ServiceError,
    ValidationError,
)
