"""Specific error types for the semantic memory engine."""

from .base import (
    ApplicationError,
    ErrorCode,
    ErrorDetails,
    ErrorLevel,
    MemoryErrorDetails,
    OperationStage,
    ServiceErrorDetails,
    ValidationErrorDetails,
)


class MemoryOperationError(ApplicationError):
    """A memory operation failed at a known stage for a known owner."""

    default_code = ErrorCode.PROCESSING_FAILED

    def __init__(
        self,
        message: str,
        owner: str | None = None,
        stage: OperationStage | None = None,
        details: ErrorDetails | None = None,
        code: ErrorCode | None = None,
    ):
        self.owner = owner
        self.stage = stage
        super().__init__(
            message=message,
            code=code or self.default_code,
            level=ErrorLevel.ERROR,
            details=details
            or MemoryErrorDetails(
                source="memory_manager",
                operation=stage.value if stage else "unknown",
                owner=owner,
                stage=stage,
            ),
        )


class ValidationError(MemoryOperationError):
    """Missing or invalid caller input (owner, query, options)."""

    default_code = ErrorCode.INVALID_INPUT

    def __init__(
        self,
        message: str,
        field: str | None = None,
        owner: str | None = None,
        stage: OperationStage | None = None,
    ):
        super().__init__(
            message=message,
            owner=owner,
            stage=stage,
            details=ValidationErrorDetails(
                source="memory_manager",
                operation=stage.value if stage else "validate",
                field=field,
                constraint="must be a non-blank string",
            ),
        )
        self.level = ErrorLevel.WARNING


class EmbeddingProviderError(MemoryOperationError):
    """The embedding call failed or returned malformed/empty data."""

    default_code = ErrorCode.EMBEDDING_FAILED


class BackendError(MemoryOperationError):
    """A storage or search driver call failed."""

    default_code = ErrorCode.BACKEND_QUERY


class OperationCancelledError(MemoryOperationError):
    """The caller signalled cancellation before the next outbound call."""

    default_code = ErrorCode.CANCELLED

    def __init__(self, message: str, owner: str | None = None, stage: OperationStage | None = None):
        super().__init__(message=message, owner=owner, stage=stage)
        self.level = ErrorLevel.INFO


class ConfigurationError(ApplicationError):
    """Missing or unsupported configuration."""

    def __init__(self, message: str, details: ServiceErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.CONFIG_MISSING,
            level=ErrorLevel.ERROR,
            details=details,
        )


class ServiceError(ApplicationError):
    """Error from external service calls."""

    def __init__(self, message: str, details: ServiceErrorDetails | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.SERVICE_UNAVAILABLE,
            level=ErrorLevel.ERROR,
            details=details or ServiceErrorDetails(
                source="service",
                operation="external_call",
                service_name="unknown"
            )
        )
