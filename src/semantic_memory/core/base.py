"""Base error classes and enums"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any

from logfire.integrations.pydantic import PluginSettings
from pydantic import BaseModel, Field, field_serializer


class ErrorLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_logging_level(self) -> int:
        """Convert ErrorLevel to logging level"""
        return {
            ErrorLevel.DEBUG: logging.DEBUG,
            ErrorLevel.INFO: logging.INFO,
            ErrorLevel.WARNING: logging.WARNING,
            ErrorLevel.ERROR: logging.ERROR,
            ErrorLevel.CRITICAL: logging.CRITICAL,
        }[self]


class ErrorCode(str, Enum):
    """Error codes for the semantic memory engine."""

    # General Errors (1xxx)
    UNKNOWN = "1000"
    INVALID_INPUT = "1002"
    PROCESSING_FAILED = "1004"
    CONFIG_INVALID = "1005"
    CONFIG_MISSING = "1006"
    CANCELLED = "1008"

    # Chunking Errors (2xxx)
    CHUNKING_FAILED = "2001"

    # Backend Errors (3xxx)
    BACKEND_UNAVAILABLE = "3001"
    BACKEND_QUERY = "3002"
    BACKEND_WRITE = "3003"

    # Embedding Errors (4xxx)
    EMBEDDING_FAILED = "4003"
    EMBEDDING_MALFORMED = "4004"

    # Infrastructure Errors (5xxx)
    SERVICE_UNAVAILABLE = "5002"


class OperationStage(str, Enum):
    """Stage of a memory operation in which a failure occurred."""

    CHUNK = "chunk"
    EMBED = "embed"
    STORE = "store"
    SEARCH = "search"
    DELETE = "delete"
    STATISTICS = "statistics"


class ErrorDetails(BaseModel, plugin_settings=PluginSettings(logfire={"record": "all"})):
    """Base model for structured error details"""

    source: str = Field(description="Component or module where the error occurred")
    operation: str = Field(description="Operation being performed when the error occurred")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(), description="When the error occurred")

    @field_serializer("timestamp")
    def serialize_timestamp(self, timestamp: datetime) -> str:
        return timestamp.isoformat()


class ValidationErrorDetails(ErrorDetails):
    """Details for validation-related errors"""

    field: str | None = Field(None, description="Field that failed validation")
    actual_value: Any = Field(None, description="Value that failed validation")
    constraint: str | None = Field(None, description="Constraint that was violated")


class ServiceErrorDetails(ErrorDetails):
    """Details for service-related errors"""

    service_name: str = Field(description="Name of the service that failed")
    endpoint: str | None = Field(None, description="Service endpoint that was called")
    status_code: int | None = Field(None, description="HTTP or service status code")


class MemoryErrorDetails(ErrorDetails):
    """Details for failures inside a memory operation"""

    owner: str | None = Field(None, description="Memory owner the operation ran for")
    stage: OperationStage | None = Field(None, description="Stage that failed (chunk, embed, store, search)")
    namespace: str | None = Field(None, description="Namespace the operation targeted")
    cause: str | None = Field(None, description="Message of the underlying collaborator error")


class ApplicationError(Exception):
    """Base class for all application errors"""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        level: ErrorLevel = ErrorLevel.ERROR,
        details: ErrorDetails | dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.level = level

        if details is None:
            self.details = ErrorDetails(source="unknown", operation="unknown")
        elif isinstance(details, dict):
            details = dict(details)
            source = details.pop("source", "unknown")
            operation = details.pop("operation", "unknown")
            self.details = ErrorDetails(source=source, operation=operation, **details)
        else:
            self.details = details

        super().__init__(message)
