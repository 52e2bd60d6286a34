"""Logging context utilities for structured logging.

Context is stored in structlog's contextvars so that the
``merge_contextvars`` processor attaches it to every log line emitted
while an operation runs, including lines from nested calls.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog


def get_log_context() -> dict[str, Any]:
    """Get a copy of the current logging context."""
    return dict(structlog.contextvars.get_contextvars())


def set_log_context(context: dict[str, Any]) -> None:
    """Replace the logging context.

    Args:
        context: Dictionary with logging context data
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**context)


def update_log_context(key: str, value: Any) -> None:
    """Update a single key in the logging context.

    Args:
        key: Context key to update
        value: Value to set
    """
    structlog.contextvars.bind_contextvars(**{key: value})


def clear_log_context() -> None:
    """Clear the current logging context."""
    structlog.contextvars.clear_contextvars()


@contextmanager
def bound_log_context(**values: Any) -> Iterator[None]:
    """Bind values for the duration of a block, restoring prior values after.

    None values are skipped so optional identifiers never appear as nulls.
    """
    bound = {key: value for key, value in values.items() if value is not None}
    with structlog.contextvars.bound_contextvars(**bound):
        yield
