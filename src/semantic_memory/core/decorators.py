"""Error handling and session decorators"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, ParamSpec, Protocol, TypeVar, cast

from .base import ApplicationError, ErrorLevel
from .error_context import ErrorContext, ErrorContextManager
from .logging import get_logger

logger = get_logger(__name__)
P = ParamSpec("P")
T = TypeVar("T")


class ErrorHandlerProtocol(Protocol):
    """Protocol for custom error handlers"""

    def handle(
        self,
        error: Exception,
        level: ErrorLevel,
        context: dict[str, Any],
    ) -> None: ...


def _report(
    func_name: str,
    error: Exception,
    ctx: ErrorContext,
    fallback_level: ErrorLevel,
    error_handler: ErrorHandlerProtocol | None,
) -> None:
    level = error.level if isinstance(error, ApplicationError) else fallback_level
    error_context: dict[str, Any] = {
        "function": func_name,
        "error_context": ctx.to_dict(),
    }
    if error_handler:
        error_handler.handle(error, level, error_context)
    else:
        logger.log(
            level.to_logging_level(),
            f"Error in {func_name}: {error!s}",
            extra=error_context,
            exc_info=True,
        )


def with_error_handling(
    error_level: ErrorLevel = ErrorLevel.ERROR,
    reraise: bool = True,
    error_handler: ErrorHandlerProtocol | None = None,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator for handling errors in functions.

    ApplicationErrors are logged at their own level, anything else at
    ``error_level``.

    Args:
        error_level: Severity level for non-application errors
        reraise: Whether to re-raise the error after handling
        error_handler: Optional custom error handler

    Returns:
        Decorated function with error handling
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        original_signature = inspect.signature(func)

        if asyncio.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
                try:
                    return await cast("Callable[P, Awaitable[T]]", func)(*args, **kwargs)
                except Exception as e:
                    async with ErrorContextManager(e) as ctx:
                        _report(func.__name__, e, ctx, error_level, error_handler)
                        if reraise:
                            raise
                        return cast("T", None)

            async_wrapper.__signature__ = original_signature  # type: ignore
            return cast("Callable[P, T]", async_wrapper)

        @wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            try:
                return func(*args, **kwargs)
            except Exception as e:
                with ErrorContextManager(e) as ctx:
                    _report(func.__name__, e, ctx, error_level, error_handler)
                    if reraise:
                        raise
                    return cast("T", None)

        sync_wrapper.__signature__ = original_signature  # type: ignore
        return sync_wrapper

    return decorator


def with_session(driver_attr: str = "driver") -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator to automatically manage Neo4j session lifecycle.

    The session is injected as the first parameter after ``self``.

    Args:
        driver_attr: Name of the attribute holding the driver (default: "driver")

    Usage:
        @with_session()
        async def find(self, session, owner):
            result = await session.run(query, owner=owner)
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            if not args:
                raise ValueError(f"{func.__name__} requires at least 'self' argument")

            self_obj = args[0]
            driver = getattr(self_obj, driver_attr, None)

            if driver is None:
                raise AttributeError(
                    f"Object {self_obj.__class__.__name__} has no attribute '{driver_attr}'. "
                    f"Either provide the correct driver_attr or ensure the object has a driver."
                )

            async with driver.session() as session:
                new_args = (args[0], session) + args[1:]
                return await func(*new_args, **kwargs)  # type: ignore

        return cast(Callable[P, T], wrapper)

    return decorator
