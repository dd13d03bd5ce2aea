"""
Database decorators for transactional units of work.

Provides rollback-on-error handling, translation of concurrency failures
into TransactionConflictError, and whole-operation retry.
"""

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from functools import wraps
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from mlm_ledger.utils.exceptions import TransactionConflictError, is_retryable


T = TypeVar("T")

# Default attempts for retry_on_conflict
DEFAULT_RETRY_ATTEMPTS = 3
RETRY_BACKOFF_SECONDS = 0.05


def _find_session(args: tuple[Any, ...], kwargs: dict[str, Any]) -> AsyncSession | None:
    """Locate the session in kwargs, the first positional arg or self.session."""
    session = kwargs.get("session")
    if session is not None:
        return session

    if args:
        if isinstance(args[0], AsyncSession):
            return args[0]
        owner_session = getattr(args[0], "session", None)
        if isinstance(owner_session, AsyncSession):
            return owner_session

    return None


def with_rollback_on_error(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator that rolls back the session on any exception.

    Works for plain functions taking a session and for service methods
    whose instance carries a ``session`` attribute.

    Args:
        func: Async function to wrap

    Returns:
        Wrapped function with automatic rollback on error
    """
    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        session = _find_session(args, kwargs)

        if session is None:
            logger.warning(
                f"Function {func.__name__} decorated with @with_rollback_on_error "
                f"but no session argument found. Rollback will not be performed."
            )
            return await func(*args, **kwargs)

        try:
            return await func(*args, **kwargs)
        except Exception as e:
            try:
                await session.rollback()
                logger.info(
                    f"Rollback performed in {func.__name__} due to error: {type(e).__name__}"
                )
            except Exception as rollback_error:
                logger.error(
                    f"Failed to rollback in {func.__name__}: {rollback_error}",
                    exc_info=True
                )
            raise

    return wrapper


@asynccontextmanager
async def conflict_guard(operation: str, **context: Any) -> AsyncIterator[None]:
    """
    Translate concurrency failures raised inside a unit of work.

    Lock timeouts, serialization failures, stale rows and unique-key races
    on latch/marker rows become TransactionConflictError.

    Args:
        operation: Name of the unit of work, for logs
        **context: Extra identifiers attached to the raised error
    """
    try:
        yield
    except (OperationalError, IntegrityError, StaleDataError) as e:
        logger.warning(
            f"Concurrency conflict in {operation}",
            extra={"operation": operation, "error": str(e), **context},
        )
        raise TransactionConflictError(
            f"Concurrent modification during {operation}", **context
        ) from e


def retry_on_conflict(
    attempts: int = DEFAULT_RETRY_ATTEMPTS,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Retry a whole operation when it fails with a retryable error.

    Only wrap operations that re-read all state at the start of each
    attempt; the session is rolled back between attempts.

    Args:
        attempts: Maximum number of attempts

    Returns:
        Decorator
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            session = _find_session(args, kwargs)
            for attempt in range(1, attempts + 1):
                try:
                    return await func(*args, **kwargs)
                except Exception as e:
                    if not is_retryable(e) or attempt == attempts:
                        raise
                    if session is not None:
                        await session.rollback()
                    logger.warning(
                        f"Retrying {func.__name__} after conflict",
                        extra={
                            "function": func.__name__,
                            "attempt": attempt,
                            "error": type(e).__name__,
                        },
                    )
                    await asyncio.sleep(RETRY_BACKOFF_SECONDS * attempt)
            raise AssertionError("unreachable")

        return wrapper

    return decorator
