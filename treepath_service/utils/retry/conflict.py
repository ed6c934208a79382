"""Retry preset for hierarchy writes that lost a concurrency race."""

from __future__ import annotations

from typing import TYPE_CHECKING, ParamSpec, TypeVar

from treepath_service.core.database.exceptions import ConflictError

from .decorator import retry

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

P = ParamSpec("P")
R = TypeVar("R")


def is_retryable_conflict(exc: Exception) -> bool:
    """True for ConflictError (the session has already been rolled back)."""
    return isinstance(exc, ConflictError) and exc.retryable


def retry_on_conflict(
    max_attempts: int = 3,
    initial_delay: float = 0.05,
    max_delay: float = 1.0,
    jitter: bool = True,
    on_retry: Callable[[Exception, int], None] | None = None,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Retry the whole decorated operation when it raises ConflictError.

    The decorated callable must redo its reads: wrap the complete operation
    (load, mutate, commit), not just the commit.

    Example:
        @retry_on_conflict(max_attempts=5)
        async def move(node_id: int, parent_id: int) -> None:
            async with session_factory() as session:
                service = HierarchyService(session, Place)
                await service.reparent(node_id, parent_id)
                await service.commit()
    """
    return retry(
        max_attempts=max_attempts,
        initial_delay=initial_delay,
        max_delay=max_delay,
        jitter=jitter,
        retry_if=is_retryable_conflict,
        on_retry=on_retry,
    )
