"""Unit-of-work helpers that translate concurrency failures.

Every mutating hierarchy operation runs inside ``unit_of_work``: the body
stages ORM changes, then the session is flushed (and optionally committed)
as one unit. Failures at the store boundary roll the session back; those
caused by a concurrent writer surface as a retryable ConflictError.

Repository and hierarchy errors raised by the body are re-raised untouched.
The engine raises them before touching any instance, so there is nothing
to roll back.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from treepath_service.core.database.exceptions import ConflictError, RepositoryError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected
CONFLICT_SQLSTATES = frozenset({"40001", "40P01"})

_SQLITE_BUSY_MARKERS = ("database is locked", "database table is locked")


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = exc.orig
    # psycopg exposes .sqlstate, psycopg2 .pgcode, asyncpg .sqlstate on the cause
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code is None and orig is not None and orig.__cause__ is not None:
        code = getattr(orig.__cause__, "sqlstate", None)
    return code


def is_conflict_error(exc: BaseException) -> bool:
    """Return True when exc signals a concurrent structural change."""
    if isinstance(exc, ConflictError | StaleDataError):
        return True
    if isinstance(exc, DBAPIError):
        if _sqlstate(exc) in CONFLICT_SQLSTATES:
            return True
        if isinstance(exc, OperationalError):
            text = str(exc.orig).lower()
            return any(marker in text for marker in _SQLITE_BUSY_MARKERS)
    return False


async def _rollback_and_translate(
    session: AsyncSession,
    exc: Exception,
    operation: str,
) -> None:
    await session.rollback()
    if is_conflict_error(exc):
        logger.warning(
            "Transaction conflict, rolled back",
            extra={"operation": operation, "error": str(exc)},
        )
        raise ConflictError(
            "Concurrent structural change invalidated the transaction",
            details={"operation": operation},
        ) from exc
    logger.error(
        "Transaction failed, rolled back",
        extra={"operation": operation, "error": str(exc)},
    )


@asynccontextmanager
async def unit_of_work(
    session: AsyncSession,
    *,
    operation: str,
    commit: bool = False,
) -> AsyncIterator[AsyncSession]:
    """Flush (and optionally commit) everything staged in the body as one unit.

    Args:
        session: Session owning the transaction.
        operation: Name used in logs and error details (e.g. "hierarchy.reparent").
        commit: Commit after a successful flush.

    Raises:
        ConflictError: The store reported a serialization failure, deadlock,
            lock timeout or stale row. The session was rolled back.

    Example:
        async with unit_of_work(session, operation="hierarchy.reparent", commit=True):
            node.parent_id = new_parent.id
            node.path = new_path
    """
    try:
        yield session
        await session.flush()
        if commit:
            await session.commit()
    except RepositoryError:
        raise
    except Exception as exc:
        await _rollback_and_translate(session, exc, operation)
        raise


async def commit_or_conflict(session: AsyncSession, *, operation: str = "commit") -> None:
    """Commit the session, translating concurrency failures into ConflictError."""
    try:
        await session.commit()
    except Exception as exc:
        await _rollback_and_translate(session, exc, operation)
        raise


__all__ = [
    "CONFLICT_SQLSTATES",
    "commit_or_conflict",
    "is_conflict_error",
    "unit_of_work",
]
