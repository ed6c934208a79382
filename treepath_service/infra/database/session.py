"""Async SQLAlchemy engine and session factory.

The engine is created lazily from DatabaseSettings so importing this module
never opens a connection. Every connection runs at the configured isolation
level (SERIALIZABLE by default) so reparent cascades that race each other
fail with a serialization error instead of interleaving.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from treepath_service.core.database.base import Base
from treepath_service.core.settings import get_db_settings
from treepath_service.utils.retry import retry

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from sqlalchemy import MetaData
    from sqlalchemy.ext.asyncio import AsyncEngine

    from treepath_service.core.settings.database import DatabaseSettings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine_from_settings(settings: DatabaseSettings | None = None) -> AsyncEngine:
    """Build an async engine from database settings.

    SQLite only knows SERIALIZABLE (and READ UNCOMMITTED), so any other
    configured level falls back to SERIALIZABLE there.
    """
    settings = settings or get_db_settings()
    isolation_level: str = settings.isolation_level
    if settings.is_sqlite and isolation_level != "SERIALIZABLE":
        logger.warning(
            "SQLite does not support the configured isolation level, using SERIALIZABLE",
            extra={"isolation_level": isolation_level},
        )
        isolation_level = "SERIALIZABLE"

    engine_kwargs: dict[str, Any] = {
        "echo": settings.echo,
        "isolation_level": isolation_level,
        "pool_pre_ping": settings.pool_pre_ping,
    }
    return create_async_engine(settings.database_url, **engine_kwargs)


def create_session_factory(
    engine: AsyncEngine,
    settings: DatabaseSettings | None = None,
) -> async_sessionmaker[AsyncSession]:
    settings = settings or get_db_settings()
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=settings.expire_on_commit,
        autoflush=True,
    )


def get_engine() -> AsyncEngine:
    """Process-wide engine, created on first use."""
    global _engine
    if _engine is None:
        _engine = create_engine_from_settings()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Get async database session.

    Yields:
        Database session that is automatically closed.

    Example:
        async with get_async_session() as session:
            places = HierarchyService(session, Place)
            await places.reparent(victoria_id, new_zealand_id)
            await places.commit()
    """
    async with get_session_factory()() as session:
        try:
            yield session
        finally:
            await session.close()


@retry(max_attempts=3, initial_delay=0.5, max_delay=5.0, jitter=True)
async def _ping(engine: AsyncEngine) -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def init_database(metadata: MetaData | None = None) -> None:
    """Verify connectivity and optionally create the mapped tables.

    Tables are created only when ``DB_CREATE_TABLES`` is set; schema
    migrations are otherwise the deployment's job.

    Args:
        metadata: Metadata to create (defaults to Base.metadata)
    """
    settings = get_db_settings()
    engine = get_engine()
    logger.info(
        "Initializing database connection",
        extra={"dialect": engine.dialect.name, "isolation_level": settings.isolation_level},
    )

    try:
        await _ping(engine)
        if settings.create_tables:
            async with engine.begin() as conn:
                await conn.run_sync((metadata or Base.metadata).create_all)
            logger.info("Database tables created")
    except Exception as e:
        logger.error("Failed to initialize database", extra={"error": str(e)})
        raise

    logger.info("Database connection established successfully")


async def close_database() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _session_factory
    if _engine is None:
        return
    logger.info("Closing database connection")
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Database connection closed successfully")


__all__ = [
    "close_database",
    "create_engine_from_settings",
    "create_session_factory",
    "get_async_session",
    "get_engine",
    "get_session_factory",
    "init_database",
]
