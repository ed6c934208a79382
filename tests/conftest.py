"""Pytest configuration and shared fixtures.

Organization:
    - Environment: keep tests independent of local .env / conf.d files
    - Test Models: a small tree model built from the production mixins
    - Database Fixtures: in-memory SQLite engine and session
    - Hierarchy Fixtures: a service bound to the session and a sample tree
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import String
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import Mapped, mapped_column, sessionmaker

from treepath_service.core.database.base import Base, IntegerPKMixin, TimestampMixin
from treepath_service.core.database.hierarchy import HierarchyService, MaterializedPathMixin
from treepath_service.core.settings import HierarchySettings, clear_all_caches

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

# Point YAML sources at a directory that does not exist
for _config_dir_env in ("HIERARCHY_CONFIG_DIR", "DB_CONFIG_DIR", "LOGGING_CONFIG_DIR"):
    os.environ.setdefault(_config_dir_env, "/nonexistent-treepath-config")


# ============================================================================
# Test Models
# ============================================================================


class Place(Base, IntegerPKMixin, TimestampMixin, MaterializedPathMixin):
    """Geographic tree used across the hierarchy tests."""

    __tablename__ = "places"

    name: Mapped[str] = mapped_column(String(255))

    def __repr__(self) -> str:
        return f"<Place {self.name}>"


@dataclass
class World:
    """Sample tree.

    Australia
    ├── Victoria
    │   └── Melbourne
    │       └── Box Hill
    └── NSW
        └── Sydney
    New Zealand
    """

    australia: Place
    victoria: Place
    melbourne: Place
    box_hill: Place
    nsw: Place
    sydney: Place
    new_zealand: Place


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _fresh_settings_cache():
    """Drop cached settings so env changes in one test never leak into another."""
    clear_all_caches()
    yield
    clear_all_caches()


@pytest.fixture
def hierarchy_settings() -> HierarchySettings:
    """Default hierarchy settings, independent of the environment."""
    return HierarchySettings(
        path_delimiter="-",
        roots_are_siblings=True,
        orphan_policy="restrict",
        rebuild_commit=False,
        lock_parent_rows=True,
    )


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Create async SQLAlchemy engine with in-memory SQLite.

    Yields:
        Async SQLAlchemy engine connected to in-memory SQLite.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        isolation_level="SERIALIZABLE",
    )

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def db_session(db_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create async database session with automatic table creation and cleanup."""
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ============================================================================
# Hierarchy Fixtures
# ============================================================================


@pytest.fixture
def places(db_session: AsyncSession, hierarchy_settings: HierarchySettings) -> HierarchyService[Place]:
    """Hierarchy service for the Place model."""
    return HierarchyService(db_session, Place, hierarchy_settings)


@pytest.fixture
async def world(places: HierarchyService[Place]) -> World:
    """Build the sample tree through the service."""
    australia = await places.create_node(name="Australia")
    victoria = await places.create_node(australia.id, name="Victoria")
    melbourne = await places.create_node(victoria.id, name="Melbourne")
    box_hill = await places.create_node(melbourne.id, name="Box Hill")
    nsw = await places.create_node(australia.id, name="NSW")
    sydney = await places.create_node(nsw.id, name="Sydney")
    new_zealand = await places.create_node(name="New Zealand")
    await places.commit()
    return World(
        australia=australia,
        victoria=victoria,
        melbourne=melbourne,
        box_hill=box_hill,
        nsw=nsw,
        sydney=sydney,
        new_zealand=new_zealand,
    )
