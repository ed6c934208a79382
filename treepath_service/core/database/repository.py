"""Minimal generic repository for SQLAlchemy models.

Provides basic CRUD operations with explicit session passing.
For tree-specific statements see ``hierarchy.queries``; anything else can go
through the session directly.

Example:
    from treepath_service.core.database import BaseRepository

    class CategoryRepository(BaseRepository[Category]):
        async def find_by_slug(self, session: AsyncSession, slug: str) -> Category | None:
            return await self.get_by(session, Category.slug, slug)

    repo = CategoryRepository(Category)
    category = await repo.get_or_raise(session, category_id)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Generic, TypeVar, cast

from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select

from treepath_service.core.database.exceptions import NotFoundError
from treepath_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute


T = TypeVar("T")


class BaseRepository(Generic[T]):
    """Minimal generic repository for CRUD operations.

    Provides:
        - get(session, id, for_update=False) -> T | None
        - get_or_raise(session, id) -> T (raises NotFoundError)
        - get_by(session, attr, value) -> T | None
        - find_one(session, filters) -> T | None
        - list(session, limit, offset) -> Sequence[T]
        - create(session, instance) -> T
        - delete(session, instance) -> None

    Session is always explicit - no hidden state. Writes are flushed, never
    committed; the caller owns the transaction.
    """

    __slots__ = ("model", "_logger", "_lazy")

    def __init__(self, model: type[T]) -> None:
        """Initialize repository with model class.

        Args:
            model: SQLAlchemy model class
        """
        self.model = model
        # Standard logger for INFO/WARNING/ERROR
        self._logger = logging.getLogger(f"repository.{model.__name__}")
        # Lazy logger for DEBUG (zero overhead when DEBUG disabled)
        self._lazy = get_lazy_logger(f"repository.{model.__name__}")

    async def get(
        self,
        session: AsyncSession,
        id: Any,  # noqa: A002
        *,
        for_update: bool = False,
    ) -> T | None:
        """Get entity by primary key.

        Args:
            session: Database session
            id: Primary key value
            for_update: Emit SELECT ... FOR UPDATE, bypassing the identity map.
                Dialects without row locks (SQLite) ignore the clause.

        Returns:
            Entity if found, None otherwise
        """
        if for_update:
            instance = await session.get(self.model, id, with_for_update=True)
        else:
            instance = await session.get(self.model, id)

        self._lazy.debug(
            lambda: f"db.get: {self.model.__name__}({id}, for_update={for_update}) -> "
            f"{'found' if instance else 'not found'}"
        )
        return instance

    async def get_or_raise(
        self,
        session: AsyncSession,
        id: Any,  # noqa: A002
        *,
        for_update: bool = False,
    ) -> T:
        """Get entity by primary key or raise NotFoundError.

        Raises:
            NotFoundError: If entity doesn't exist
        """
        instance = await self.get(session, id, for_update=for_update)
        if instance is None:
            self._logger.info(
                "Entity not found",
                extra={
                    "entity": self.model.__name__,
                    "id": str(id),
                    "operation": "db.get_or_raise",
                },
            )
            raise NotFoundError(self.model.__name__, {"id": id})
        return instance

    async def get_by(
        self,
        session: AsyncSession,
        attr: InstrumentedAttribute[Any],
        value: Any,
    ) -> T | None:
        """Get entity by arbitrary attribute.

        Example:
            node = await repo.get_by(session, Category.name, "Victoria")
        """
        stmt = select(self.model).where(attr == value).limit(1)
        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self._lazy.debug(
            lambda: f"db.get_by: {self.model.__name__}.{attr.key}={value!r} -> "
            f"{'found' if instance else 'not found'}"
        )
        return instance

    async def find_one(
        self,
        session: AsyncSession,
        filters: Mapping[str, Any],
    ) -> T | None:
        """Get the first entity matching every ``column == value`` filter.

        Args:
            session: Database session
            filters: Attribute names mapped to required values. ``None``
                values compile to ``IS NULL``.

        Raises:
            AttributeError: If a filter names an attribute the model lacks
        """
        stmt = select(self.model)
        for name, value in filters.items():
            column = getattr(self.model, name)
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        stmt = stmt.order_by(self._pk_attr()).limit(1)
        result = await session.execute(stmt)
        instance = result.scalars().first()

        self._lazy.debug(
            lambda: f"db.find_one: {self.model.__name__}{dict(filters)!r} -> "
            f"{'found' if instance else 'not found'}"
        )
        return instance

    async def list(
        self,
        session: AsyncSession,
        *,
        limit: int = 100,
        offset: int = 0,
        order_by: Iterable[Any] | None = None,
    ) -> Sequence[T]:
        """List entities with pagination, ordered by primary key by default."""
        stmt = select(self.model)
        stmt = stmt.order_by(*order_by) if order_by else stmt.order_by(self._pk_attr())
        stmt = stmt.limit(limit).offset(offset)
        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(
            lambda: f"db.list: {self.model.__name__}(limit={limit}, offset={offset}) -> {len(items)} items"
        )
        return items

    async def create(self, session: AsyncSession, instance: T) -> T:
        """Add a new entity and flush to obtain its primary key.

        Args:
            session: Database session
            instance: Entity to create

        Returns:
            The same instance, with store-assigned columns populated
        """
        session.add(instance)
        await session.flush()
        await session.refresh(instance)

        self._lazy.debug(lambda: f"db.create: {self.model.__name__}({self._pk_value(instance)})")
        return instance

    async def delete(self, session: AsyncSession, instance: T) -> None:
        """Delete entity and flush."""
        await session.delete(instance)
        await session.flush()

        self._logger.info(
            "Entity deleted",
            extra={
                "entity": self.model.__name__,
                "id": str(self._pk_value(instance)),
                "operation": "db.delete",
            },
        )

    def _pk_attr(self) -> InstrumentedAttribute[Any]:
        """Get primary key attribute."""
        mapper = sa_inspect(self.model)
        return cast("InstrumentedAttribute[Any]", getattr(self.model, mapper.primary_key[0].name))

    def _pk_value(self, instance: T) -> Any:
        return getattr(instance, self._pk_attr().key)


__all__ = ["BaseRepository"]
