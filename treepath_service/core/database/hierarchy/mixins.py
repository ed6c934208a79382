"""Mixin for models stored as a materialized path tree.

Adds the parent link, cached ancestor path and type discriminator columns,
plus navigation helpers that delegate to HierarchyQueries. Mutations
(creating under a parent, moving, deleting, rebuilding) go through
HierarchyService so the cached paths stay consistent.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, ClassVar

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from treepath_service.core.database.hierarchy.codec import PathCodec
from treepath_service.core.database.hierarchy.queries import HierarchyQueries
from treepath_service.core.settings import get_hierarchy_settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable
    from typing import Self

    from sqlalchemy.ext.asyncio import AsyncSession


class MaterializedPathMixin:
    """Mixin for self-referencing tree models with a cached ancestor path.

    The model must also have an integer ``id`` primary key (IntegerPKMixin)
    and an explicit ``__tablename__``; ``parent_id`` references
    ``<tablename>.id``.

    Columns:
        parent_id: Parent row, None for a root
        path: Strict ancestors root-first, e.g. "-1-4-"; "-" for a root
        type_tag: Free-form discriminator, never consulted by the engine

    Example:
        >>> class Place(Base, IntegerPKMixin, MaterializedPathMixin):
        ...     __tablename__ = "places"
        ...     name: Mapped[str] = mapped_column(String(255))
        >>>
        >>> melbourne.ancestor_ids
        [1, 2]
        >>> await melbourne.get_root(session)
        <Place Australia>
        >>> roots = await Place.get_roots(session)

    Note:
        Navigation helpers follow HierarchySettings (delimiter and root
        siblings) unless the class pins a codec with ``__path_codec__``.
    """

    __allow_unmapped__ = True

    # Override in subclass to use different column name or codec
    __path_column__: ClassVar[str] = "path"
    __path_codec__: ClassVar[PathCodec | None] = None

    @declared_attr
    def parent_id(cls) -> Mapped[int | None]:  # noqa: N805
        return mapped_column(
            ForeignKey(f"{cls.__tablename__}.id"),
            nullable=True,
            index=True,
            comment="Parent node, NULL for roots",
        )

    path: Mapped[str] = mapped_column(
        String(2048),
        nullable=False,
        index=True,
        comment="Delimited ancestor ids, root first",
    )

    type_tag: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        index=True,
        comment="Record kind discriminator",
    )

    @classmethod
    def path_codec(cls) -> PathCodec:
        """The class codec, or one built from the configured delimiter."""
        return cls.__path_codec__ or PathCodec.from_settings(get_hierarchy_settings())

    @classmethod
    def hierarchy_queries(cls) -> HierarchyQueries[Any]:
        settings = get_hierarchy_settings()
        return HierarchyQueries(
            cls, cls.path_codec(), roots_are_siblings=settings.roots_are_siblings
        )

    @property
    def _path_value(self) -> str:
        return getattr(self, self.__path_column__)

    @property
    def full_path(self) -> str:
        """Ancestors plus this node, the prefix every descendant's path starts with.

        This property does NOT query the database.

        Example:
            >>> melbourne.path, melbourne.id
            ('-1-2-', 3)
            >>> melbourne.full_path
            '-1-2-3-'
        """
        return self.path_codec().child_prefix(self._path_value, self.id)  # type: ignore[attr-defined]

    @property
    def ancestor_ids(self) -> list[Any]:
        """Decoded ancestor ids, root first. Does NOT query the database.

        Raises:
            MalformedPathError: If the cached path is corrupt
        """
        return self.path_codec().decode(self._path_value)

    @property
    def hierarchy_depth(self) -> int:
        """Number of ancestors (0 for roots)."""
        return len(self.ancestor_ids)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    async def get_parent(self, session: AsyncSession) -> Self | None:
        return await self.hierarchy_queries().parent(session, self)

    async def get_children(
        self,
        session: AsyncSession,
        *,
        order_by: Iterable[Any] | None = None,
    ) -> list[Self]:
        return await self.hierarchy_queries().children(session, self, order_by=order_by)

    async def get_siblings(
        self,
        session: AsyncSession,
        *,
        include_self: bool = False,
        order_by: Iterable[Any] | None = None,
    ) -> list[Self]:
        """Get nodes sharing this node's parent.

        Args:
            session: Async database session
            include_self: Include this node in results (default: False)
            order_by: Optional ordering columns
        """
        return await self.hierarchy_queries().siblings(
            session, self, include_self=include_self, order_by=order_by
        )

    async def get_ancestors(self, session: AsyncSession) -> list[Self]:
        """Get ancestors, root first."""
        return await self.hierarchy_queries().ancestors(session, self)

    def iter_ancestors(self, session: AsyncSession) -> AsyncIterator[Self]:
        return self.hierarchy_queries().iter_ancestors(session, self)

    async def get_descendants(
        self,
        session: AsyncSession,
        *,
        order_by: Iterable[Any] | None = None,
    ) -> list[Self]:
        """Get all descendants (any depth), excluding this node."""
        return await self.hierarchy_queries().descendants(session, self, order_by=order_by)

    async def get_subtree(
        self,
        session: AsyncSession,
        *,
        order_by: Iterable[Any] | None = None,
    ) -> list[Self]:
        return await self.hierarchy_queries().subtree(session, self, order_by=order_by)

    async def get_root(self, session: AsyncSession) -> Self:
        return await self.hierarchy_queries().root(session, self)

    async def count_descendants(self, session: AsyncSession) -> int:
        """Count descendants with a single COUNT(*) over the path prefix."""
        return await self.hierarchy_queries().count_descendants(session, self)

    @classmethod
    async def get_roots(
        cls,
        session: AsyncSession,
        *,
        order_by: Iterable[Any] | None = None,
    ) -> list[Self]:
        return await cls.hierarchy_queries().roots(session, order_by=order_by)


__all__ = ["MaterializedPathMixin"]
