"""Statement builders for materialized path navigation.

Every hierarchy read is answered from one of two facts the row already
holds: its ``parent_id`` (parent, children, siblings) or its cached path
(ancestors, descendants, subtree, roots). No recursive traversal is issued.

Statement builders return plain ``select()`` objects so callers can add
their own filters, pagination or loader options; the async helpers execute
them against an explicit session.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import case, func, select

from treepath_service.core.database.exceptions import NotFoundError
from treepath_service.core.database.hierarchy.codec import PathCodec
from treepath_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable, Sequence

    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute

    from treepath_service.core.settings.hierarchy import HierarchySettings


T = TypeVar("T")


class HierarchyQueries(Generic[T]):
    """Translate tree questions about ``model`` rows into SQL.

    Args:
        model: Mapped class using MaterializedPathMixin
        codec: Path codec matching the stored paths
        roots_are_siblings: Whether roots are siblings of each other

    Example:
        queries = HierarchyQueries(Category)
        stmt = queries.descendants_statement(victoria).where(Category.name.like("M%"))
        melbourne_and_friends = (await session.execute(stmt)).scalars().all()
    """

    __slots__ = ("model", "codec", "roots_are_siblings", "_logger", "_lazy")

    def __init__(
        self,
        model: type[T],
        codec: PathCodec | None = None,
        *,
        roots_are_siblings: bool = True,
    ) -> None:
        self.model = model
        self.codec = codec or getattr(model, "__path_codec__", None) or PathCodec()
        self.roots_are_siblings = roots_are_siblings
        self._logger = logging.getLogger(f"hierarchy.queries.{model.__name__}")
        self._lazy = get_lazy_logger(f"hierarchy.queries.{model.__name__}")

    @classmethod
    def from_settings(cls, model: type[T], settings: HierarchySettings) -> HierarchyQueries[T]:
        """Build queries using the configured delimiter and sibling policy."""
        return cls(
            model,
            PathCodec.from_settings(settings),
            roots_are_siblings=settings.roots_are_siblings,
        )

    # ------------------------------------------------------------------
    # Columns and derived values
    # ------------------------------------------------------------------

    @property
    def id_column(self) -> InstrumentedAttribute[Any]:
        return self.model.id  # type: ignore[attr-defined]

    @property
    def parent_column(self) -> InstrumentedAttribute[Any]:
        return self.model.parent_id  # type: ignore[attr-defined]

    @property
    def path_column(self) -> InstrumentedAttribute[Any]:
        return getattr(self.model, getattr(self.model, "__path_column__", "path"))

    def path_of(self, node: T) -> str:
        return getattr(node, getattr(self.model, "__path_column__", "path"))

    def full_path(self, node: T) -> str:
        """Prefix shared by every descendant of node."""
        return self.codec.child_prefix(self.path_of(node), node.id)  # type: ignore[attr-defined]

    # ------------------------------------------------------------------
    # Statement builders
    # ------------------------------------------------------------------

    def children_statement(self, node: T, *, order_by: Iterable[Any] | None = None) -> Select[Any]:
        stmt = select(self.model).where(self.parent_column == node.id)  # type: ignore[attr-defined]
        return self._ordered(stmt, order_by)

    def siblings_statement(
        self,
        node: T,
        *,
        include_self: bool = False,
        order_by: Iterable[Any] | None = None,
    ) -> Select[Any] | None:
        """Rows sharing node's parent.

        Returns:
            The statement, or None when node is a root and roots are not
            configured as siblings (the answer is always empty).
        """
        parent_id = node.parent_id  # type: ignore[attr-defined]
        if parent_id is None:
            if not self.roots_are_siblings:
                return None
            stmt = select(self.model).where(self.parent_column.is_(None))
        else:
            stmt = select(self.model).where(self.parent_column == parent_id)
        if not include_self:
            stmt = stmt.where(self.id_column != node.id)  # type: ignore[attr-defined]
        return self._ordered(stmt, order_by)

    def ancestors_statement(self, node: T) -> Select[Any] | None:
        """Rows named by node's decoded path, root first.

        Ordering is done in SQL with a CASE over the decoded ids, so the
        result is root-first regardless of id order.

        Returns:
            The statement, or None for a root.

        Raises:
            MalformedPathError: If the cached path cannot be decoded
        """
        ancestor_ids = self.codec.decode(self.path_of(node))
        if not ancestor_ids:
            return None
        position = case(
            {ancestor_id: index for index, ancestor_id in enumerate(ancestor_ids)},
            value=self.id_column,
        )
        return select(self.model).where(self.id_column.in_(ancestor_ids)).order_by(position)

    def descendants_statement(self, node: T, *, order_by: Iterable[Any] | None = None) -> Select[Any]:
        """Rows whose path starts with node's full path (node excluded)."""
        prefix = self.full_path(node)
        stmt = select(self.model).where(self.path_column.startswith(prefix, autoescape=True))
        return self._ordered(stmt, order_by)

    def subtree_statement(self, node: T, *, order_by: Iterable[Any] | None = None) -> Select[Any]:
        """Descendants plus node itself."""
        prefix = self.full_path(node)
        stmt = select(self.model).where(
            (self.id_column == node.id)  # type: ignore[attr-defined]
            | self.path_column.startswith(prefix, autoescape=True)
        )
        return self._ordered(stmt, order_by)

    def roots_statement(self, *, order_by: Iterable[Any] | None = None) -> Select[Any]:
        """Rows whose path is the empty-chain encoding."""
        stmt = select(self.model).where(self.path_column == self.codec.root_path)
        return self._ordered(stmt, order_by)

    def count_descendants_statement(self, node: T) -> Select[Any]:
        prefix = self.full_path(node)
        return (
            select(func.count())
            .select_from(self.model)
            .where(self.path_column.startswith(prefix, autoescape=True))
        )

    # ------------------------------------------------------------------
    # Executors
    # ------------------------------------------------------------------

    async def parent(self, session: AsyncSession, node: T) -> T | None:
        parent_id = node.parent_id  # type: ignore[attr-defined]
        if parent_id is None:
            return None
        return await session.get(self.model, parent_id)

    async def children(
        self,
        session: AsyncSession,
        node: T,
        *,
        order_by: Iterable[Any] | None = None,
    ) -> list[T]:
        return await self._all(session, self.children_statement(node, order_by=order_by), "children")

    async def siblings(
        self,
        session: AsyncSession,
        node: T,
        *,
        include_self: bool = False,
        order_by: Iterable[Any] | None = None,
    ) -> list[T]:
        stmt = self.siblings_statement(node, include_self=include_self, order_by=order_by)
        if stmt is None:
            return []
        return await self._all(session, stmt, "siblings")

    async def ancestors(self, session: AsyncSession, node: T) -> list[T]:
        """Ancestors of node, root first.

        A row missing from the result means the cached path names a deleted
        node; it is logged and the remaining ancestors are returned.
        """
        stmt = self.ancestors_statement(node)
        if stmt is None:
            return []
        rows = await self._all(session, stmt, "ancestors")
        expected = self.codec.depth(self.path_of(node))
        if len(rows) != expected:
            self._logger.warning(
                "Cached path names missing ancestors",
                extra={
                    "node_id": node.id,  # type: ignore[attr-defined]
                    "path": self.path_of(node),
                    "expected": expected,
                    "found": len(rows),
                },
            )
        return rows

    async def iter_ancestors(self, session: AsyncSession, node: T) -> AsyncIterator[T]:
        """Yield ancestors root first.

        The iterator is consumed once; call again for a fresh pass.
        """
        for ancestor in await self.ancestors(session, node):
            yield ancestor

    async def descendants(
        self,
        session: AsyncSession,
        node: T,
        *,
        order_by: Iterable[Any] | None = None,
    ) -> list[T]:
        return await self._all(session, self.descendants_statement(node, order_by=order_by), "descendants")

    async def subtree(
        self,
        session: AsyncSession,
        node: T,
        *,
        order_by: Iterable[Any] | None = None,
    ) -> list[T]:
        return await self._all(session, self.subtree_statement(node, order_by=order_by), "subtree")

    async def roots(self, session: AsyncSession, *, order_by: Iterable[Any] | None = None) -> list[T]:
        return await self._all(session, self.roots_statement(order_by=order_by), "roots")

    async def root(self, session: AsyncSession, node: T) -> T:
        """First ancestor of node, or node itself when it is a root.

        Raises:
            NotFoundError: If the cached path names a root that no longer exists
        """
        ancestor_ids = self.codec.decode(self.path_of(node))
        if not ancestor_ids:
            return node
        root = await session.get(self.model, ancestor_ids[0])
        if root is None:
            raise NotFoundError(self.model.__name__, {"id": ancestor_ids[0]})
        return root

    async def count_descendants(self, session: AsyncSession, node: T) -> int:
        result = await session.execute(self.count_descendants_statement(node))
        return int(result.scalar_one())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ordered(self, stmt: Select[Any], order_by: Iterable[Any] | None) -> Select[Any]:
        if order_by:
            stmt = stmt.order_by(*order_by)
        return stmt

    async def _all(self, session: AsyncSession, stmt: Select[Any], label: str) -> list[T]:
        result = await session.execute(stmt)
        rows: Sequence[T] = result.scalars().all()
        self._lazy.debug(lambda: f"hierarchy.{label}: {self.model.__name__} -> {len(rows)} rows")
        return list(rows)


__all__ = ["HierarchyQueries"]
