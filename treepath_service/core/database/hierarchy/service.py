"""Caller-facing hierarchy operations over one session and one model.

HierarchyService wires the codec, validator, cascade updater, query
translator and rebuild engine together for a single mapped class. Every
mutation runs as one unit of work on the bound session: validation first,
then path computation, then the writes, flushed together. Nothing is
committed unless the caller commits (``commit()``), except a rebuild when
``HierarchySettings.rebuild_commit`` is set.

Example:
    async with session_factory() as session:
        places = HierarchyService(session, Place)
        australia = await places.create_node(name="Australia")
        victoria = await places.create_node(australia.id, name="Victoria")
        await places.reparent(victoria.id, new_zealand.id)
        await places.commit()
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Generic, TypeVar, get_args

from sqlalchemy import delete as sql_delete

from treepath_service.core.database.exceptions import InvalidParentError
from treepath_service.core.database.hierarchy.cascade import CascadeResult, CascadeUpdater
from treepath_service.core.database.hierarchy.codec import PathCodec
from treepath_service.core.database.hierarchy.queries import HierarchyQueries
from treepath_service.core.database.hierarchy.rebuild import RebuildEngine, RebuildReport
from treepath_service.core.database.hierarchy.validator import HierarchyValidator
from treepath_service.core.database.repository import BaseRepository
from treepath_service.core.database.transactions import commit_or_conflict, unit_of_work
from treepath_service.core.services.base import BaseService
from treepath_service.core.settings import get_hierarchy_settings
from treepath_service.core.settings.hierarchy import OrphanPolicy
from treepath_service.infra.logging import log_context

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable, Mapping

    from sqlalchemy.ext.asyncio import AsyncSession

    from treepath_service.core.settings.hierarchy import HierarchySettings

_ORPHAN_POLICIES = frozenset(get_args(OrphanPolicy))


T = TypeVar("T")


class HierarchyService(BaseService, Generic[T]):
    """Materialized path tree operations for ``model``.

    Node arguments of the read helpers accept either a loaded instance or
    its primary key.
    """

    def __init__(
        self,
        session: AsyncSession,
        model: type[T],
        settings: HierarchySettings | None = None,
    ) -> None:
        """Initialize the hierarchy service.

        Args:
            session: Database session for all operations
            model: Mapped class using MaterializedPathMixin
            settings: Hierarchy settings (defaults to the cached loader)
        """
        super().__init__()
        self._session = session
        self.model = model
        self.settings = settings or get_hierarchy_settings()
        self.codec: PathCodec = getattr(model, "__path_codec__", None) or PathCodec.from_settings(
            self.settings
        )
        self.repository: BaseRepository[T] = BaseRepository(model)
        self.queries = HierarchyQueries(
            model, self.codec, roots_are_siblings=self.settings.roots_are_siblings
        )
        self.validator = HierarchyValidator(
            model, self.codec, lock_parent_rows=self.settings.lock_parent_rows
        )
        self.cascade = CascadeUpdater(
            model, self.codec, queries=self.queries, validator=self.validator
        )
        self.rebuilder = RebuildEngine(model, self.codec)

    @property
    def session(self) -> AsyncSession:
        return self._session

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_node(self, parent_id: Any = None, **attributes: Any) -> T:
        """Create a node as a root or under an existing parent.

        Args:
            parent_id: Parent primary key, None for a root
            **attributes: Remaining column values (name, type_tag, ...)

        Returns:
            The flushed node, with id and path populated

        Raises:
            InvalidParentError: The parent does not exist
            MalformedPathError: The parent's cached path cannot be decoded
        """
        with log_context(operation="hierarchy.create_node", entity=self.model.__name__):
            async with unit_of_work(self._session, operation="hierarchy.create_node"):
                node = await self._stage_create(parent_id, attributes)

        self._lazy.debug(
            lambda: f"hierarchy.create_node: {self.model.__name__}({node.id}) path={self.queries.path_of(node)!r}"  # type: ignore[attr-defined]
        )
        return node

    async def reparent(self, node_id: Any, new_parent_id: Any = None) -> CascadeResult[T]:
        """Move a node, and with it its whole subtree, under a new parent.

        Raises:
            NotFoundError: The node does not exist
            InvalidParentError: Self-parent, cycle or missing parent
            ConflictError: A concurrent writer invalidated the transaction
        """
        with log_context(operation="hierarchy.reparent", entity=self.model.__name__):
            return await self.cascade.reparent(self._session, node_id, new_parent_id)

    async def delete_node(self, node_id: Any, policy: OrphanPolicy | None = None) -> int:
        """Delete a node, handling its children according to ``policy``.

        Policies:
            restrict: refuse when the node has children
            cascade: delete the node together with its whole subtree
            reparent: lift the children to the node's parent, then delete it

        Args:
            node_id: Node to delete
            policy: Overrides HierarchySettings.orphan_policy

        Returns:
            Number of rows deleted

        Raises:
            NotFoundError: The node does not exist
            InvalidParentError: restrict policy and the node has children
            ValueError: Unknown policy
        """
        policy = (policy or self.settings.orphan_policy).lower()  # type: ignore[assignment]
        if policy not in _ORPHAN_POLICIES:
            msg = f"Unknown orphan policy {policy!r}, expected one of {sorted(_ORPHAN_POLICIES)}"
            raise ValueError(msg)

        with log_context(operation="hierarchy.delete_node", entity=self.model.__name__):
            async with unit_of_work(self._session, operation="hierarchy.delete_node"):
                node = await self.repository.get_or_raise(self._session, node_id)
                children = await self.queries.children(self._session, node)

                if children and policy == "restrict":
                    self.logger.info(
                        "Refused to delete node with children",
                        extra={"node_id": node_id, "children": len(children)},
                    )
                    raise InvalidParentError(
                        node_id, node.parent_id, InvalidParentError.HAS_CHILDREN  # type: ignore[attr-defined]
                    )

                if children and policy == "cascade":
                    deleted = await self._delete_subtree(node)
                else:
                    if children:
                        parent = await self.queries.parent(self._session, node)
                        # Plan every child before staging any of them
                        plans = [
                            await self.cascade.plan_move(self._session, child, parent)
                            for child in children
                        ]
                        for plan in plans:
                            self.cascade.apply(plan)
                        await self._session.flush()
                    await self.repository.delete(self._session, node)
                    deleted = 1

        self.logger.info(
            "Node deleted",
            extra={
                "entity": self.model.__name__,
                "node_id": node_id,
                "policy": policy,
                "deleted": deleted,
                "children": len(children),
            },
        )
        return deleted

    async def get_or_create_child(
        self,
        parent_id: Any,
        lookup: Mapping[str, Any],
        defaults: Mapping[str, Any] | None = None,
    ) -> tuple[T, bool]:
        """Find a child of ``parent_id`` matching ``lookup``, or create it.

        Args:
            parent_id: Parent primary key, None to look among roots
            lookup: Equality filters identifying the child
            defaults: Extra attributes used only when creating

        Returns:
            Tuple of (node, created)

        Example:
            melbourne, created = await places.get_or_create_child(
                victoria.id, {"name": "Melbourne"}, {"type_tag": "city"}
            )
        """
        with log_context(operation="hierarchy.get_or_create_child", entity=self.model.__name__):
            async with unit_of_work(self._session, operation="hierarchy.get_or_create_child"):
                parent = await self.validator.validate(self._session, None, parent_id)
                filters = {**lookup, "parent_id": parent_id}
                node = await self.repository.find_one(self._session, filters)
                created = node is None
                if node is None:
                    node = await self._stage_create(parent_id, {**(defaults or {}), **lookup}, parent=parent)

        self._lazy.debug(
            lambda: f"hierarchy.get_or_create_child: parent={parent_id} lookup={dict(lookup)!r} created={created}"
        )
        return node, created

    async def rebuild_all(self) -> RebuildReport:
        """Recompute every cached path from parent links."""
        return await self.rebuilder.rebuild_all(self._session, commit=self.settings.rebuild_commit)

    async def rebuild_subtree(self, node_id: Any) -> RebuildReport:
        """Recompute the cached paths of one node and its descendants."""
        return await self.rebuilder.rebuild_subtree(
            self._session, node_id, commit=self.settings.rebuild_commit
        )

    async def commit(self) -> None:
        """Commit the session. Concurrency failures surface as ConflictError."""
        await commit_or_conflict(self._session, operation="hierarchy.commit")

    async def rollback(self) -> None:
        await self._session.rollback()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_node(self, node_id: Any) -> T:
        """Get a node by id or raise NotFoundError."""
        return await self.repository.get_or_raise(self._session, node_id)

    async def get_parent(self, node: T | Any) -> T | None:
        return await self.queries.parent(self._session, await self._resolve(node))

    async def get_children(self, node: T | Any, *, order_by: Iterable[Any] | None = None) -> list[T]:
        return await self.queries.children(self._session, await self._resolve(node), order_by=order_by)

    async def get_siblings(
        self,
        node: T | Any,
        *,
        include_self: bool = False,
        order_by: Iterable[Any] | None = None,
    ) -> list[T]:
        return await self.queries.siblings(
            self._session, await self._resolve(node), include_self=include_self, order_by=order_by
        )

    async def get_ancestors(self, node: T | Any) -> list[T]:
        """Ancestors root first."""
        return await self.queries.ancestors(self._session, await self._resolve(node))

    async def iter_ancestors(self, node: T | Any) -> AsyncIterator[T]:
        async for ancestor in self.queries.iter_ancestors(self._session, await self._resolve(node)):
            yield ancestor

    async def get_descendants(self, node: T | Any, *, order_by: Iterable[Any] | None = None) -> list[T]:
        return await self.queries.descendants(self._session, await self._resolve(node), order_by=order_by)

    async def get_subtree(self, node: T | Any, *, order_by: Iterable[Any] | None = None) -> list[T]:
        return await self.queries.subtree(self._session, await self._resolve(node), order_by=order_by)

    async def get_roots(self, *, order_by: Iterable[Any] | None = None) -> list[T]:
        return await self.queries.roots(self._session, order_by=order_by)

    async def get_root(self, node: T | Any) -> T:
        return await self.queries.root(self._session, await self._resolve(node))

    async def count_descendants(self, node: T | Any) -> int:
        return await self.queries.count_descendants(self._session, await self._resolve(node))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _resolve(self, node: T | Any) -> T:
        if isinstance(node, self.model):
            return node
        return await self.repository.get_or_raise(self._session, node)

    async def _stage_create(
        self,
        parent_id: Any,
        attributes: Mapping[str, Any],
        *,
        parent: T | None = None,
    ) -> T:
        if parent is None and parent_id is not None:
            parent = await self.validator.validate(self._session, None, parent_id)
        path_attr = getattr(self.model, "__path_column__", "path")
        values = {**attributes, "parent_id": parent_id, path_attr: self.cascade.path_under(parent)}
        node = self.model(**values)
        return await self.repository.create(self._session, node)

    async def _delete_subtree(self, node: T) -> int:
        id_column = self.queries.id_column
        subtree = self.queries.subtree_statement(node).with_only_columns(id_column)
        ids = list((await self._session.execute(subtree)).scalars())
        stmt = (
            sql_delete(self.model)
            .where(id_column.in_(ids))
            .execution_options(synchronize_session="fetch")
        )
        await self._session.execute(stmt)
        return len(ids)


__all__ = ["HierarchyService"]
