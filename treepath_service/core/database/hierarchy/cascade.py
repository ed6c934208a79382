"""Parent changes that carry the whole subtree along.

Moving a node rewrites its own path and swaps the old ``full_path`` prefix
of every descendant for the new one. The descendants keep whatever follows
the prefix, so their relative structure is untouched.

All new paths are computed before any attribute is assigned: an error while
computing leaves every instance exactly as it was loaded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from treepath_service.core.database.hierarchy.codec import PathCodec
from treepath_service.core.database.hierarchy.queries import HierarchyQueries
from treepath_service.core.database.hierarchy.validator import HierarchyValidator
from treepath_service.core.database.repository import BaseRepository
from treepath_service.core.database.transactions import unit_of_work
from treepath_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class CascadeResult(Generic[T]):
    """Outcome of a reparent.

    Attributes:
        node: The moved node (already carrying its new parent and path)
        old_path: Path before the move
        new_path: Path after the move
        descendants_rewritten: Number of descendant paths rewritten
    """

    node: T
    old_path: str
    new_path: str
    descendants_rewritten: int

    @property
    def changed(self) -> bool:
        """Whether the move altered any stored path."""
        return self.old_path != self.new_path or self.descendants_rewritten > 0


@dataclass(slots=True, frozen=True)
class MovePlan(Generic[T]):
    """Paths a move will write, computed before any instance is modified."""

    node: T
    new_parent_id: Any
    old_path: str
    new_path: str
    rewrites: tuple[tuple[T, str], ...]
    changed: bool = True


class CascadeUpdater(Generic[T]):
    """Apply validated parent changes to a node and its descendants."""

    __slots__ = ("model", "codec", "queries", "validator", "_repository", "_logger", "_lazy")

    def __init__(
        self,
        model: type[T],
        codec: PathCodec | None = None,
        *,
        queries: HierarchyQueries[T] | None = None,
        validator: HierarchyValidator[T] | None = None,
    ) -> None:
        self.model = model
        self.codec = codec or PathCodec()
        self.queries = queries or HierarchyQueries(model, self.codec)
        self.validator = validator or HierarchyValidator(model, self.codec)
        self._repository: BaseRepository[T] = BaseRepository(model)
        self._logger = logging.getLogger(f"hierarchy.cascade.{model.__name__}")
        self._lazy = get_lazy_logger(f"hierarchy.cascade.{model.__name__}")

    def path_under(self, parent: T | None) -> str:
        """Path of a node placed directly under parent (None for a root).

        Raises:
            MalformedPathError: The parent's cached path cannot be decoded
        """
        if parent is None:
            return self.codec.root_path
        self.codec.decode(self.queries.path_of(parent))
        return self.queries.full_path(parent)

    async def reparent(
        self,
        session: AsyncSession,
        node_id: Any,
        new_parent_id: Any,
        *,
        commit: bool = False,
    ) -> CascadeResult[T]:
        """Move a node under a new parent (None makes it a root).

        Validation, the node rewrite and every descendant rewrite are flushed
        as one unit.

        Raises:
            NotFoundError: The node does not exist
            InvalidParentError: Self-parent, cycle or missing parent
            MalformedPathError: A cached path involved cannot be decoded
            ConflictError: A concurrent writer invalidated the transaction
        """
        async with unit_of_work(session, operation="hierarchy.reparent", commit=commit):
            node = await self._repository.get_or_raise(session, node_id)
            parent = await self.validator.validate(session, node_id, new_parent_id)
            result = await self.move(session, node, parent)

        if result.changed:
            self._logger.info(
                "Node reparented",
                extra={
                    "entity": self.model.__name__,
                    "node_id": node_id,
                    "parent_id": new_parent_id,
                    "old_path": result.old_path,
                    "new_path": result.new_path,
                    "descendants_rewritten": result.descendants_rewritten,
                },
            )
        return result

    async def move(self, session: AsyncSession, node: T, parent: T | None) -> CascadeResult[T]:
        """Stage an already validated move without flushing.

        Args:
            session: Session of the enclosing unit of work
            node: Node to move
            parent: Validated new parent, None for a root

        Raises:
            MalformedPathError: The node's or the parent's cached path cannot
                be decoded. Nothing has been staged.
        """
        return self.apply(await self.plan_move(session, node, parent))

    async def plan_move(self, session: AsyncSession, node: T, parent: T | None) -> MovePlan[T]:
        """Compute every path a move would write, without touching any instance."""
        new_parent_id = None if parent is None else parent.id  # type: ignore[attr-defined]
        old_path = self.queries.path_of(node)
        new_path = self.path_under(parent)

        if node.parent_id == new_parent_id and old_path == new_path:  # type: ignore[attr-defined]
            return MovePlan(node, new_parent_id, old_path, new_path, (), changed=False)

        # A corrupt path would select the wrong descendants
        self.codec.decode(old_path)
        old_prefix = self.codec.child_prefix(old_path, node.id)  # type: ignore[attr-defined]
        new_prefix = self.codec.child_prefix(new_path, node.id)  # type: ignore[attr-defined]
        descendants = await self.queries.descendants(session, node)
        rewrites = tuple(
            (descendant, self.codec.rebase(self.queries.path_of(descendant), old_prefix, new_prefix))
            for descendant in descendants
        )
        return MovePlan(node, new_parent_id, old_path, new_path, rewrites)

    def apply(self, plan: MovePlan[T]) -> CascadeResult[T]:
        """Assign the paths computed by plan_move."""
        node = plan.node
        if not plan.changed:
            self._lazy.debug(lambda: f"hierarchy.move: {self.model.__name__}({node.id}) unchanged")  # type: ignore[attr-defined]
            return CascadeResult(node, plan.old_path, plan.new_path, 0)

        path_attr = getattr(self.model, "__path_column__", "path")
        for descendant, descendant_path in plan.rewrites:
            setattr(descendant, path_attr, descendant_path)
        node.parent_id = plan.new_parent_id  # type: ignore[attr-defined]
        setattr(node, path_attr, plan.new_path)

        self._lazy.debug(
            lambda: f"hierarchy.move: {self.model.__name__}({node.id}) {plan.old_path!r} -> {plan.new_path!r}, "  # type: ignore[attr-defined]
            f"{len(plan.rewrites)} descendants"
        )
        return CascadeResult(node, plan.old_path, plan.new_path, len(plan.rewrites))


__all__ = ["CascadeResult", "CascadeUpdater", "MovePlan"]
