"""Parent assignment validation.

A proposed (node, parent) pair is legal unless the node would become its
own parent or its own ancestor. Cycle detection reads only the proposed
parent's cached path: the node is an ancestor of the parent exactly when its
id is one of the decoded path tokens, or is the parent itself.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Generic, NoReturn, TypeVar

from treepath_service.core.database.exceptions import InvalidParentError
from treepath_service.core.database.hierarchy.codec import PathCodec
from treepath_service.core.database.repository import BaseRepository
from treepath_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


T = TypeVar("T")


class HierarchyValidator(Generic[T]):
    """Decide whether a node may be placed under a proposed parent.

    Args:
        model: Mapped class using MaterializedPathMixin
        codec: Path codec matching the stored paths
        lock_parent_rows: Select the proposed parent FOR UPDATE so concurrent
            writers serialize on it
    """

    __slots__ = ("model", "codec", "lock_parent_rows", "_repository", "_logger", "_lazy")

    def __init__(
        self,
        model: type[T],
        codec: PathCodec | None = None,
        *,
        lock_parent_rows: bool = True,
    ) -> None:
        self.model = model
        self.codec = codec or PathCodec()
        self.lock_parent_rows = lock_parent_rows
        self._repository: BaseRepository[T] = BaseRepository(model)
        self._logger = logging.getLogger(f"hierarchy.validator.{model.__name__}")
        self._lazy = get_lazy_logger(f"hierarchy.validator.{model.__name__}")

    async def validate(
        self,
        session: AsyncSession,
        node_id: Any,
        proposed_parent_id: Any,
    ) -> T | None:
        """Check a proposed parent assignment.

        Args:
            session: Session of the enclosing unit of work
            node_id: Node being moved, or None for a node not yet stored
            proposed_parent_id: New parent, or None to make the node a root

        Returns:
            The loaded parent row (None when the node becomes a root), so
            callers can derive the new path without a second read.

        Raises:
            InvalidParentError: Self-parent, cycle, or missing parent
            MalformedPathError: The parent's cached path cannot be decoded
        """
        if node_id is not None and proposed_parent_id == node_id:
            self._reject(node_id, proposed_parent_id, InvalidParentError.SELF_PARENT)

        if proposed_parent_id is None:
            return None

        parent = await self._repository.get(
            session, proposed_parent_id, for_update=self.lock_parent_rows
        )
        if parent is None:
            self._reject(node_id, proposed_parent_id, InvalidParentError.PARENT_NOT_FOUND)

        path_column = getattr(self.model, "__path_column__", "path")
        parent_chain = self.codec.decode(getattr(parent, path_column))

        if node_id is not None:
            lineage = set(parent_chain)
            lineage.add(parent.id)  # type: ignore[attr-defined]
            if node_id in lineage:
                self._reject(node_id, proposed_parent_id, InvalidParentError.CYCLE)

        self._lazy.debug(
            lambda: f"hierarchy.validate: {self.model.__name__}({node_id}) -> parent {proposed_parent_id} ok"
        )
        return parent

    def _reject(self, node_id: Any, parent_id: Any, reason: str) -> NoReturn:
        self._logger.info(
            "Rejected parent assignment",
            extra={
                "entity": self.model.__name__,
                "node_id": node_id,
                "parent_id": parent_id,
                "reason": reason,
            },
        )
        raise InvalidParentError(node_id, parent_id, reason)


__all__ = ["HierarchyValidator"]
