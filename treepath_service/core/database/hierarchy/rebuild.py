"""Reconstruct cached paths from raw parent links.

The rebuild never reads a cached path. It loads ``(id, parent_id)`` pairs,
walks breadth-first from the roots and assigns each level's paths before
descending, flushing once per level. Rows the walk never reaches (members
of a parent cycle, rows hanging below one, rows whose parent is missing)
are reported and left untouched.

Running it twice yields the same paths; the second pass rewrites nothing.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from sqlalchemy import func, select

from treepath_service.core.database.exceptions import MalformedPathError
from treepath_service.core.database.hierarchy.codec import PathCodec
from treepath_service.core.database.repository import BaseRepository
from treepath_service.core.database.transactions import unit_of_work
from treepath_service.infra.logging import get_lazy_logger, log_context

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

# Keeps IN (...) lists well below driver bind-parameter limits
_BATCH_SIZE = 500

# Error reasons reported per node
CYCLE = "cycle"
BELOW_CYCLE = "below_cycle"
MISSING_PARENT = "missing_parent"
BELOW_MISSING_PARENT = "below_missing_parent"
UNENCODABLE_ID = "unencodable_id"
BELOW_UNENCODABLE_ID = "below_unencodable_id"


T = TypeVar("T")


@dataclass(slots=True)
class RebuildReport:
    """Outcome of a rebuild pass.

    Attributes:
        processed: Nodes that received a path
        updated: Nodes whose stored path actually changed
        errors: ``(node_id, reason)`` for every node left untouched
    """

    processed: int = 0
    updated: int = 0
    errors: list[tuple[Any, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def failed_ids(self) -> set[Any]:
        return {node_id for node_id, _ in self.errors}


class RebuildEngine(Generic[T]):
    """Recompute every cached path (or one subtree's) from parent links."""

    __slots__ = ("model", "codec", "_repository", "_logger", "_lazy")

    def __init__(self, model: type[T], codec: PathCodec | None = None) -> None:
        self.model = model
        self.codec = codec or PathCodec()
        self._repository: BaseRepository[T] = BaseRepository(model)
        self._logger = logging.getLogger(f"hierarchy.rebuild.{model.__name__}")
        self._lazy = get_lazy_logger(f"hierarchy.rebuild.{model.__name__}")

    @property
    def _id_column(self) -> Any:
        return self.model.id  # type: ignore[attr-defined]

    @property
    def _parent_column(self) -> Any:
        return self.model.parent_id  # type: ignore[attr-defined]

    async def rebuild_all(self, session: AsyncSession, *, commit: bool = False) -> RebuildReport:
        """Rebuild every path in the table.

        Args:
            session: Session the rebuild runs in; nothing else should write
                hierarchy rows while it runs
            commit: Commit once the pass completes

        Returns:
            Report of processed nodes and per-node errors
        """
        with log_context(operation="hierarchy.rebuild_all", entity=self.model.__name__):
            async with unit_of_work(session, operation="hierarchy.rebuild_all", commit=commit):
                links = await self._load_links(session)
                children: dict[Any, list[Any]] = defaultdict(list)
                roots: list[Any] = []
                for node_id, parent_id in links.items():
                    if parent_id is None:
                        roots.append(node_id)
                    else:
                        children[parent_id].append(node_id)

                report = RebuildReport()
                chains = {root_id: [] for root_id in roots}
                failed = await self._walk(session, chains, children, report)
                self._classify_unreached(links, chains.keys() | failed, failed, report)

            self._log_report(report, "Rebuild complete")
        return report

    async def rebuild_subtree(
        self,
        session: AsyncSession,
        node_id: Any,
        *,
        commit: bool = False,
    ) -> RebuildReport:
        """Rebuild one node and everything below it.

        The node's own chain comes from following parent links upward, at
        most as many steps as there are rows.

        Raises:
            NotFoundError: The node does not exist
        """
        with log_context(operation="hierarchy.rebuild_subtree", entity=self.model.__name__):
            async with unit_of_work(session, operation="hierarchy.rebuild_subtree", commit=commit):
                await self._repository.get_or_raise(session, node_id)
                report = RebuildReport()
                chain, reason = await self._chain_from_links(session, node_id)
                if reason is not None:
                    report.errors.append((node_id, reason))
                else:
                    children = await self._load_children_of(session, node_id)
                    chains = {node_id: chain}
                    failed = await self._walk(session, chains, children, report)
                    if failed:
                        # Rows missing from chains sit below a failed id
                        report.errors.extend(
                            (child_id, BELOW_UNENCODABLE_ID)
                            for child_ids in children.values()
                            for child_id in child_ids
                            if child_id not in chains
                        )

            self._log_report(report, "Subtree rebuild complete")
        return report

    async def _walk(
        self,
        session: AsyncSession,
        chains: dict[Any, list[Any]],
        children: dict[Any, list[Any]],
        report: RebuildReport,
    ) -> set[Any]:
        """Assign paths breadth-first starting from the given frontier.

        ``chains`` maps each start node to its ancestor chain and is extended
        in place with every node reached. Returns the ids that could not be
        encoded.
        """
        failed: set[Any] = set()
        level = list(chains)
        depth = 0
        while level:
            paths: dict[Any, str] = {}
            for node_id in level:
                try:
                    self.codec.format_id(node_id)
                    paths[node_id] = self.codec.encode(chains[node_id])
                except MalformedPathError:
                    failed.add(node_id)
                    report.errors.append((node_id, UNENCODABLE_ID))

            await self._write_level(session, paths, report)
            self._lazy.debug(
                lambda: f"hierarchy.rebuild: level {depth} -> {len(paths)} paths"  # noqa: B023
            )

            next_level: list[Any] = []
            for node_id in paths:
                chain = [*chains[node_id], node_id]
                for child_id in children.get(node_id, ()):
                    if child_id in chains:
                        continue
                    chains[child_id] = chain
                    next_level.append(child_id)
            level = next_level
            depth += 1
        return failed

    async def _write_level(
        self,
        session: AsyncSession,
        paths: dict[Any, str],
        report: RebuildReport,
    ) -> None:
        path_attr = getattr(self.model, "__path_column__", "path")
        ids = list(paths)
        for start in range(0, len(ids), _BATCH_SIZE):
            batch = ids[start : start + _BATCH_SIZE]
            result = await session.execute(select(self.model).where(self._id_column.in_(batch)))
            for node in result.scalars():
                new_path = paths[node.id]  # type: ignore[attr-defined]
                if getattr(node, path_attr) != new_path:
                    setattr(node, path_attr, new_path)
                    report.updated += 1
                report.processed += 1
        await session.flush()

    async def _load_links(self, session: AsyncSession) -> dict[Any, Any]:
        stmt = select(self._id_column, self._parent_column).order_by(self._id_column)
        result = await session.execute(stmt)
        return {node_id: parent_id for node_id, parent_id in result.all()}

    async def _load_children_of(self, session: AsyncSession, node_id: Any) -> dict[Any, list[Any]]:
        """Children index of the subtree under node_id, built level by level."""
        children: dict[Any, list[Any]] = defaultdict(list)
        seen = {node_id}
        frontier = [node_id]
        while frontier:
            next_frontier: list[Any] = []
            for start in range(0, len(frontier), _BATCH_SIZE):
                batch = frontier[start : start + _BATCH_SIZE]
                stmt = (
                    select(self._id_column, self._parent_column)
                    .where(self._parent_column.in_(batch))
                    .order_by(self._id_column)
                )
                for child_id, parent_id in (await session.execute(stmt)).all():
                    if child_id in seen:
                        continue
                    seen.add(child_id)
                    children[parent_id].append(child_id)
                    next_frontier.append(child_id)
            frontier = next_frontier
        return children

    async def _chain_from_links(self, session: AsyncSession, node_id: Any) -> tuple[list[Any], str | None]:
        """Ancestor chain of node_id following parent links, root first.

        Returns:
            ``(chain, None)`` on success, ``([], reason)`` when the walk hits a
            cycle or a missing parent
        """
        row_count = (await session.execute(select(func.count()).select_from(self.model))).scalar_one()
        chain: list[Any] = []
        seen = {node_id}
        current = node_id
        for _ in range(row_count):
            stmt = select(self._parent_column).where(self._id_column == current)
            parent_id = (await session.execute(stmt)).scalar_one_or_none()
            if parent_id is None:
                chain.reverse()
                return chain, None
            if parent_id in seen:
                return [], CYCLE if parent_id == node_id else BELOW_CYCLE
            exists = (
                await session.execute(select(self._id_column).where(self._id_column == parent_id))
            ).scalar_one_or_none()
            if exists is None:
                return [], MISSING_PARENT if current == node_id else BELOW_MISSING_PARENT
            seen.add(parent_id)
            chain.append(parent_id)
            current = parent_id
        return [], CYCLE

    def _classify_unreached(
        self,
        links: dict[Any, Any],
        reached: Iterable[Any],
        failed: set[Any],
        report: RebuildReport,
    ) -> None:
        """Attach a reason to every row the walk did not assign."""
        reached = set(reached)
        for node_id in links:
            if node_id in reached:
                continue
            lineage = [node_id]
            positions = {node_id: 0}
            reason = CYCLE
            current = links[node_id]
            while True:
                if current not in links:
                    reason = MISSING_PARENT if len(lineage) == 1 else BELOW_MISSING_PARENT
                    break
                if current in failed:
                    reason = BELOW_UNENCODABLE_ID
                    break
                if current in positions:
                    # node_id is on the cycle only if the walk came back to it
                    reason = CYCLE if positions[current] == 0 else BELOW_CYCLE
                    break
                positions[current] = len(lineage)
                lineage.append(current)
                current = links[current]
            report.errors.append((node_id, reason))

    def _log_report(self, report: RebuildReport, message: str) -> None:
        extra = {
            "entity": self.model.__name__,
            "processed": report.processed,
            "updated": report.updated,
            "errors": len(report.errors),
        }
        if report.errors:
            self._logger.warning(message, extra={**extra, "failed_ids": sorted(map(str, report.failed_ids))})
        else:
            self._logger.info(message, extra=extra)


__all__ = [
    "BELOW_CYCLE",
    "BELOW_MISSING_PARENT",
    "BELOW_UNENCODABLE_ID",
    "CYCLE",
    "MISSING_PARENT",
    "UNENCODABLE_ID",
    "RebuildEngine",
    "RebuildReport",
]
