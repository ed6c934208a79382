"""Hierarchical data support using materialized paths.

A node stores its strict ancestors as a delimited string, root first
("-1-4-" for a node under 4 under 1, "-" for a root). Ancestor, descendant,
subtree, sibling and root queries become plain equality or prefix matches,
so they run on any SQL dialect without recursive CTEs.

Components:
    - PathCodec: encode/decode ancestor id chains
    - HierarchyValidator: rejects self-parenting and cycles
    - CascadeUpdater: moves a node and rewrites its descendants' paths
    - HierarchyQueries: statement builders for tree navigation
    - RebuildEngine: recomputes paths from parent links
    - MaterializedPathMixin: columns and navigation helpers for models
    - HierarchyService: the operations above over one session

Example:
    >>> from treepath_service.core.database import Base, IntegerPKMixin
    >>> from treepath_service.core.database.hierarchy import HierarchyService, MaterializedPathMixin
    >>>
    >>> class Place(Base, IntegerPKMixin, MaterializedPathMixin):
    ...     __tablename__ = "places"
    ...     name: Mapped[str] = mapped_column(String(255))
    >>>
    >>> places = HierarchyService(session, Place)
    >>> australia = await places.create_node(name="Australia")
    >>> victoria = await places.create_node(australia.id, name="Victoria")
    >>> victoria.path
    '-1-'
    >>> await victoria.get_ancestors(session)
    [<Place Australia>]
"""

from treepath_service.core.database.hierarchy.cascade import CascadeResult, CascadeUpdater, MovePlan
from treepath_service.core.database.hierarchy.codec import (
    DEFAULT_DELIMITER,
    PathCodec,
    parse_int_id,
)
from treepath_service.core.database.hierarchy.mixins import MaterializedPathMixin
from treepath_service.core.database.hierarchy.queries import HierarchyQueries
from treepath_service.core.database.hierarchy.rebuild import RebuildEngine, RebuildReport
from treepath_service.core.database.hierarchy.service import HierarchyService
from treepath_service.core.database.hierarchy.validator import HierarchyValidator

__all__ = [
    "DEFAULT_DELIMITER",
    "CascadeResult",
    "CascadeUpdater",
    "MovePlan",
    "HierarchyQueries",
    "HierarchyService",
    "HierarchyValidator",
    "MaterializedPathMixin",
    "PathCodec",
    "RebuildEngine",
    "RebuildReport",
    "parse_int_id",
]
