"""Core database package with composable base classes, repository and tree engine.

Base Classes and Mixins:
    - Base: Declarative base with auto table naming
    - IntegerPKMixin: Integer primary key
    - TimestampMixin: created_at, updated_at tracking
    - MaterializedPathMixin: parent link, cached ancestor path, navigation helpers

Repository:
    - BaseRepository[T]: Generic CRUD with explicit session passing

Transactions:
    - unit_of_work: flush/commit as one unit, translating concurrency failures
    - commit_or_conflict: commit with the same translation

Exceptions:
    - RepositoryError, NotFoundError
    - HierarchyError, InvalidParentError, MalformedPathError, ConflictError
"""

from treepath_service.core.database.base import (
    NAMING_CONVENTION,
    Base,
    IntegerPKMixin,
    TimestampMixin,
)
from treepath_service.core.database.exceptions import (
    ConflictError,
    HierarchyError,
    InvalidParentError,
    MalformedPathError,
    NotFoundError,
    RepositoryError,
)
from treepath_service.core.database.hierarchy import (
    CascadeResult,
    HierarchyService,
    MaterializedPathMixin,
    PathCodec,
    RebuildReport,
)
from treepath_service.core.database.repository import BaseRepository
from treepath_service.core.database.transactions import (
    commit_or_conflict,
    is_conflict_error,
    unit_of_work,
)

__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "BaseRepository",
    "CascadeResult",
    "ConflictError",
    "HierarchyError",
    "HierarchyService",
    "IntegerPKMixin",
    "InvalidParentError",
    "MalformedPathError",
    "MaterializedPathMixin",
    "NotFoundError",
    "PathCodec",
    "RebuildReport",
    "RepositoryError",
    "TimestampMixin",
    "commit_or_conflict",
    "is_conflict_error",
    "unit_of_work",
]
