"""Database repository and hierarchy exceptions.

Custom exceptions for repository and tree operations that provide better
error messages and typing than raw SQLAlchemy exceptions.
"""
from __future__ import annotations

from typing import Any


class RepositoryError(Exception):
    """Base exception for repository operations.

    Raised when a repository operation fails due to programming
    errors, configuration issues, or unexpected states.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize repository error.

        Args:
            message: Error description
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with details."""
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class NotFoundError(RepositoryError):
    """Entity not found in database.

    Raised when a node being mutated does not exist, or disappears while a
    cascade is in flight.

    Attributes:
        model_name: Name of the model class that wasn't found
        identifier: The key/value that was searched for
    """

    def __init__(self, model_name: str, identifier: dict[str, Any]):
        """Initialize not found error.

        Args:
            model_name: Name of the model (e.g., "Category")
            identifier: Key-value pairs used in the search (e.g., {"id": 123})
        """
        self.model_name = model_name
        self.identifier = identifier

        id_str = ", ".join(f"{k}={v!r}" for k, v in identifier.items())
        message = f"{model_name} not found with {id_str}"

        super().__init__(message, details={"model": model_name, **identifier})

    def __repr__(self) -> str:
        return f"NotFoundError(model={self.model_name!r}, identifier={self.identifier!r})"


class HierarchyError(RepositoryError):
    """Base exception for materialized path hierarchy operations."""


class InvalidParentError(HierarchyError):
    """Proposed parent assignment would break the tree.

    Always raised before any write is applied.

    Attributes:
        node_id: Node being created, moved or deleted (None for a new node)
        parent_id: Proposed parent
        reason: One of "self_parent", "cycle", "parent_not_found", "has_children"
    """

    SELF_PARENT = "self_parent"
    CYCLE = "cycle"
    PARENT_NOT_FOUND = "parent_not_found"
    HAS_CHILDREN = "has_children"

    _MESSAGES = {
        SELF_PARENT: "A node cannot be its own parent",
        CYCLE: "A node cannot be moved under its own descendant",
        PARENT_NOT_FOUND: "Proposed parent does not exist",
        HAS_CHILDREN: "Node has children and the orphan policy is restrict",
    }

    def __init__(self, node_id: Any, parent_id: Any, reason: str):
        self.node_id = node_id
        self.parent_id = parent_id
        self.reason = reason
        super().__init__(
            self._MESSAGES.get(reason, "Invalid parent"),
            details={"node_id": node_id, "parent_id": parent_id, "reason": reason},
        )


class MalformedPathError(HierarchyError):
    """Stored path cannot be decoded, or an id cannot be encoded.

    Attributes:
        path: The offending path string or identifier text
        reason: Short machine-readable description
    """

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Malformed path: {reason}", details={"path": path})


class ConflictError(HierarchyError):
    """A concurrent structural change invalidated the transaction.

    The session has been rolled back. Callers may retry the whole operation
    against a fresh snapshot.
    """

    retryable = True

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details=details)


__all__ = [
    "ConflictError",
    "HierarchyError",
    "InvalidParentError",
    "MalformedPathError",
    "NotFoundError",
    "RepositoryError",
]
