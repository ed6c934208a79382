"""Delimited materialized path encoding.

A stored path lists a node's strict ancestors root-first, with the delimiter
before, between and after every id:

- root:                 "-"
- child of 1:           "-1-"
- grandchild of 1 -> 4: "-1-4-"

Because every id is delimiter-bounded, "does this path contain ancestor X"
is an exact token question, and "every descendant of node N" is a plain
string prefix match on N's own path plus "N-".

Identifiers must come from a delimiter-free domain. The default codec
accepts non-negative integers only; a custom ``parse_id`` can widen the
domain (for example to hex strings), but encode() always rejects an id whose
text contains the delimiter. No escaping is performed.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable
from typing import TYPE_CHECKING, Any

from treepath_service.core.database.exceptions import MalformedPathError

if TYPE_CHECKING:
    from treepath_service.core.settings.hierarchy import HierarchySettings

DEFAULT_DELIMITER = "-"


def parse_int_id(segment: str) -> int:
    """Parse an integer id segment (digits only, no sign or whitespace)."""
    if not segment.isascii() or not segment.isdigit():
        msg = f"not an integer id: {segment!r}"
        raise ValueError(msg)
    return int(segment)


class PathCodec:
    """Encode and decode ancestor id chains.

    Example:
        >>> codec = PathCodec()
        >>> codec.encode([1, 4])
        '-1-4-'
        >>> codec.decode("-1-4-")
        [1, 4]
        >>> codec.child_prefix("-1-", 4)
        '-1-4-'
        >>> codec.root_path
        '-'
    """

    __slots__ = ("delimiter", "parse_id")

    def __init__(
        self,
        delimiter: str = DEFAULT_DELIMITER,
        parse_id: Callable[[str], Hashable] = parse_int_id,
    ) -> None:
        """Initialize codec.

        Args:
            delimiter: Single character separating ids.
            parse_id: Converts one path segment back into an id. Must raise
                ValueError for segments outside the identifier domain.

        Raises:
            ValueError: If the delimiter is not exactly one character.
        """
        if len(delimiter) != 1:
            msg = f"Path delimiter must be a single character, got {delimiter!r}"
            raise ValueError(msg)
        self.delimiter = delimiter
        self.parse_id = parse_id

    @classmethod
    def from_settings(cls, settings: HierarchySettings) -> PathCodec:
        """Build a codec using the configured delimiter."""
        return cls(delimiter=settings.path_delimiter)

    @property
    def root_path(self) -> str:
        """Encoding of the empty chain."""
        return self.delimiter

    def format_id(self, node_id: Any) -> str:
        """Render one id as a path segment.

        Raises:
            MalformedPathError: If the id is empty, contains the delimiter, or
                does not survive a round trip through parse_id.
        """
        text = str(node_id)
        if not text:
            raise MalformedPathError(text, "empty identifier")
        if self.delimiter in text:
            raise MalformedPathError(text, f"identifier contains delimiter {self.delimiter!r}")
        try:
            self.parse_id(text)
        except ValueError as exc:
            raise MalformedPathError(text, f"identifier outside codec domain: {exc}") from exc
        return text

    def encode(self, ancestor_ids: Iterable[Any]) -> str:
        """Encode a root-first id chain.

        Args:
            ancestor_ids: Strict ancestors, root first.

        Returns:
            Delimited path; the bare delimiter for an empty chain.
        """
        segments = [self.format_id(node_id) for node_id in ancestor_ids]
        if not segments:
            return self.delimiter
        d = self.delimiter
        return f"{d}{d.join(segments)}{d}"

    def decode(self, path: str | None) -> list[Any]:
        """Decode a stored path into its root-first id chain.

        Raises:
            MalformedPathError: If the path is missing, is not delimiter-bounded,
                has an empty segment, or has a segment parse_id rejects.
        """
        if path is None:
            raise MalformedPathError("", "path is missing")
        d = self.delimiter
        if len(path) < 1 or not path.startswith(d) or not path.endswith(d):
            raise MalformedPathError(path, f"path must start and end with {d!r}")
        if path == d:
            return []

        ids: list[Any] = []
        for segment in path[1:-1].split(d):
            if not segment:
                raise MalformedPathError(path, "empty segment")
            try:
                ids.append(self.parse_id(segment))
            except ValueError as exc:
                raise MalformedPathError(path, f"bad segment {segment!r}") from exc
        return ids

    def is_valid(self, path: str | None) -> bool:
        """Return True if path decodes cleanly."""
        try:
            self.decode(path)
        except MalformedPathError:
            return False
        return True

    def child_prefix(self, path: str, node_id: Any) -> str:
        """Path shared by every child of the node at ``path`` with ``node_id``.

        This is the node's own path plus its id: the prefix every descendant's
        stored path starts with.
        """
        return f"{path}{self.format_id(node_id)}{self.delimiter}"

    def depth(self, path: str) -> int:
        """Number of ancestors encoded in path (0 for a root)."""
        return len(self.decode(path))

    def contains(self, path: str, node_id: Any) -> bool:
        """Exact-token membership test: is node_id one of the encoded ancestors?"""
        return node_id in set(self.decode(path))

    def rebase(self, path: str, old_prefix: str, new_prefix: str) -> str:
        """Swap the leading ``old_prefix`` of a descendant's path for ``new_prefix``.

        Raises:
            MalformedPathError: If path does not start with old_prefix.
        """
        if not path.startswith(old_prefix):
            raise MalformedPathError(path, f"expected prefix {old_prefix!r}")
        return new_prefix + path[len(old_prefix) :]

    def __repr__(self) -> str:
        return f"PathCodec(delimiter={self.delimiter!r})"


__all__ = [
    "DEFAULT_DELIMITER",
    "PathCodec",
    "parse_int_id",
]
