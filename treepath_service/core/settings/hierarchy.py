"""Hierarchy engine settings.

Controls how materialized paths are encoded and how the engine resolves the
policy questions that have more than one reasonable answer (root siblings,
what happens to children when a node is deleted).

Environment variables use HIERARCHY_ prefix.
Example: HIERARCHY_PATH_DELIMITER=/, HIERARCHY_ORPHAN_POLICY=cascade
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .yaml_sources import create_hierarchy_yaml_source

OrphanPolicy = Literal["restrict", "cascade", "reparent"]

# LIKE wildcards and the escape character cannot be used as delimiters
_FORBIDDEN_DELIMITERS = frozenset({"%", "_", "\\"})


class HierarchySettings(BaseSettings):
    """Materialized path configuration.

    Attributes:
        path_delimiter: Single character separating ids in a stored path.
        roots_are_siblings: Whether root nodes count as siblings of each other.
        orphan_policy: What delete_node does with the children of a deleted node.
        rebuild_commit: Commit the session after a rebuild pass.
        lock_parent_rows: SELECT ... FOR UPDATE the proposed parent during validation.
    """

    path_delimiter: str = Field(
        default="-",
        min_length=1,
        max_length=1,
        description="Character separating ancestor ids in stored paths",
    )
    roots_are_siblings: bool = Field(
        default=True,
        description="Treat all root nodes as siblings (they share parent_id = NULL)",
    )
    orphan_policy: OrphanPolicy = Field(
        default="restrict",
        description="Deletion policy for nodes with children (restrict|cascade|reparent)",
    )
    rebuild_commit: bool = Field(
        default=True,
        description="Commit the session once a rebuild pass completes",
    )
    lock_parent_rows: bool = Field(
        default=True,
        description="Lock the proposed parent row while validating a reparent",
    )

    @field_validator("path_delimiter")
    @classmethod
    def validate_delimiter(cls, v: str) -> str:
        """Reject alphanumerics and LIKE metacharacters."""
        if v.isalnum() or v.isspace() or v in _FORBIDDEN_DELIMITERS:
            msg = f"Invalid path delimiter {v!r}: must be a non-alphanumeric, non-wildcard character"
            raise ValueError(msg)
        return v

    @field_validator("orphan_policy", mode="before")
    @classmethod
    def normalize_policy(cls, v: str) -> str:
        if isinstance(v, str):
            return v.lower()
        return v

    model_config = SettingsConfigDict(
        env_prefix="HIERARCHY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings source precedence: init > yaml > env > dotenv > secrets."""
        return (
            init_settings,
            create_hierarchy_yaml_source(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )


__all__ = ["HierarchySettings", "OrphanPolicy"]
