"""Modular Pydantic Settings v2 configuration.

One frozen settings model per domain (hierarchy/db/logging), loaded from
environment variables with optional YAML/conf.d files for local development.

Import settings via cached loaders:
    from treepath_service.core.settings import get_hierarchy_settings

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. YAML/conf.d files (optional, local/dev)
    3. Environment variables (production)
    4. .env file (development only)
    5. secrets_dir (Kubernetes/Docker secrets)
"""

from __future__ import annotations

from .database import DatabaseSettings
from .hierarchy import HierarchySettings, OrphanPolicy
from .loader import (
    clear_all_caches,
    get_db_settings,
    get_hierarchy_settings,
    get_logging_settings,
)
from .logs import LoggingSettings

__all__ = [
    "DatabaseSettings",
    "HierarchySettings",
    "LoggingSettings",
    "OrphanPolicy",
    "clear_all_caches",
    "get_db_settings",
    "get_hierarchy_settings",
    "get_logging_settings",
]
