"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process.

Usage:
    from treepath_service.core.settings.loader import get_hierarchy_settings

    settings = get_hierarchy_settings()  # First call: loads and validates
    settings = get_hierarchy_settings()  # Subsequent calls: cached instance

Testing:
    clear_all_caches() forces a reload, or construct settings directly:
    settings = HierarchySettings(path_delimiter="/")
"""

from __future__ import annotations

from functools import lru_cache

from .database import DatabaseSettings
from .hierarchy import HierarchySettings
from .logs import LoggingSettings


@lru_cache(maxsize=1)
def get_hierarchy_settings() -> HierarchySettings:
    """Get cached hierarchy settings.

    Returns:
        Validated and frozen HierarchySettings instance.
    """
    return HierarchySettings()


@lru_cache(maxsize=1)
def get_db_settings() -> DatabaseSettings:
    """Get cached database settings.

    Returns:
        Validated and frozen DatabaseSettings instance.
    """
    return DatabaseSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings.

    Returns:
        Validated and frozen LoggingSettings instance.
    """
    return LoggingSettings()


def clear_all_caches() -> None:
    """Clear all settings caches.

    Useful for testing or when you need to force reload settings.
    """
    get_hierarchy_settings.cache_clear()
    get_db_settings.cache_clear()
    get_logging_settings.cache_clear()
