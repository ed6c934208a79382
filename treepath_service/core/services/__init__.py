"""Service layer base classes."""

from treepath_service.core.services.base import BaseService

__all__ = ["BaseService"]
