"""Base service class for business logic."""

from __future__ import annotations

import logging

from treepath_service.infra.logging import get_lazy_logger


class BaseService:
    """Base class for all service classes.

    Loggers:
        - self.logger: Standard logger for INFO/WARNING/ERROR (always evaluated)
        - self._lazy: Lazy logger for DEBUG (zero overhead when DEBUG disabled)

    Example:
        class CatalogService(BaseService):
            def __init__(self, session: AsyncSession):
                super().__init__()
                self._session = session

            async def move_category(self, category_id: int, parent_id: int) -> None:
                self.logger.info("Moving category", extra={"category_id": category_id})
                self._lazy.debug(lambda: f"State: {expensive_computation()}")
    """

    def __init__(self) -> None:
        """Initialize base service with loggers."""
        class_name = self.__class__.__name__
        # Standard logger for INFO/WARNING/ERROR
        self.logger = logging.getLogger(class_name)
        # Lazy logger for DEBUG (zero overhead when DEBUG disabled)
        self._lazy = get_lazy_logger(class_name)
