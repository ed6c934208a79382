"""Logging infrastructure.

Provides structured logging with:
- JSONL format for log aggregation
- Automatic context injection (model, node_id, operation, ...)
- QueueHandler + QueueListener for non-blocking I/O
- Lazy evaluation for expensive DEBUG output

Basic usage:
    import logging

    from treepath_service.infra.logging import get_lazy_logger, log_context

    logger = logging.getLogger(__name__)
    lazy_logger = get_lazy_logger(__name__)

    with log_context(operation="hierarchy.rebuild"):
        logger.info("Rebuild started")
        lazy_logger.debug(lambda: f"Frontier: {sorted(frontier)}")
"""

from treepath_service.infra.logging.config import (
    configure_logging,
    setup_logging,
    shutdown,
)
from treepath_service.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    log_context,
    remove_from_log_context,
    set_log_context,
)
from treepath_service.infra.logging.formatters import JSONFormatter
from treepath_service.infra.logging.lazy import (
    LazyLoggerAdapter,
    LazyString,
    get_lazy_logger,
    lazy,
)

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "LazyString",
    "clear_log_context",
    "configure_logging",
    "get_lazy_logger",
    "get_log_context",
    "lazy",
    "log_context",
    "remove_from_log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
