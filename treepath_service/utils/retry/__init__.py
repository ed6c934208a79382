from __future__ import annotations

from treepath_service.utils.retry.conflict import is_retryable_conflict, retry_on_conflict
from treepath_service.utils.retry.decorator import retry
from treepath_service.utils.retry.exceptions import RetryError, RetryStatistics
from treepath_service.utils.retry.strategies import RetryStrategy

__all__ = [
    "RetryError",
    "RetryStatistics",
    "RetryStrategy",
    "is_retryable_conflict",
    "retry",
    "retry_on_conflict",
]
