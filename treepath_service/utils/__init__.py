"""Utility modules for common operations.

This package provides reusable utilities for:
- Retry patterns for callers that opt into retrying conflicting writes
"""

from treepath_service.utils.retry import RetryError, retry, retry_on_conflict

__all__ = [
    "RetryError",
    "retry",
    "retry_on_conflict",
]
