"""Shared utilities."""

from migrator.utils.retry import (
    NonRetryableError,
    backoff_delay,
    is_permission_error,
    retry_with_exponential_backoff,
)

__all__ = [
    "NonRetryableError",
    "backoff_delay",
    "is_permission_error",
    "retry_with_exponential_backoff",
]
