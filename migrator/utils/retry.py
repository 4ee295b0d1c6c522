"""Retry helpers for transient failures in the document store and directory."""

import asyncio
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, Type, TypeVar, cast

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[Any]]

# Substrings of errors that retrying cannot fix
PERMISSION_PATTERNS = (
    "permission denied",
    "access denied",
    "authentication failure",
    "authentication failed",
    "not authorized",
    "unauthorized",
    "insufficient privileges",
    "bucket not found",
)


class NonRetryableError(Exception):
    """Wraps an error that should NOT trigger retry."""

    pass


def backoff_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float = 2.0,
) -> float:
    """Delay before retry number ``attempt`` (0-based), capped at max_delay."""
    return min(base_delay * (exponential_base ** attempt), max_delay)


def retry_with_exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    retryable_exceptions: tuple[Type[Exception], ...] = (Exception,),
    non_retryable_exceptions: tuple[Type[Exception], ...] = (NonRetryableError,),
    sleep: Sleep = asyncio.sleep,
):
    """
    Retry an async callable with exponential backoff.

    Args:
        max_retries: Retries after the first attempt
        base_delay: Delay before the first retry, in seconds
        max_delay: Upper bound for any single delay
        exponential_base: Growth factor between retries
        retryable_exceptions: Exception types that trigger a retry
        non_retryable_exceptions: Exception types re-raised at once
        sleep: Awaitable sleep used between attempts

    Example:
        @retry_with_exponential_backoff(max_retries=2, base_delay=0.5)
        async def fetch_page(offset):
            return await source.fetch_page(offset, 1000)
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        name = func.__qualname__

        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempts = max_retries + 1

            for attempt in range(attempts):
                try:
                    result = await func(*args, **kwargs)
                except non_retryable_exceptions as e:
                    logger.error(f"{name} failed with a non-retryable error: {e}")
                    raise
                except retryable_exceptions as e:
                    if attempt + 1 >= attempts:
                        logger.error(f"{name} failed after {attempts} attempts: {e}")
                        raise
                    delay = backoff_delay(attempt, base_delay, max_delay, exponential_base)
                    logger.warning(
                        f"{name} attempt {attempt + 1}/{attempts} failed: {e}. "
                        f"Retrying in {delay:.2f}s"
                    )
                    await sleep(delay)
                else:
                    if attempt:
                        logger.info(f"{name} succeeded on attempt {attempt + 1}")
                    return result

            raise RuntimeError(f"{name} made no attempts (max_retries={max_retries})")

        return cast(Callable[..., Awaitable[T]], wrapper)

    return decorator


def is_permission_error(error: Exception) -> bool:
    """Credential, permission or missing-bucket errors are not worth retrying."""
    message = str(error).lower()
    return any(pattern in message for pattern in PERMISSION_PATTERNS)
