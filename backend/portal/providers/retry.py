"""Retry strategy for store operations.

Exponential backoff with jitter for write conflicts and transient errors.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeVar

from portal.providers.errors import TransientStoreError, WriteConflictError

__all__ = ["with_retries"]

if TYPE_CHECKING:
    from portal.providers.config import ProviderConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retries(
    func: Callable[[], Awaitable[T]],
    config: "ProviderConfig",
    retryable_errors: tuple[type[Exception], ...] = (
        TransientStoreError,
        WriteConflictError,
    ),
) -> T:
    """Execute function with exponential backoff retry.

    The function is re-invoked from scratch on every attempt, so it must
    re-read whatever state it depends on.

    Args:
        func: Async function to execute (no arguments).
        config: Provider configuration with retry settings.
        retryable_errors: Tuple of error types that should trigger retry.

    Returns:
        Result from successful function execution.

    Raises:
        TransientStoreError: If all retries exhausted due to transient failures.
        WriteConflictError: If all retries exhausted due to conflicts.
        RuntimeError: If retry loop exits unexpectedly without error or result.
    """
    last_error: Exception | None = None

    for attempt in range(config.max_retries + 1):
        try:
            return await func()
        except retryable_errors as e:
            last_error = e

            if attempt == config.max_retries:
                break  # No more retries

            base_delay = config.retry_base_delay_ms * (2**attempt)
            jitter = random.uniform(0, base_delay * 0.1)
            delay = min(base_delay + jitter, config.retry_max_delay_ms) / 1000

            logger.warning(
                "Store error (attempt %d/%d): %s. Retrying in %.2fs",
                attempt + 1,
                config.max_retries + 1,
                e,
                delay,
            )

            await asyncio.sleep(delay)

    if last_error is not None:
        raise last_error
    raise RuntimeError("Retry loop exited without error or result")
