"""Bounded retries for store I/O

Only transient failures are retried: store timeouts, HTTP 429 and 5xx from a
remote store, rejected writes and OS-level I/O errors. Delays grow
exponentially with jitter; after max_retries the last error propagates and the
caller decides whether the write is lost.
"""

import asyncio
import random
import logging
from typing import Any, Callable, Optional, TypeVar
import httpx

from pet_progression.exceptions import StoreReadError, StoreWriteError
from pet_progression.resilience.metrics import record_retry

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Retry configuration
MAX_RETRIES = 3
BASE_DELAY = 1.0  # seconds
MAX_DELAY = 30.0  # seconds
JITTER = 0.1  # 10% random jitter


def is_retryable_error(exc: Exception) -> bool:
    """
    Determine if error is transient and should be retried.

    Retryable errors:
    - Network timeouts
    - HTTP 429 (rate limit)
    - HTTP 500/502/503/504 (server errors)
    - StoreReadError / StoreWriteError, judged by their cause
    - OS-level I/O errors and asyncio timeouts

    Non-retryable errors:
    - HTTP 400/401/403/404 (client errors)
    - Programming errors (ValueError, TypeError, KeyError)

    Args:
        exc: The exception to check

    Returns:
        True if error should be retried, False otherwise
    """
    # HTTPX errors
    if isinstance(exc, httpx.HTTPStatusError):
        # Retry on rate limits and server errors
        status_code = exc.response.status_code
        return status_code in [429, 500, 502, 503, 504]

    if isinstance(exc, (httpx.TimeoutException, httpx.ConnectError)):
        return True

    # Wrapped store errors are judged by what caused them
    if isinstance(exc, (StoreReadError, StoreWriteError)):
        if exc.cause is not None:
            return is_retryable_error(exc.cause)
        return True

    if isinstance(exc, (OSError, asyncio.TimeoutError)):
        return True

    # Default: don't retry unknown errors
    return False


def calculate_backoff(attempt: int, base_delay: float = BASE_DELAY) -> float:
    """
    Delay before retry number attempt.

    min(base_delay * 2**attempt, MAX_DELAY), then +/- JITTER of that value

    Args:
        attempt: The retry attempt number (0-indexed)
        base_delay: Delay for the first retry in seconds

    Returns:
        Delay in seconds

    Example:
        With PERSIST_BASE_DELAY_SECONDS=0.25: ~0.25s, ~0.5s, ~1s, ~2s
    """
    # Exponential backoff
    delay = min(base_delay * (2 ** attempt), MAX_DELAY)

    jitter_amount = random.uniform(-JITTER * delay, JITTER * delay)
    final_delay = delay + jitter_amount

    return max(final_delay, 0.0)  # Ensure non-negative


async def retry_with_backoff(
    func: Callable[..., T],
    *args: Any,
    max_retries: int = MAX_RETRIES,
    base_delay: float = BASE_DELAY,
    operation: Optional[str] = None,
    **kwargs: Any
) -> T:
    """
    Retry async function with exponential backoff.

    Only retries transient errors. Gives up after max_retries attempts.

    Args:
        func: Async function to retry
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Delay before the first retry in seconds
        operation: Label for logs and the retry metric (defaults to func.__name__)
        *args, **kwargs: Arguments to pass to func

    Returns:
        Result from func

    Raises:
        Last exception if all retries exhausted or non-retryable error

    Example:
        ok = await retry_with_backoff(store.set, key, payload, max_retries=3, operation="save_streaks")
    """
    name = operation or getattr(func, "__name__", "operation")
    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)

        except Exception as e:
            if attempt == max_retries:
                logger.error(
                    f"[RETRY] All {max_retries} retries exhausted for {name}"
                )
                raise

            if not is_retryable_error(e):
                logger.warning(
                    f"[RETRY] Non-retryable error for {name}: "
                    f"{type(e).__name__}: {e}"
                )
                raise

            backoff = calculate_backoff(attempt, base_delay)

            record_retry(name)

            logger.info(
                f"[RETRY] Attempt {attempt + 1}/{max_retries} for {name} "
                f"after {backoff:.2f}s (error: {type(e).__name__})"
            )

            await asyncio.sleep(backoff)

    raise RuntimeError("Retry logic failed unexpectedly")

