"""
Retry decorator with exponential backoff.

Handles transient collaborator failures:
- Rate limits (429 errors)
- Server errors (5xx)
- Network timeouts

Works for both plain functions and coroutine functions. The clustering and
retrieval engines never retry on their own; this is used by provider adapters
(see digest_core.embedding.openai_provider).

Usage:
    from digest_core.utils import retry_with_exponential_backoff

    @retry_with_exponential_backoff(
        max_retries=3,
        retry_condition=is_transient_api_error,
    )
    async def call_api():
        return await client.embeddings.create(...)
"""

import asyncio
import inspect
import logging
import time
from functools import wraps
from typing import Callable, Optional, Tuple, Type

from .security import sanitize_error

logger = logging.getLogger(__name__)


def compute_backoff_delay(
    attempt: int,
    base_delay: float,
    backoff_factor: float,
    max_delay: float,
) -> float:
    """Delay before retry number ``attempt`` (0-based), capped at max_delay."""
    return min(base_delay * (backoff_factor ** attempt), max_delay)


def retry_with_exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_factor: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    on_retry: Optional[Callable[[Exception, int, float], None]] = None,
    retry_condition: Optional[Callable[[Exception], bool]] = None
):
    """
    Decorator for exponential backoff retry logic.

    Args:
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay cap in seconds (default: 30.0)
        backoff_factor: Multiplier for delay on each retry (default: 2.0)
        exceptions: Tuple of exception types to retry (default: all exceptions)
        on_retry: Optional callback(exception, attempt, delay) called before each retry
        retry_condition: Optional function(exception) -> bool to decide if retry

    Returns:
        Decorated function that retries on failure

    Raises:
        Original exception after max_retries exhausted
    """
    def _should_give_up(func_name: str, e: Exception, attempt: int) -> bool:
        if attempt == max_retries:
            logger.warning(
                f"Function '{func_name}' failed after {max_retries} retries. Giving up."
            )
            return True
        if retry_condition and not retry_condition(e):
            logger.debug(
                f"Function '{func_name}' failed with non-retryable error: {sanitize_error(e)}"
            )
            return True
        return False

    def _before_retry(func_name: str, e: Exception, attempt: int) -> float:
        delay = compute_backoff_delay(attempt, base_delay, backoff_factor, max_delay)
        logger.warning(
            f"Function '{func_name}' failed (attempt {attempt + 1}/{max_retries}). "
            f"Retrying in {delay:.1f}s... Error: {type(e).__name__}: {sanitize_error(e)[:100]}"
        )
        if on_retry:
            try:
                on_retry(e, attempt + 1, delay)
            except Exception as callback_error:
                logger.error(
                    f"Retry callback failed: {sanitize_error(callback_error)}",
                    exc_info=True
                )
        return delay

    def decorator(func: Callable) -> Callable:
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                for attempt in range(max_retries + 1):
                    try:
                        return await func(*args, **kwargs)
                    except exceptions as e:
                        if _should_give_up(func.__name__, e, attempt):
                            raise
                        await asyncio.sleep(_before_retry(func.__name__, e, attempt))

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if _should_give_up(func.__name__, e, attempt):
                        raise
                    time.sleep(_before_retry(func.__name__, e, attempt))

        return wrapper
    return decorator
