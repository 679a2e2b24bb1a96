"""
Retry utilities with exponential backoff.

Used around idempotent calls to hosted services (exchange rate provider,
auth admin API).
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def with_retry(
    func: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    backoff_factor: float = 1.5,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    operation_name: Optional[str] = None,
) -> T:
    """
    Retry an async operation with exponential backoff.

    Args:
        func: Zero-argument callable returning an awaitable
        max_retries: Maximum number of attempts (default: 3)
        backoff_factor: Multiplier for delay between attempts (default: 1.5)
        initial_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay between attempts in seconds (default: 30.0)
        retry_on: Exception types that trigger another attempt; anything
            else propagates immediately
        operation_name: Name for logging purposes

    Returns:
        Result from the first successful call

    Raises:
        The last exception once all attempts are exhausted

    Example:
        >>> rates = await with_retry(
        ...     lambda: client.get(url),
        ...     retry_on=(httpx.TransportError,),
        ...     operation_name="FX fetch",
        ... )
    """
    name = operation_name or getattr(func, "__name__", "operation")

    for attempt in range(max_retries):
        try:
            logger.debug(f"Attempt {attempt + 1}/{max_retries}: {name}")
            result = await func()

            if attempt > 0:
                logger.info(f"{name} succeeded on attempt {attempt + 1}/{max_retries}")

            return result

        except retry_on as e:
            if attempt >= max_retries - 1:
                logger.error(f"{name} failed after {max_retries} attempts: {str(e)}")
                raise

            delay = min(initial_delay * (backoff_factor**attempt), max_delay)
            logger.warning(f"{name} failed (attempt {attempt + 1}/{max_retries}): {str(e)}")
            logger.info(f"Retrying in {delay:.1f}s...")
            await asyncio.sleep(delay)

    raise RuntimeError(f"{name}: max_retries must be at least 1")
