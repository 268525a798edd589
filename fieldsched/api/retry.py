# fieldsched/api/retry.py
#
# Retry with exponential backoff for outbound calls

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    exponential_base: float = 2.0,
    exceptions: tuple = (Exception,),
    on_retry: Optional[Callable] = None
) -> T:
    """
    Await `func()` until it succeeds or the retries run out.

    Args:
        func: zero-argument coroutine function
        max_retries: retries after the first attempt (default: 3)
        initial_delay: first wait in seconds (default: 1.0)
        max_delay: cap on the wait between attempts (default: 30.0)
        exponential_base: multiplier applied to the wait after each failure
        exceptions: exception types that trigger a retry; anything else propagates at once
        on_retry: optional callback(attempt, error, delay) called before each wait

    Raises:
        The last exception once every attempt has failed
    """
    delay = initial_delay

    for attempt in range(max_retries + 1):
        try:
            return await func()
        except exceptions as e:
            if attempt >= max_retries:
                logger.error(f"All {max_retries + 1} attempts failed. Last error: {e}")
                raise

            logger.warning(
                f"Attempt {attempt + 1}/{max_retries + 1} failed: {e}. "
                f"Retrying in {delay:.2f}s..."
            )
            if on_retry:
                on_retry(attempt + 1, e, delay)

            await asyncio.sleep(delay)
            delay = min(delay * exponential_base, max_delay)
