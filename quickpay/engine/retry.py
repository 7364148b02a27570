"""
Exponential backoff retry logic for idempotent payments API reads.

Only status polling goes through here; authorization-flow submissions are
never retried. Retries happen on transient failures (429 rate limits, 502/503/504) with
exponential backoff; permanent failures (other 4xx) are raised at once.
"""

import asyncio
import logging
from typing import Any, Callable

from quickpay.engine.errors import RateLimitError, RemoteError

logger = logging.getLogger("quickpay.retry")

RETRIABLE_STATUS_CODES = {429, 502, 503, 504}
MAX_RETRIES = 5
BASE_DELAY = 1.0
MAX_DELAY = 30.0


async def with_retry(
    func: Callable[..., Any],
    *args: Any,
    max_retries: int = MAX_RETRIES,
    base_delay: float = BASE_DELAY,
    **kwargs: Any,
) -> Any:
    """
    Execute an async function with exponential backoff on retriable errors.

    Args:
        func: Async callable to execute.
        max_retries: Maximum number of retry attempts.
        base_delay: First backoff delay in seconds.

    Returns:
        The result of the function call.

    Raises:
        RemoteError: On permanent failure or exhausted retries.
    """
    delay = base_delay
    last_error = None

    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except RemoteError as e:
            last_error = e
            if not e.retriable:
                raise

            if attempt < max_retries:
                sleep_for = min(delay, MAX_DELAY)
                if isinstance(e, RateLimitError) and e.retry_after:
                    sleep_for = min(e.retry_after, MAX_DELAY)

                logger.warning(
                    "Retriable error on attempt %d/%d: %s - sleeping %.1fs",
                    attempt + 1,
                    max_retries + 1,
                    e,
                    sleep_for,
                )
                await asyncio.sleep(sleep_for)
                delay = min(delay * 2, MAX_DELAY)
            else:
                logger.error("Exhausted %d retries for payments API call: %s", max_retries, e)
                raise

    raise last_error or RemoteError("Unknown error after retries")
