"""
Exponential backoff for idempotent async calls (e.g. re-fetching the player).
"""

import asyncio
from typing import Awaitable, Callable, Tuple, Type, TypeVar

from lean_rpg.kernel.errors import NetworkError
from lean_rpg.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 3
INITIAL_DELAY = 1.0  # seconds
BACKOFF_FACTOR = 2.0
MAX_DELAY = 10.0


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = MAX_ATTEMPTS,
    initial_delay: float = INITIAL_DELAY,
    factor: float = BACKOFF_FACTOR,
    max_delay: float = MAX_DELAY,
    retry_on: Tuple[Type[BaseException], ...] = (NetworkError,),
) -> T:
    """
    Await operation() until it succeeds or max_attempts is reached.

    Delays grow initial_delay * factor**n, capped at max_delay. Only
    exceptions in retry_on are retried; the last one is re-raised.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    delay = initial_delay
    attempt = 1
    while True:
        try:
            return await operation()
        except retry_on as e:
            if attempt >= max_attempts:
                raise
            logger.warning(
                "Attempt %d/%d failed (%s); retrying in %.1fs",
                attempt, max_attempts, e, delay,
            )
        await asyncio.sleep(delay)
        delay = min(delay * factor, max_delay)
        attempt += 1
