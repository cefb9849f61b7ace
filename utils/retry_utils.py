from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable

__all__: list[str] = ["retry_async"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


async def retry_async[T](
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    delay: float = 1.0,
    *,
    max_delay: float | None = None,
) -> T:
    """Call ``func`` until it succeeds, waiting ``delay * attempt`` seconds between attempts.

    Nothing in the pipeline retries on its own; callers that want a second chance at a
    catalog load wrap the call explicitly.

    Args:
        func (Callable[[], Awaitable[T]]): Zero-argument coroutine factory.
        max_attempts (int): Total number of calls, including the first one.
        delay (float): Base delay in seconds. The wait after attempt ``n`` is ``delay * n``.
        max_delay (float | None): Upper bound for a single wait.

    Returns:
        T: The first successful result.

    Raises:
        ValueError: If max_attempts is less than 1.
        Exception: The exception raised by the last attempt.
    """
    if max_attempts < 1:
        msg: str = f"max_attempts must be at least 1, got {max_attempts}"
        raise ValueError(msg)

    attempt: int = 1
    while True:
        try:
            return await func()
        except Exception as err:
            if attempt >= max_attempts:
                logger.warning("Giving up after %d attempt(s): %s", attempt, err)
                raise
            wait: float = delay * attempt
            if max_delay is not None:
                wait = min(wait, max_delay)
            logger.debug("Attempt %d/%d failed (%s); retrying in %.2fs", attempt, max_attempts, err, wait)
            await asyncio.sleep(wait)
            attempt += 1
