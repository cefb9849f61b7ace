from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable, Coroutine


__all__: list[str] = ["InFlightManager"]

logger: logging.Logger = LoggerUtils.get_logger(__name__)


class InFlightManager[T]:
    """Coalesces concurrent loads of the same key into one shared task.

    The first caller for a key starts the task; callers arriving while it runs get the same
    task back. A finished task, successful or not, is forgotten so the next request starts a
    fresh load. Callers should await ``asyncio.shield(task)`` so that cancelling one waiter does
    not cancel the load for the others.
    """

    def __init__(self) -> None:
        self._inflight: dict[str, asyncio.Task[T]] = {}
        self._is_initialized: bool = False

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    async def component_load(self) -> None:
        self._is_initialized = True
        logger.info("InFlightManager initialized successfully")

    async def component_teardown(self) -> None:
        """Cancel every pending load and forget all keys."""
        self._is_initialized = False
        tasks: list[asyncio.Task[T]] = list(self._inflight.values())
        self._inflight.clear()
        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("InFlightManager torn down; %d pending load(s) cancelled", len(tasks))

    def is_inflight(self, key: str) -> bool:
        task: asyncio.Task[T] | None = self._inflight.get(key)
        return task is not None and not task.done()

    def pending_keys(self) -> list[str]:
        return [key for key, task in self._inflight.items() if not task.done()]

    def join_or_start(self, key: str, factory: Callable[[], Coroutine[Any, Any, T]]) -> asyncio.Task[T]:
        """Return the running task for ``key``, starting one from ``factory`` if there is none.

        Args:
            key (str): Identity of the load, e.g. a locale code.
            factory (Callable[[], Coroutine[Any, Any, T]]): Creates the load coroutine. Only called
                when no task is running for ``key``.

        Returns:
            asyncio.Task[T]: The shared task.
        """
        if not key:
            msg: str = "In-flight key must not be empty"
            raise ValueError(msg)

        task: asyncio.Task[T] | None = self._inflight.get(key)
        if task is not None and not task.done():
            logger.debug("Joining in-flight load for key: %s", key)
            return task

        task = asyncio.create_task(factory(), name=f"inflight:{key}")
        self._inflight[key] = task
        task.add_done_callback(lambda done: self._forget(key, done))
        logger.debug("Started in-flight load for key: %s", key)
        return task

    def _forget(self, key: str, task: asyncio.Task[T]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Mark the outcome as retrieved even when every waiter gave up.
        if not task.cancelled() and task.exception() is not None:
            logger.debug("In-flight load for key '%s' failed: %s", key, task.exception())
