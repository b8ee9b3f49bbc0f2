# In-flight request table - at most one outstanding fetch per key.
# Created: 2026-10-15

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InFlightTable(Generic[T]):
    """Maps a key to the task currently fetching it.

    ``join()`` performs the lookup and the insert without yielding to the
    event loop, so two callers can never both see "not in flight". Tasks are
    shielded from caller cancellation and always remove their own entry when
    they finish, successfully or not.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[T]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def join(self, key: str, factory: Callable[[], Awaitable[T]]) -> Awaitable[T]:
        """Await the in-flight task for *key*, starting one from *factory* if none exists."""
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run(key, factory))
            task.add_done_callback(_retrieve_exception)
            self._tasks[key] = task
        else:
            logger.debug("Reusing in-flight request for %s", key)
        return asyncio.shield(task)

    async def _run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        try:
            return await factory()
        finally:
            if self._tasks.get(key) is asyncio.current_task():
                del self._tasks[key]


def _retrieve_exception(task: asyncio.Task) -> None:
    # Abandoned tasks must not log "exception was never retrieved"
    if not task.cancelled():
        task.exception()
