"""In-flight operation deduplication.

IdempotencyGuard prevents duplicate concurrent operations for the same key.
If a workspace analysis is running and a second trigger arrives, the
second caller awaits the first run's result instead of starting another.

Single event loop only.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class IdempotencyGuard:
    """Deduplicates in-flight async operations by key.

    Usage::

        guard = IdempotencyGuard()
        report = await guard.execute("workspace-analysis", sweep)

    The operation runs in its own task; every caller awaits it through
    ``asyncio.shield`` so one impatient caller being cancelled does not
    abort the run for the others. ``cancel`` stops the run itself.
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, asyncio.Task[Any]] = {}

    async def execute(
        self,
        key: str,
        operation: Callable[[], Coroutine[Any, Any, T]],
    ) -> T:
        task: asyncio.Task[T] | None = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(operation())
            self._in_flight[key] = task
            task.add_done_callback(
                lambda t, k=key: self._forget(k, t)
            )
        else:
            logger.debug("event=joined_in_flight key=%s", key)
        return await asyncio.shield(task)

    def is_running(self, key: str) -> bool:
        return key in self._in_flight

    def cancel(self, key: str) -> bool:
        task = self._in_flight.get(key)
        if task is None:
            return False
        task.cancel()
        return True

    def cancel_all(self) -> None:
        for task in list(self._in_flight.values()):
            task.cancel()

    @property
    def active_keys(self) -> list[str]:
        """Return currently in-flight operation keys."""
        return list(self._in_flight.keys())

    def _forget(self, key: str, task: asyncio.Task[Any]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
