"""Delay abstraction for the sweeper and debounced publishing.

Production code uses :class:`AsyncioScheduler`; tests swap in
``diagbridge.host.fakes.VirtualScheduler`` so sweeps run against a
virtual clock instead of wall time.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Protocol, TypeAlias

logger = logging.getLogger(__name__)

ScheduledTask: TypeAlias = Callable[[], Awaitable[None]]


class ScheduledHandle(Protocol):
    def cancel(self) -> None: ...

    @property
    def done(self) -> bool: ...


class Scheduler(Protocol):
    """Cooperative delays: ``sleep`` suspends, ``schedule`` defers."""

    async def sleep(self, seconds: float) -> None: ...

    def schedule(
        self, after: float, task: ScheduledTask
    ) -> ScheduledHandle: ...


class _TaskHandle:
    """Wraps the asyncio.Task running a deferred job."""

    def __init__(self, task: asyncio.Task[None]) -> None:
        self._task = task

    def cancel(self) -> None:
        self._task.cancel()

    @property
    def done(self) -> bool:
        return self._task.done()


class AsyncioScheduler:
    """Wall-clock scheduler on the running event loop.

    Keeps strong references to deferred tasks until they finish, so
    they are not garbage-collected mid-flight.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[None]] = set()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    def schedule(self, after: float, task: ScheduledTask) -> _TaskHandle:
        async def _run() -> None:
            await asyncio.sleep(after)
            try:
                await task()
            except Exception:
                logger.exception("event=scheduled_task_failed")

        t = asyncio.create_task(_run())
        self._tasks.add(t)
        t.add_done_callback(self._tasks.discard)
        return _TaskHandle(t)

    def cancel_all(self) -> None:
        for t in list(self._tasks):
            t.cancel()
