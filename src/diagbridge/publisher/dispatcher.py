"""Fan-out dispatcher for problemsChanged notifications."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeAlias

from diagbridge.constants import ChangeKind
from diagbridge.diagnostics.scheduler import ScheduledHandle, Scheduler
from diagbridge.publisher.events import ProblemsChangedEvent
from diagbridge.publisher.handlers import ProblemSubscriber

logger = logging.getLogger(__name__)

SummaryFactory: TypeAlias = Callable[[], dict[str, Any]]


class ChangeDispatcher:
    """Fan-out dispatcher -- emits events to all registered subscribers.

    Best-effort delivery: subscriber errors are logged, never raised.

    With ``debounce_seconds > 0`` notifications are coalesced: file ids
    accumulate and a single event, built from the summary at flush
    time, goes out once the window closes.
    """

    def __init__(
        self,
        scheduler: Scheduler | None = None,
        debounce_seconds: float = 0.0,
    ) -> None:
        self._subscribers: list[ProblemSubscriber] = []
        self._scheduler = scheduler
        self._debounce = debounce_seconds if scheduler else 0.0
        self._pending_files: dict[str, None] = {}
        self._pending_kind: ChangeKind | None = None
        self._pending_factory: SummaryFactory | None = None
        self._flush_handle: ScheduledHandle | None = None

    def register(self, subscriber: ProblemSubscriber) -> None:
        """Register a subscriber. Duplicates (by name) are ignored."""
        if not any(s.name == subscriber.name for s in self._subscribers):
            self._subscribers.append(subscriber)

    def unregister(self, name: str) -> bool:
        before = len(self._subscribers)
        self._subscribers = [s for s in self._subscribers if s.name != name]
        return len(self._subscribers) != before

    async def emit(self, event: ProblemsChangedEvent) -> None:
        """Best-effort fan-out to all registered subscribers."""
        for subscriber in list(self._subscribers):
            try:
                await subscriber.handle(event)
            except Exception:
                logger.warning(
                    "event=subscriber_error subscriber=%s kind=%s",
                    subscriber.name,
                    event.kind,
                    exc_info=True,
                )

    async def notify(
        self,
        kind: ChangeKind,
        file_ids: list[str],
        summary_factory: SummaryFactory,
    ) -> None:
        """Publish now, or fold into the pending debounced event."""
        if self._debounce <= 0 or self._scheduler is None:
            await self.emit(
                ProblemsChangedEvent(
                    kind=kind,
                    file_ids=tuple(file_ids),
                    summary=summary_factory(),
                )
            )
            return

        for file_id in file_ids:
            self._pending_files[file_id] = None
        self._pending_kind = kind
        self._pending_factory = summary_factory
        if self._flush_handle is None or self._flush_handle.done:
            self._flush_handle = self._scheduler.schedule(
                self._debounce, self.flush
            )

    async def flush(self) -> None:
        """Emit the pending debounced event, if any."""
        if self._pending_kind is None or self._pending_factory is None:
            return
        event = ProblemsChangedEvent(
            kind=self._pending_kind,
            file_ids=tuple(self._pending_files),
            summary=self._pending_factory(),
        )
        self._reset_pending()
        await self.emit(event)

    def cancel_pending(self) -> None:
        """Drop any coalesced event without emitting it."""
        if self._flush_handle is not None:
            self._flush_handle.cancel()
        self._reset_pending()

    def clear(self) -> None:
        self.cancel_pending()
        self._subscribers.clear()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def has_pending(self) -> bool:
        return self._pending_kind is not None

    def _reset_pending(self) -> None:
        self._pending_files = {}
        self._pending_kind = None
        self._pending_factory = None
        self._flush_handle = None
