"""In-memory fake host and virtual clock for testing.

``FakeHost`` satisfies every collaborator protocol in
``diagbridge.host.protocols`` at once and audits what the engine asked
of it. ``VirtualScheduler`` replaces wall-clock delays.
``RecordingSubscriber`` and ``raw_diagnostic`` are small test helpers.
"""

# pyright: reportUnusedFunction=false

from __future__ import annotations

import asyncio
import heapq
import itertools
from collections.abc import Mapping, Sequence
from typing import Any, TypeAlias

from diagbridge.diagnostics.events import DiagnosticChangeBatch, FileDiagnostics
from diagbridge.diagnostics.scheduler import ScheduledTask
from diagbridge.diagnostics.schemas import Diagnostic
from diagbridge.host.protocols import (
    ChangeHandler,
    DeletionHandler,
    Unsubscribe,
)
from diagbridge.publisher.events import ProblemsChangedEvent
from diagbridge.resilience.errors import (
    DiagnosticReadError,
    DocumentOpenError,
    SubscriptionError,
)

RawDiagnostics: TypeAlias = Sequence[Diagnostic | Mapping[str, Any]]


class FakeHost:
    """Dict-backed editor host.

    * ``files`` is what the workspace enumerator lists.
    * ``known`` holds diagnostics the host already reports.
    * ``analysis`` holds what the host's analyzers produce for a file
      once it is opened; opening copies it into ``known``.
    """

    def __init__(
        self,
        files: Sequence[str] = (),
        known: Mapping[str, RawDiagnostics] | None = None,
        analysis: Mapping[str, RawDiagnostics] | None = None,
        folders: Mapping[str, str] | None = None,
    ) -> None:
        self.files: list[str] = list(files)
        self.known: dict[str, list[Any]] = {
            k: list(v) for k, v in (known or {}).items()
        }
        self.analysis: dict[str, list[Any]] = {
            k: list(v) for k, v in (analysis or {}).items()
        }
        self.folders: dict[str, str] = dict(folders or {})

        self.fail_open: set[str] = set()
        self.fail_read: set[str] = set()
        self.fail_subscribe = False
        self.fail_list = False

        # Audit trail
        self.opened: list[str] = []
        self.released: list[str] = []
        self.shown: list[str] = []
        self.read_requests: list[str | None] = []

        self._handlers: list[ChangeHandler] = []
        self._deletion_handlers: list[DeletionHandler] = []

    # ── DiagnosticSource ──────────────────────────────────

    async def get_diagnostics(
        self, file_id: str | None = None
    ) -> list[FileDiagnostics]:
        self.read_requests.append(file_id)
        if file_id is None:
            return [
                FileDiagnostics(file_id=f, diagnostics=list(d))
                for f, d in self.known.items()
            ]
        if file_id in self.fail_read:
            raise DiagnosticReadError("read-back failed", file_id=file_id)
        return [
            FileDiagnostics(
                file_id=file_id, diagnostics=list(self.known.get(file_id, []))
            )
        ]

    def subscribe(self, handler: ChangeHandler) -> Unsubscribe:
        if self.fail_subscribe:
            raise SubscriptionError("host refused the subscription")
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._handlers)

    async def emit(
        self,
        file_id: str,
        diagnostics: RawDiagnostics = (),
        complete: bool | None = None,
    ) -> None:
        """Deliver a one-file change notification to every handler."""
        await self.emit_batch(
            [FileDiagnostics(file_id, list(diagnostics), complete)]
        )

    async def emit_batch(self, entries: Sequence[Any]) -> None:
        batch = DiagnosticChangeBatch(entries=list(entries))
        for handler in list(self._handlers):
            await handler(batch)

    # ── DocumentOpener ────────────────────────────────────

    async def open_invisibly(self, file_id: str) -> None:
        if file_id in self.fail_open:
            raise DocumentOpenError("cannot open document", file_id=file_id)
        self.opened.append(file_id)
        if file_id in self.analysis:
            self.known[file_id] = list(self.analysis[file_id])

    async def release(self, file_id: str) -> None:
        self.released.append(file_id)

    def show_document(self, file_id: str) -> None:
        """The visible-open capability; the engine must never call it."""
        self.shown.append(file_id)

    # ── WorkspaceEnumerator / resolver ────────────────────

    async def list_files(self) -> list[str]:
        if self.fail_list:
            raise OSError("workspace unavailable")
        return list(self.files)

    def workspace_folder_for(self, file_id: str) -> str | None:
        for prefix, name in self.folders.items():
            if file_id.startswith(prefix):
                return name
        return None

    # ── DeletionSource ────────────────────────────────────

    def subscribe_deletions(self, handler: DeletionHandler) -> Unsubscribe:
        self._deletion_handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._deletion_handlers:
                self._deletion_handlers.remove(handler)

        return _unsubscribe

    async def delete(self, *file_ids: str) -> None:
        for f in file_ids:
            self.known.pop(f, None)
            if f in self.files:
                self.files.remove(f)
        for handler in list(self._deletion_handlers):
            await handler(list(file_ids))


class _VirtualHandle:
    def __init__(self) -> None:
        self.cancelled = False
        self.fired = False
        self.task: asyncio.Task[None] | None = None

    def cancel(self) -> None:
        self.cancelled = True
        if self.task is not None:
            self.task.cancel()

    @property
    def done(self) -> bool:
        if self.cancelled:
            return True
        if self.task is not None:
            return self.task.done()
        return False


class VirtualScheduler:
    """Virtual clock.

    With ``auto_advance=True`` every ``sleep`` completes immediately and
    moves the clock forward, so a whole sweep runs in one await. With
    ``auto_advance=False`` sleeps block until :meth:`advance`.
    Scheduled tasks always wait for :meth:`advance`.
    """

    def __init__(self, auto_advance: bool = True) -> None:
        self.now = 0.0
        self.auto_advance = auto_advance
        self.sleeps: list[float] = []
        self._seq = itertools.count()
        self._timers: list[tuple[float, int, Any]] = []
        self._tasks: set[asyncio.Task[None]] = set()

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if self.auto_advance:
            self.now += seconds
            await asyncio.sleep(0)
            return
        fut: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        heapq.heappush(
            self._timers, (self.now + seconds, next(self._seq), fut)
        )
        await fut

    def schedule(self, after: float, task: ScheduledTask) -> _VirtualHandle:
        handle = _VirtualHandle()
        heapq.heappush(
            self._timers,
            (self.now + after, next(self._seq), (handle, task)),
        )
        return handle

    @property
    def pending(self) -> int:
        return len(self._timers)

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, firing every timer that falls due."""
        target = self.now + seconds
        await _drain()
        while self._timers and self._timers[0][0] <= target:
            deadline, _, item = heapq.heappop(self._timers)
            self.now = deadline
            self._fire(item)
            await _drain()
        self.now = target
        await _drain()

    async def run_until_idle(self, max_steps: int = 10_000) -> None:
        """Fire timers in order until none remain."""
        await _drain()
        for _ in range(max_steps):
            if not self._timers:
                return
            deadline, _, item = heapq.heappop(self._timers)
            self.now = max(self.now, deadline)
            self._fire(item)
            await _drain()
        raise RuntimeError("virtual scheduler did not go idle")

    def _fire(self, item: Any) -> None:
        if isinstance(item, asyncio.Future):
            if not item.done():
                item.set_result(None)
            return
        handle, task = item
        if handle.cancelled:
            return
        handle.fired = True
        t = asyncio.create_task(task())
        handle.task = t
        self._tasks.add(t)
        t.add_done_callback(self._tasks.discard)


async def _drain(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def raw_diagnostic(
    line: int = 0,
    message: str = "problem",
    severity: int | str = 0,
    source: str | None = "ts",
    code: str | int | None = None,
    character: int = 0,
    end_character: int = 5,
) -> dict[str, Any]:
    """Host-shaped diagnostic payload, as an editor would send it."""
    d: dict[str, Any] = {
        "range": {
            "start": {"line": line, "character": character},
            "end": {"line": line, "character": end_character},
        },
        "severity": severity,
        "message": message,
    }
    if source is not None:
        d["source"] = source
    if code is not None:
        d["code"] = code
    return d


class RecordingSubscriber:
    """Change subscriber that keeps every event it receives."""

    def __init__(self, name: str = "recorder") -> None:
        self._name = name
        self.events: list[ProblemsChangedEvent] = []

    @property
    def name(self) -> str:
        return self._name

    async def handle(self, event: ProblemsChangedEvent) -> None:
        self.events.append(event)

    @property
    def kinds(self) -> list[str]:
        return [e.kind.value for e in self.events]
