"""Background workspace sweeper.

Walks the files the host has never reported on, opening them invisibly
in small batches so the host's analyzers produce diagnostics for them.

State machine::

    idle -> enumerating -> batch_opening -> waiting -> (batch_opening | done)
                                                    \\-> cancelled

The settle wait is a fixed delay, not "until the host answers": hosts
give no completion signal for documents opened this way.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence

import pathspec

from diagbridge.constants import (
    DEFAULT_INTERBATCH_SECONDS,
    DEFAULT_SETTLE_SECONDS,
    DEFAULT_SWEEP_BATCH_SIZE,
    ERROR_TRUNCATION_CHARS,
    PERF_OPERATION_SWEEP,
    ChangeKind,
    MergeMode,
    SweepState,
)
from diagbridge.diagnostics.events import FileDiagnostics
from diagbridge.diagnostics.ingestion import UpdateIngestor
from diagbridge.diagnostics.scheduler import Scheduler
from diagbridge.diagnostics.schemas import SweepFailure, SweepReport
from diagbridge.diagnostics.store import DiagnosticStore
from diagbridge.host.protocols import (
    DiagnosticSource,
    DocumentOpener,
    WorkspaceEnumerator,
)
from diagbridge.observability.performance import PerformanceMonitor
from diagbridge.resilience.errors import classify_error

logger = logging.getLogger(__name__)

_FILE_SCHEME = "file://"


def build_ignore_spec(patterns: Iterable[str]) -> pathspec.PathSpec:
    return pathspec.PathSpec.from_lines("gitignore", list(patterns))


def _match_path(file_id: str) -> str:
    """Strip a file:// scheme and leading slashes for glob matching."""
    path = file_id
    if path.startswith(_FILE_SCHEME):
        path = path[len(_FILE_SCHEME) :]
    return path.lstrip("/")


def chunked(items: Sequence[str], size: int) -> list[list[str]]:
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


class WorkspaceSweeper:
    """Runs one sweep at a time; the engine owns idempotence."""

    def __init__(
        self,
        store: DiagnosticStore,
        ingestor: UpdateIngestor,
        source: DiagnosticSource,
        opener: DocumentOpener,
        workspace: WorkspaceEnumerator,
        scheduler: Scheduler,
        batch_size: int = DEFAULT_SWEEP_BATCH_SIZE,
        settle_seconds: float = DEFAULT_SETTLE_SECONDS,
        interbatch_seconds: float = DEFAULT_INTERBATCH_SECONDS,
        ignore_patterns: Iterable[str] = (),
        monitor: PerformanceMonitor | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._store = store
        self._ingestor = ingestor
        self._source = source
        self._opener = opener
        self._workspace = workspace
        self._scheduler = scheduler
        self._batch_size = batch_size
        self._settle = settle_seconds
        self._interbatch = interbatch_seconds
        self._ignore = build_ignore_spec(ignore_patterns)
        self._monitor = monitor
        self._state = SweepState.IDLE
        self._cancelled = False

    @property
    def state(self) -> SweepState:
        return self._state

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Abandon the sweep at its next suspension point."""
        self._cancelled = True

    def is_ignored(self, file_id: str) -> bool:
        return self._ignore.match_file(_match_path(file_id))

    async def run(self) -> SweepReport:
        if self._monitor is None:
            return await self._run()
        return await self._monitor.measure_async(
            PERF_OPERATION_SWEEP, self._run
        )

    async def _run(self) -> SweepReport:
        started = time.perf_counter()
        report = SweepReport()
        try:
            await self._sweep(report)
        finally:
            report.state = self._state
            report.duration_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "event=sweep_finished state=%s visited=%d batches=%d "
            "failures=%d changed=%d duration_ms=%.1f",
            report.state,
            len(report.visited),
            len(report.batch_sizes),
            len(report.failures),
            report.changed_files,
            report.duration_ms,
        )
        return report

    async def _sweep(self, report: SweepReport) -> None:
        self._state = SweepState.ENUMERATING
        pending = await self._enumerate(report)
        if self._stop():
            return

        batches = chunked(pending, self._batch_size)
        logger.info(
            "event=sweep_started files=%d batches=%d batch_size=%d",
            len(pending),
            len(batches),
            self._batch_size,
        )
        for index, batch in enumerate(batches):
            if index > 0:
                await self._scheduler.sleep(self._interbatch)
                if self._stop():
                    return
            finished = await self._process_batch(index, batch, report)
            if not finished:
                return

        self._state = SweepState.DONE

    async def _enumerate(self, report: SweepReport) -> list[str]:
        try:
            listed = await self._workspace.list_files()
        except Exception as exc:
            logger.warning(
                "event=sweep_enumeration_failed class=%s error=%s",
                classify_error(exc).value,
                str(exc)[:ERROR_TRUNCATION_CHARS],
            )
            return []

        files = list(dict.fromkeys(listed))
        report.enumerated = len(files)
        pending: list[str] = []
        for file_id in files:
            if self._store.is_covered(file_id):
                report.skipped_covered += 1
            elif self.is_ignored(file_id):
                report.ignored += 1
            else:
                pending.append(file_id)
        return pending

    async def _process_batch(
        self, index: int, batch: list[str], report: SweepReport
    ) -> bool:
        """Open, settle, read back, release. False when cancelled."""
        self._state = SweepState.BATCH_OPENING
        report.batch_sizes.append(len(batch))

        opened: list[str] = []
        try:
            for file_id in batch:
                if await self._open(file_id, report):
                    opened.append(file_id)

            self._state = SweepState.WAITING
            await self._scheduler.sleep(self._settle)
            if self._stop():
                return False

            entries: list[FileDiagnostics] = []
            for file_id in opened:
                entries.extend(await self._read_back(file_id, report))
            if self._stop():
                return False

            changed = await self._ingestor.ingest(
                entries, MergeMode.INCREMENTAL, ChangeKind.SWEEP
            )
            report.changed_files += len(changed)
        finally:
            # also reached when the sweep task itself is cancelled
            await self._release_all(opened)

        for file_id in batch:
            self._store.mark_covered(file_id)
        report.visited.extend(batch)

        logger.debug(
            "event=sweep_batch_done batch=%d files=%d opened=%d changed=%d",
            index,
            len(batch),
            len(opened),
            len(changed),
        )
        return True

    async def _open(self, file_id: str, report: SweepReport) -> bool:
        try:
            await self._opener.open_invisibly(file_id)
        except Exception as exc:
            self._record_failure(report, file_id, "open", exc)
            return False
        return True

    async def _read_back(
        self, file_id: str, report: SweepReport
    ) -> list[FileDiagnostics]:
        try:
            reported = await self._source.get_diagnostics(file_id)
        except Exception as exc:
            self._record_failure(report, file_id, "read", exc)
            return []
        return [e for e in reported if e.file_id == file_id]

    async def _release_all(self, file_ids: list[str]) -> None:
        for file_id in file_ids:
            try:
                await self._opener.release(file_id)
            except Exception:
                logger.warning(
                    "event=sweep_release_failed file=%s",
                    file_id,
                    exc_info=True,
                )

    def _record_failure(
        self,
        report: SweepReport,
        file_id: str,
        stage: str,
        exc: Exception,
    ) -> None:
        error_class = classify_error(exc)
        message = str(exc)[:ERROR_TRUNCATION_CHARS]
        logger.warning(
            "event=sweep_file_failed file=%s stage=%s class=%s error=%s",
            file_id,
            stage,
            error_class.value,
            message,
        )
        report.failures.append(
            SweepFailure(
                file_id=file_id,
                stage=stage,
                error_class=error_class.value,
                message=message,
            )
        )

    def _stop(self) -> bool:
        if self._cancelled:
            self._state = SweepState.CANCELLED
            logger.info("event=sweep_cancelled")
        return self._cancelled
