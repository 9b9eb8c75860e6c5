"""DiagnosticsEngine, the context object consumers are handed.

Owns the store, ingestion, the sweeper and the publisher. ``init()``
attaches to the host; ``dispose()`` detaches, cancels anything pending
and leaves every query returning empty results.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from diagbridge.config import Settings
from diagbridge.constants import (
    PERF_OPERATION_EXPORT,
    ChangeKind,
    GroupBy,
    MergeMode,
    SweepState,
)
from diagbridge.diagnostics.aggregate import (
    build_snapshot,
    filter_problems,
    group_summary,
)
from diagbridge.diagnostics.ingestion import UpdateIngestor
from diagbridge.diagnostics.scheduler import (
    AsyncioScheduler,
    ScheduledHandle,
    Scheduler,
)
from diagbridge.diagnostics.schemas import (
    AggregateSnapshot,
    Diagnostic,
    ProblemFilter,
    SweepReport,
)
from diagbridge.diagnostics.store import DiagnosticStore
from diagbridge.diagnostics.sweeper import WorkspaceSweeper
from diagbridge.host.protocols import (
    DeletionSource,
    DiagnosticSource,
    DocumentOpener,
    Unsubscribe,
    WorkspaceEnumerator,
    WorkspaceFolderResolver,
)
from diagbridge.observability.performance import (
    PerformanceMonitor,
    PerformanceStats,
)
from diagbridge.publisher import initialize_publisher
from diagbridge.publisher.handlers import ProblemSubscriber
from diagbridge.resilience.errors import SubscriptionError, classify_error
from diagbridge.resilience.idempotency import IdempotencyGuard

logger = logging.getLogger(__name__)

_ANALYSIS_KEY = "workspace-analysis"


class DiagnosticsEngine:
    """Aggregates host diagnostics and sweeps the rest of the workspace."""

    def __init__(
        self,
        source: DiagnosticSource,
        opener: DocumentOpener,
        workspace: WorkspaceEnumerator,
        settings: Settings | None = None,
        scheduler: Scheduler | None = None,
        resolver: WorkspaceFolderResolver | None = None,
        deletions: DeletionSource | None = None,
        monitor: PerformanceMonitor | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self._source = source
        self._opener = opener
        self._workspace = workspace
        self._deletions = deletions
        self._owns_scheduler = scheduler is None
        self._scheduler: Scheduler = scheduler or AsyncioScheduler()
        self._monitor = monitor or PerformanceMonitor()

        self._store = DiagnosticStore(
            max_problems_per_file=self.settings.max_problems_per_file,
            resolver=resolver.workspace_folder_for if resolver else None,
        )
        self._dispatcher = initialize_publisher(
            self.settings,
            scheduler=self._scheduler,
            exporter=self.export_problems_to_file,
        )
        self._ingestor = UpdateIngestor(
            self._store,
            self._dispatcher,
            self._summary,
            trust_empty_events=self.settings.trust_empty_events,
            monitor=self._monitor,
        )
        self._guard = IdempotencyGuard()
        self._sweeper: WorkspaceSweeper | None = None
        self._initial_handle: ScheduledHandle | None = None
        self._unsubscribe_deletions: Unsubscribe | None = None

        self.startup_error: Exception | None = None
        self.last_report: SweepReport | None = None
        self._initialized = False
        self._disposed = False

    # ── Lifecycle ──────────────────────────────────────────

    async def init(self) -> None:
        """Attach to host events and schedule the initial analysis.

        A subscription failure is logged once and leaves the engine in
        sweep-only mode; it never raises.
        """
        if self._initialized or self._disposed:
            return
        self._initialized = True

        try:
            self._ingestor.attach(self._source)
        except SubscriptionError as exc:
            self.startup_error = exc
            logger.warning(
                "event=host_subscription_failed mode=sweep_only error=%s",
                exc,
            )

        if self._deletions is not None:
            try:
                self._unsubscribe_deletions = (
                    self._deletions.subscribe_deletions(self._on_deleted)
                )
            except Exception as exc:
                logger.warning(
                    "event=deletion_subscription_failed error=%s", exc
                )

        if self.settings.auto_analysis_enabled:
            self._initial_handle = self._scheduler.schedule(
                self.settings.initial_analysis_delay_seconds,
                self._initial_analysis,
            )
        logger.info(
            "event=engine_initialized sweep_only=%s auto_analysis=%s",
            self.sweep_only,
            self.settings.auto_analysis_enabled,
        )

    def dispose(self) -> None:
        """Detach from the host and abandon pending work. Idempotent."""
        if self._disposed:
            return
        self._disposed = True

        if self._initial_handle is not None:
            self._initial_handle.cancel()
            self._initial_handle = None
        if self._sweeper is not None:
            self._sweeper.cancel()
        self._guard.cancel_all()

        self._ingestor.detach()
        if self._unsubscribe_deletions is not None:
            try:
                self._unsubscribe_deletions()
            except Exception:
                logger.warning(
                    "event=unsubscribe_failed what=deletions", exc_info=True
                )
            self._unsubscribe_deletions = None

        self._dispatcher.clear()
        if self._owns_scheduler and isinstance(
            self._scheduler, AsyncioScheduler
        ):
            self._scheduler.cancel_all()
        self._monitor.dispose()
        self._store.clear()
        logger.info("event=engine_disposed")

    async def __aenter__(self) -> DiagnosticsEngine:
        await self.init()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.dispose()

    @property
    def sweep_only(self) -> bool:
        """True when host change notifications are unavailable."""
        return self.startup_error is not None

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def sweep_state(self) -> SweepState:
        if self._sweeper is None:
            return SweepState.IDLE
        return self._sweeper.state

    @property
    def analysis_running(self) -> bool:
        return self._guard.is_running(_ANALYSIS_KEY)

    # ── Core operations ───────────────────────────────────

    def get_all_problems(self) -> AggregateSnapshot:
        if self._disposed:
            return AggregateSnapshot()
        return build_snapshot(self._store)

    async def trigger_workspace_analysis(self) -> SweepReport:
        """Load existing diagnostics, then sweep uncovered files.

        Concurrent calls share one run. After disposal, or when disposal
        interrupts the run, resolves with a ``cancelled`` report.
        """
        if self._disposed:
            return SweepReport(state=SweepState.CANCELLED)
        try:
            return await self._guard.execute(_ANALYSIS_KEY, self._analyze)
        except asyncio.CancelledError:
            if not self._disposed:
                raise
            return SweepReport(state=SweepState.CANCELLED)

    def subscribe(self, subscriber: ProblemSubscriber) -> None:
        self._dispatcher.register(subscriber)

    def unsubscribe(self, name: str) -> bool:
        return self._dispatcher.unregister(name)

    # ── Queries ───────────────────────────────────────────

    def get_problems_for_file(self, file_id: str) -> list[Diagnostic]:
        if self._disposed:
            return []
        return self._store.get(file_id)

    def get_problems_for_workspace(
        self, workspace_folder: str
    ) -> list[Diagnostic]:
        return self.get_filtered_problems(
            ProblemFilter(workspace_folder=workspace_folder)
        )

    def get_files_with_problems(self) -> list[str]:
        if self._disposed:
            return []
        return self._store.files_with_problems()

    def get_filtered_problems(
        self, options: ProblemFilter | None = None
    ) -> list[Diagnostic]:
        if self._disposed:
            return []
        return filter_problems(
            self._store.get_all(), options or ProblemFilter()
        )

    def get_workspace_summary(
        self, group_by: GroupBy | None = None
    ) -> dict[str, Any]:
        return group_summary(self.get_all_problems(), group_by)

    def get_performance_metrics(self) -> dict[str, PerformanceStats]:
        return self._monitor.summary()

    # ── Supplementary operations ──────────────────────────

    async def load_existing_diagnostics(self) -> int:
        """Ingest everything the host already knows; returns changed files."""
        if self._disposed:
            return 0
        try:
            entries = await self._source.get_diagnostics()
        except Exception as exc:
            logger.warning(
                "event=load_existing_failed class=%s error=%s",
                classify_error(exc).value,
                exc,
            )
            return 0
        changed = await self._ingestor.ingest(
            entries, MergeMode.INCREMENTAL, ChangeKind.UPDATE
        )
        logger.info(
            "event=existing_diagnostics_loaded files=%d changed=%d",
            len(entries),
            len(changed),
        )
        return len(changed)

    async def refresh_diagnostics(self) -> None:
        """Re-publish the current aggregate without touching the store."""
        if self._disposed:
            return
        await self._dispatcher.notify(
            ChangeKind.REFRESH,
            self._store.files_with_problems(),
            self._summary,
        )

    async def export_problems_to_file(self, path: Path | str) -> None:
        """Write the aggregate as JSON; atomic, re-raises on failure."""
        target = Path(path)
        snapshot = self.get_all_problems()
        document = {
            "exported_at": datetime.now(UTC).isoformat(),
            "summary": snapshot.summary(),
            "problems": [
                d.model_dump(mode="json") for d in snapshot.problems
            ],
        }
        text = json.dumps(document, indent=2)
        try:
            await self._monitor.measure_async(
                PERF_OPERATION_EXPORT,
                lambda: asyncio.to_thread(_write_atomic, target, text),
            )
        except OSError as exc:
            logger.error(
                "event=export_failed path=%s error=%s", target, exc
            )
            raise
        logger.info(
            "event=export_written path=%s problems=%d",
            target,
            snapshot.total_problems,
        )

    # ── Internals ─────────────────────────────────────────

    def _summary(self) -> dict[str, Any]:
        return self.get_all_problems().summary()

    async def _analyze(self) -> SweepReport:
        await self.load_existing_diagnostics()
        s = self.settings
        self._sweeper = WorkspaceSweeper(
            self._store,
            self._ingestor,
            self._source,
            self._opener,
            self._workspace,
            self._scheduler,
            batch_size=s.sweep_batch_size,
            settle_seconds=s.sweep_settle_seconds,
            interbatch_seconds=s.sweep_interbatch_seconds,
            ignore_patterns=s.sweep_ignore_patterns,
            monitor=self._monitor,
        )
        if self._disposed:
            self._sweeper.cancel()
        report = await self._sweeper.run()
        self.last_report = report
        return report

    async def _initial_analysis(self) -> None:
        self._initial_handle = None
        report = await self.trigger_workspace_analysis()
        logger.info(
            "event=initial_analysis_finished state=%s visited=%d",
            report.state,
            len(report.visited),
        )

    async def _on_deleted(self, file_ids: list[str]) -> None:
        if self._disposed:
            return
        removed = [f for f in file_ids if self._store.remove(f)]
        if removed:
            await self._dispatcher.notify(
                ChangeKind.REMOVED, removed, self._summary
            )


def _write_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
