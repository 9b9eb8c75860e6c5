"""Update ingestion: fold host change notifications into the store."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from diagbridge.constants import (
    PERF_OPERATION_PROCESSING,
    ChangeKind,
    MergeMode,
)
from diagbridge.diagnostics.events import DiagnosticChangeBatch, FileDiagnostics
from diagbridge.diagnostics.store import DiagnosticStore
from diagbridge.host.protocols import DiagnosticSource, Unsubscribe
from diagbridge.observability.performance import PerformanceMonitor
from diagbridge.publisher.dispatcher import ChangeDispatcher, SummaryFactory
from diagbridge.resilience.errors import SubscriptionError

logger = logging.getLogger(__name__)


def mode_for(
    entry: FileDiagnostics, trust_empty_events: bool = False
) -> MergeMode | None:
    """Pick the merge mode for one host entry.

    ``None`` means "ignore this entry": an empty list without the host's
    completeness flag is indistinguishable from analysis still running.
    """
    if entry.complete:
        return MergeMode.FULL_RESYNC if entry.diagnostics else MergeMode.CLEAR
    if not entry.diagnostics:
        return MergeMode.CLEAR if trust_empty_events else None
    return MergeMode.INCREMENTAL


class UpdateIngestor:
    """Subscribes to the host and applies each batch to the store.

    Emits one UPDATE notification per batch, and only when at least one
    file's set actually changed.
    """

    def __init__(
        self,
        store: DiagnosticStore,
        dispatcher: ChangeDispatcher,
        summary_factory: SummaryFactory,
        trust_empty_events: bool = False,
        monitor: PerformanceMonitor | None = None,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._summary_factory = summary_factory
        self._trust_empty = trust_empty_events
        self._monitor = monitor
        self._unsubscribe: Unsubscribe | None = None
        self._closed = False

    def attach(self, source: DiagnosticSource) -> None:
        """Subscribe to *source*; raises SubscriptionError on failure."""
        try:
            self._unsubscribe = source.subscribe(self.handle_batch)
        except Exception as exc:
            msg = f"diagnostic change subscription failed: {exc}"
            raise SubscriptionError(msg) from exc

    def detach(self) -> None:
        """Unsubscribe and ignore anything delivered afterwards."""
        self._closed = True
        if self._unsubscribe is None:
            return
        try:
            self._unsubscribe()
        except Exception:
            logger.warning("event=unsubscribe_failed", exc_info=True)
        self._unsubscribe = None

    @property
    def attached(self) -> bool:
        return self._unsubscribe is not None

    async def handle_batch(self, batch: DiagnosticChangeBatch) -> None:
        """Host callback: apply the batch, publish if anything moved."""
        if self._closed:
            return
        changed = self.apply(_entries_of(batch))
        if changed:
            await self._dispatcher.notify(
                ChangeKind.UPDATE, changed, self._summary_factory
            )

    async def ingest(
        self,
        entries: Iterable[FileDiagnostics],
        mode: MergeMode,
        kind: ChangeKind,
    ) -> list[str]:
        """Apply *entries* with a forced *mode* (sweep read-back, loads)."""
        if self._closed:
            return []
        changed = self.apply(entries, forced_mode=mode)
        if changed:
            await self._dispatcher.notify(
                kind, changed, self._summary_factory
            )
        return changed

    def apply(
        self,
        entries: Iterable[FileDiagnostics],
        forced_mode: MergeMode | None = None,
    ) -> list[str]:
        """Upsert every entry; return the ids of files that changed."""
        if self._monitor is None:
            return self._apply(entries, forced_mode)
        return self._monitor.measure(
            PERF_OPERATION_PROCESSING,
            lambda: self._apply(entries, forced_mode),
        )

    def _apply(
        self,
        entries: Iterable[FileDiagnostics],
        forced_mode: MergeMode | None,
    ) -> list[str]:
        changed: list[str] = []
        for entry in entries:
            if forced_mode is not None:
                mode: MergeMode | None = forced_mode
            else:
                mode = mode_for(entry, self._trust_empty)
            if mode is None:
                logger.debug(
                    "event=empty_update_ignored file=%s", entry.file_id
                )
                continue
            if self._store.upsert(entry.file_id, entry.diagnostics, mode):
                changed.append(entry.file_id)
        return changed


def _entries_of(batch: object) -> list[FileDiagnostics]:
    """Validate a host batch; malformed entries are dropped with a warning."""
    raw_entries: object
    if isinstance(batch, DiagnosticChangeBatch):
        raw_entries = batch.entries
    elif isinstance(batch, Mapping):
        raw_entries = batch.get("entries", ())  # type: ignore[union-attr]
    else:
        logger.warning(
            "event=malformed_batch_dropped type=%s", type(batch).__name__
        )
        return []

    if not isinstance(raw_entries, (list, tuple)):
        logger.warning("event=malformed_batch_dropped reason=entries")
        return []

    entries: list[FileDiagnostics] = []
    for raw in raw_entries:
        entry = _coerce_entry(raw)
        if entry is None:
            logger.warning("event=malformed_entry_dropped entry=%r", raw)
            continue
        entries.append(entry)
    return entries


def _coerce_entry(raw: object) -> FileDiagnostics | None:
    if isinstance(raw, FileDiagnostics):
        return raw if raw.file_id else None
    if not isinstance(raw, Mapping):
        return None
    data: Mapping[str, Any] = raw
    file_id = data.get("file_id") or data.get("uri")
    diagnostics = data.get("diagnostics", ())
    complete = data.get("complete")
    if not isinstance(file_id, str) or not file_id:
        return None
    if not isinstance(diagnostics, (list, tuple)):
        return None
    if complete is not None and not isinstance(complete, bool):
        return None
    return FileDiagnostics(
        file_id=file_id, diagnostics=diagnostics, complete=complete
    )
