"""Aggregate view: snapshots, filtering and grouped summaries."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from typing import Any

from diagbridge.constants import GroupBy, Severity
from diagbridge.diagnostics.schemas import (
    AggregateSnapshot,
    Diagnostic,
    ProblemFilter,
)
from diagbridge.diagnostics.store import DiagnosticStore


def build_snapshot(store: DiagnosticStore) -> AggregateSnapshot:
    """Recompute the aggregate from the store's current sets."""
    return snapshot_of(store.get_all(), covered=len(store.coverage))


def snapshot_of(
    problems: Sequence[Diagnostic], covered: int = 0
) -> AggregateSnapshot:
    by_severity: dict[Severity, int] = {s: 0 for s in Severity}
    by_source: Counter[str] = Counter()
    files: dict[str, None] = {}
    folders: dict[str, None] = {}
    for d in problems:
        by_severity[d.severity] += 1
        by_source[d.source] += 1
        files[d.file_id] = None
        folders[d.workspace_folder] = None

    return AggregateSnapshot(
        problems=list(problems),
        counts_by_severity=by_severity,
        counts_by_source=dict(sorted(by_source.items())),
        files=list(files),
        workspace_folders=sorted(folders),
        covered_file_count=covered,
    )


def filter_problems(
    problems: Iterable[Diagnostic], options: ProblemFilter
) -> list[Diagnostic]:
    """Apply field filters, then offset and limit."""
    result = [
        d
        for d in problems
        if (options.severity is None or d.severity == options.severity)
        and (
            options.workspace_folder is None
            or d.workspace_folder == options.workspace_folder
        )
        and (options.file_path is None or d.file_id == options.file_path)
        and (options.source is None or d.source == options.source)
    ]
    result = result[options.offset :]
    if options.limit is not None:
        result = result[: options.limit]
    return result


def group_summary(
    snapshot: AggregateSnapshot, group_by: GroupBy | None = None
) -> dict[str, Any]:
    """Counts keyed by *group_by*; the full summary when it is None."""
    if group_by is None:
        return snapshot.summary()
    if group_by == GroupBy.SEVERITY:
        return {s.value: n for s, n in snapshot.counts_by_severity.items()}
    if group_by == GroupBy.SOURCE:
        return dict(snapshot.counts_by_source)

    counts: Counter[str] = Counter()
    for d in snapshot.problems:
        if group_by == GroupBy.WORKSPACE_FOLDER:
            counts[d.workspace_folder] += 1
        else:
            counts[d.file_id] += 1
    return dict(sorted(counts.items()))
