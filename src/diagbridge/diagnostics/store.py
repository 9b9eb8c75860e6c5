"""Per-file diagnostic store and workspace coverage set.

The store is the engine's persistent state for its lifetime. It is
mutated only by synchronous calls (``upsert``, ``remove``,
``mark_covered``), so on a single asyncio loop no partial write is ever
observable and no lock is needed.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, TypeAlias

from diagbridge.constants import MergeMode
from diagbridge.diagnostics.converter import WorkspaceResolver, to_diagnostic
from diagbridge.diagnostics.merge import (
    FileDiagnosticSet,
    dedupe,
    merge,
    sorted_diagnostics,
)
from diagbridge.diagnostics.schemas import Diagnostic
from diagbridge.resilience.errors import MalformedDiagnosticError

logger = logging.getLogger(__name__)

RawDiagnostic: TypeAlias = Diagnostic | Mapping[str, Any]


class DiagnosticStore:
    """Keyed map file id → deduplicated diagnostic set, plus coverage."""

    def __init__(
        self,
        max_problems_per_file: int = 1000,
        resolver: WorkspaceResolver | None = None,
    ) -> None:
        self._sets: dict[str, FileDiagnosticSet] = {}
        self._covered: set[str] = set()
        self._max_per_file = max_problems_per_file
        self._resolver = resolver

    def upsert(
        self,
        file_id: str,
        diagnostics: Iterable[RawDiagnostic],
        mode: MergeMode,
    ) -> bool:
        """Merge *diagnostics* into *file_id*'s set.

        Marks the file covered and returns True when the stored set
        differs from the one before the call. Malformed entries are
        dropped with a warning; a non-empty payload with no valid entry
        leaves the store untouched in every mode except ``CLEAR``.
        """
        raw = list(diagnostics)
        incoming = self._normalize(file_id, raw)
        if raw and not incoming and mode != MergeMode.CLEAR:
            logger.warning(
                "event=malformed_update_ignored file=%s mode=%s dropped=%d",
                file_id,
                mode,
                len(raw),
            )
            return False
        previous = self._sets.get(file_id, {})
        merged = self._cap(file_id, merge(previous, incoming, mode))

        self._covered.add(file_id)
        if merged:
            self._sets[file_id] = merged
        else:
            self._sets.pop(file_id, None)
        return merged != previous

    def get(self, file_id: str) -> list[Diagnostic]:
        return sorted_diagnostics(self._sets.get(file_id, {}).values())

    def get_all(self) -> list[Diagnostic]:
        """Flattened, deduplicated, deterministically ordered."""
        flat = dedupe(
            d for file_set in self._sets.values() for d in file_set.values()
        )
        return sorted_diagnostics(flat.values())

    def remove(self, file_id: str) -> bool:
        """Forget *file_id* entirely (set and coverage).

        Returns True if the file had stored diagnostics.
        """
        self._covered.discard(file_id)
        return self._sets.pop(file_id, None) is not None

    def mark_covered(self, file_id: str) -> None:
        """Record a visit that produced no diagnostics."""
        self._covered.add(file_id)

    def is_covered(self, file_id: str) -> bool:
        return file_id in self._covered

    @property
    def coverage(self) -> frozenset[str]:
        return frozenset(self._covered)

    def files_with_problems(self) -> list[str]:
        return sorted(self._sets)

    def clear(self) -> None:
        self._sets.clear()
        self._covered.clear()

    def __len__(self) -> int:
        return sum(len(s) for s in self._sets.values())

    def _normalize(
        self, file_id: str, diagnostics: Iterable[RawDiagnostic]
    ) -> list[Diagnostic]:
        normalized: list[Diagnostic] = []
        for raw in diagnostics:
            try:
                normalized.append(
                    to_diagnostic(raw, file_id, self._resolver)
                )
            except MalformedDiagnosticError as exc:
                logger.warning(
                    "event=malformed_diagnostic_dropped file=%s reason=%s",
                    file_id,
                    exc,
                )
        return normalized

    def _cap(
        self, file_id: str, file_set: FileDiagnosticSet
    ) -> FileDiagnosticSet:
        if len(file_set) <= self._max_per_file:
            return file_set
        logger.warning(
            "event=problems_truncated file=%s count=%d max=%d",
            file_id,
            len(file_set),
            self._max_per_file,
        )
        kept = sorted_diagnostics(file_set.values())[: self._max_per_file]
        return dedupe(kept)
