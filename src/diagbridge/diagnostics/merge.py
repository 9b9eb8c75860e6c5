"""Identity-based deduplication and the three merge modes.

Pure functions over diagnostic sets. A file's set is an
insertion-ordered ``dict`` keyed by identity key.

Hosts emit momentarily-empty lists mid-analysis; incremental merging
keeps known problems until the host says the list is complete.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import TypeAlias

from diagbridge.constants import MergeMode
from diagbridge.diagnostics.schemas import Diagnostic, IdentityKey

FileDiagnosticSet: TypeAlias = dict[IdentityKey, Diagnostic]


def dedupe(diagnostics: Iterable[Diagnostic]) -> FileDiagnosticSet:
    """Collapse diagnostics sharing an identity key; later entries win."""
    result: FileDiagnosticSet = {}
    for diagnostic in diagnostics:
        result[diagnostic.identity_key] = diagnostic
    return result


def merge(
    existing: Mapping[IdentityKey, Diagnostic],
    incoming: Iterable[Diagnostic],
    mode: MergeMode,
) -> FileDiagnosticSet:
    """Combine *existing* with *incoming* according to *mode*.

    * ``FULL_RESYNC``: incoming replaces existing wholesale.
    * ``INCREMENTAL``: union; incoming wins on key collision.
    * ``CLEAR``: empty set, incoming ignored.

    Never mutates *existing*.
    """
    if mode == MergeMode.CLEAR:
        return {}
    if mode == MergeMode.FULL_RESYNC:
        return dedupe(incoming)
    result: FileDiagnosticSet = dict(existing)
    result.update(dedupe(incoming))
    return result


def sorted_diagnostics(
    diagnostics: Iterable[Diagnostic],
) -> list[Diagnostic]:
    """Stable output order: file, range start, then remaining identity."""
    return sorted(diagnostics, key=lambda d: d.sort_key)
