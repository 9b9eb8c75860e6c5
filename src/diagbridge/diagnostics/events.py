"""Shared event types for host diagnostic notifications.

Kept apart from ingestion.py so host adapters can build events without
importing the engine side.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from diagbridge.diagnostics.schemas import Diagnostic


@dataclass(frozen=True)
class FileDiagnostics:
    """Diagnostics the host reports for one file.

    ``complete`` is the host's explicit "analysis finished, this is the
    whole list" signal. ``None`` means the host made no such claim.
    """

    file_id: str
    diagnostics: Sequence[Diagnostic | Mapping[str, Any]] = ()
    complete: bool | None = None


@dataclass(frozen=True)
class DiagnosticChangeBatch:
    """One host notification, possibly covering only some files."""

    entries: Sequence[FileDiagnostics] = field(
        default_factory=lambda: list[FileDiagnostics]()
    )

    @property
    def file_ids(self) -> list[str]:
        return [e.file_id for e in self.entries]
