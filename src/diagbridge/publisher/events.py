"""Typed change notifications fanned out to subscribers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from diagbridge.constants import ChangeKind


@dataclass(frozen=True)
class ProblemsChangedEvent:
    """Immutable notice that the aggregate changed materially.

    Carries which files moved and the counts-only summary, not the
    full problem list; subscribers that need more call
    ``engine.get_all_problems()``.
    """

    kind: ChangeKind
    file_ids: tuple[str, ...] = ()
    summary: dict[str, Any] = field(
        default_factory=lambda: dict[str, Any]()
    )
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(UTC)
    )

    @property
    def total_problems(self) -> int:
        return int(self.summary.get("total_problems", 0))

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready form used by protocol notifications."""
        return {
            "kind": self.kind.value,
            "files": list(self.file_ids),
            "problemCount": self.total_problems,
            "summary": self.summary,
            "timestamp": self.timestamp.isoformat(),
        }
