"""Pydantic models for diagnostics and the aggregate view."""

from __future__ import annotations

from typing import TypeAlias

from pydantic import BaseModel, ConfigDict, Field

from diagbridge.constants import (
    SEVERITY_ORDER,
    UNKNOWN_SOURCE,
    UNKNOWN_WORKSPACE,
    Severity,
    SweepState,
)

DiagnosticCode = str | int
RangeKey: TypeAlias = tuple[int, int, int, int]
IdentityKey: TypeAlias = tuple[
    str, RangeKey, str, str, str, DiagnosticCode | None
]


class Position(BaseModel):
    """Zero-based line/character position in a document."""

    model_config = ConfigDict(frozen=True)

    line: int = Field(ge=0)
    character: int = Field(ge=0)


class Range(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: Position
    end: Position

    @property
    def key(self) -> RangeKey:
        return (
            self.start.line,
            self.start.character,
            self.end.line,
            self.end.character,
        )


class RelatedInformation(BaseModel):
    """A secondary location attached to a diagnostic."""

    model_config = ConfigDict(frozen=True)

    uri: str
    range: Range
    message: str


class Diagnostic(BaseModel):
    """A single reported problem in one file.

    Two diagnostics are the same problem iff their identity keys match:
    file, range, severity, source, message and code. Workspace folder and
    related information ride along but never affect deduplication.
    """

    model_config = ConfigDict(frozen=True)

    file_id: str = Field(min_length=1)
    range: Range
    severity: Severity
    source: str = UNKNOWN_SOURCE
    message: str = Field(min_length=1)
    code: str | int | None = None
    workspace_folder: str = UNKNOWN_WORKSPACE
    related_information: tuple[RelatedInformation, ...] = ()

    @property
    def identity_key(self) -> IdentityKey:
        return (
            self.file_id,
            self.range.key,
            self.severity.value,
            self.source,
            self.message,
            self.code,
        )

    @property
    def sort_key(self) -> tuple[object, ...]:
        """Deterministic ordering: file, range start, then the rest."""
        return (
            self.file_id,
            self.range.key,
            SEVERITY_ORDER.index(self.severity),
            self.source,
            self.message,
            self.code is not None,
            str(self.code) if self.code is not None else "",
        )


class ProblemFilter(BaseModel):
    """Filter options for querying problems."""

    severity: Severity | None = None
    workspace_folder: str | None = None
    file_path: str | None = None
    source: str | None = None
    limit: int | None = Field(default=None, ge=0)
    offset: int = Field(default=0, ge=0)


class AggregateSnapshot(BaseModel):
    """Derived, de-duplicated global view of all current diagnostics."""

    problems: list[Diagnostic] = Field(
        default_factory=lambda: list[Diagnostic]()
    )
    counts_by_severity: dict[Severity, int] = Field(
        default_factory=lambda: {s: 0 for s in Severity}
    )
    counts_by_source: dict[str, int] = Field(
        default_factory=lambda: dict[str, int]()
    )
    files: list[str] = Field(default_factory=lambda: list[str]())
    workspace_folders: list[str] = Field(
        default_factory=lambda: list[str]()
    )
    covered_file_count: int = 0

    @property
    def total_problems(self) -> int:
        return len(self.problems)

    @property
    def file_count(self) -> int:
        return len(self.files)

    @property
    def error_count(self) -> int:
        return self.counts_by_severity.get(Severity.ERROR, 0)

    @property
    def warning_count(self) -> int:
        return self.counts_by_severity.get(Severity.WARNING, 0)

    @property
    def info_count(self) -> int:
        return self.counts_by_severity.get(Severity.INFORMATION, 0)

    @property
    def hint_count(self) -> int:
        return self.counts_by_severity.get(Severity.HINT, 0)

    def summary(self) -> dict[str, object]:
        """Counts-only view (no problem list)."""
        return {
            "total_problems": self.total_problems,
            "error_count": self.error_count,
            "warning_count": self.warning_count,
            "info_count": self.info_count,
            "hint_count": self.hint_count,
            "file_count": self.file_count,
            "covered_file_count": self.covered_file_count,
            "workspace_folders": list(self.workspace_folders),
            "by_source": dict(self.counts_by_source),
        }


class SweepFailure(BaseModel):
    """One file the sweeper could not open or read back."""

    model_config = ConfigDict(frozen=True)

    file_id: str
    stage: str
    error_class: str
    message: str


class SweepReport(BaseModel):
    """Outcome of one background sweep."""

    state: SweepState = SweepState.IDLE
    enumerated: int = 0
    skipped_covered: int = 0
    ignored: int = 0
    visited: list[str] = Field(default_factory=lambda: list[str]())
    batch_sizes: list[int] = Field(default_factory=lambda: list[int]())
    failures: list[SweepFailure] = Field(
        default_factory=lambda: list[SweepFailure]()
    )
    changed_files: int = 0
    duration_ms: float = 0.0

    @property
    def completed(self) -> bool:
        return self.state == SweepState.DONE

    @property
    def failed_files(self) -> list[str]:
        return [f.file_id for f in self.failures]
