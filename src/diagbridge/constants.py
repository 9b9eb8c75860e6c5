"""Shared constants used across modules.

All magic strings and numbers that appear in 2+ files belong here.
StrEnum members are str-compatible, so downstream code (JSON payloads,
MCP tool arguments, log lines) works unchanged.
"""

from __future__ import annotations

from enum import StrEnum

# ── String Enums ─────────────────────────────────────────


class Severity(StrEnum):
    """Diagnostic severity, most severe first."""

    ERROR = "error"
    WARNING = "warning"
    INFORMATION = "information"
    HINT = "hint"


class MergeMode(StrEnum):
    """How an incoming diagnostic list combines with the stored set."""

    FULL_RESYNC = "full_resync"
    INCREMENTAL = "incremental"
    CLEAR = "clear"


class SweepState(StrEnum):
    """Background sweeper state machine."""

    IDLE = "idle"
    ENUMERATING = "enumerating"
    BATCH_OPENING = "batch_opening"
    WAITING = "waiting"
    DONE = "done"
    CANCELLED = "cancelled"


class ChangeKind(StrEnum):
    """Why a problemsChanged notification was published."""

    UPDATE = "update"
    SWEEP = "sweep"
    REFRESH = "refresh"
    REMOVED = "removed"


class GroupBy(StrEnum):
    """Grouping keys accepted by workspace summaries."""

    SEVERITY = "severity"
    SOURCE = "source"
    WORKSPACE_FOLDER = "workspace_folder"
    FILE = "file"


class AnalyzerOutputFormat(StrEnum):
    """Output formats understood by the command analyzer host."""

    CANONICAL = "canonical"
    RUFF = "ruff"


# Host severity numbers (0=Error … 3=Hint)
HOST_SEVERITY_MAP: dict[int, Severity] = {
    0: Severity.ERROR,
    1: Severity.WARNING,
    2: Severity.INFORMATION,
    3: Severity.HINT,
}

SEVERITY_ORDER: tuple[Severity, ...] = tuple(Severity)

UNKNOWN_SOURCE = "unknown"
UNKNOWN_WORKSPACE = "unknown"

# ── Sweeper ──────────────────────────────────────────────

DEFAULT_SWEEP_BATCH_SIZE = 5
DEFAULT_SETTLE_SECONDS = 1.0
DEFAULT_INTERBATCH_SECONDS = 0.1
DEFAULT_INITIAL_ANALYSIS_DELAY = 1.0

# ── Performance thresholds (milliseconds) ────────────────


class Thresholds:
    """Named operation budgets in milliseconds."""

    DIAGNOSTIC_PROCESSING_MS = 500.0
    EXPORT_MS = 1000.0
    WORKSPACE_SWEEP_MS = 120_000.0


PERF_OPERATION_PROCESSING = "diagnostic-processing"
PERF_OPERATION_SWEEP = "workspace-sweep"
PERF_OPERATION_EXPORT = "export"
PERF_MAX_HISTORY = 100

# ── MCP ──────────────────────────────────────────────────

MCP_SERVER_NAME = "diagbridge"
MCP_LOGGER_NAME = "diagbridge"
MCP_NOTIFICATION_TYPE = "problemsChanged"
RESOURCE_SUMMARY_URI = "diagnostics://summary"
RESOURCE_FILES_URI = "diagnostics://files"
RESOURCE_FILE_PREFIX = "diagnostics://file/"
RESOURCE_WORKSPACE_PREFIX = "diagnostics://workspace/"

ERROR_TRUNCATION_CHARS = 500
