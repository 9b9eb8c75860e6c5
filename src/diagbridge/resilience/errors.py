"""Error types and classification for host collaborator failures.

Classifies exceptions by category to enable:
- Structured logging (which failures are transient vs permanent)
- Sweep reports that explain why a file was skipped
"""

from __future__ import annotations

import asyncio
from enum import Enum


class HostError(Exception):
    """A host collaborator (analyzer, document access) failed."""

    def __init__(self, message: str, file_id: str | None = None) -> None:
        super().__init__(message)
        self.file_id = file_id


class DocumentOpenError(HostError):
    """The host could not materialize a document invisibly."""


class DiagnosticReadError(HostError):
    """The host could not report diagnostics for a document."""


class SubscriptionError(HostError):
    """The host's diagnostic change notifications are unavailable."""


class MalformedDiagnosticError(ValueError):
    """A raw diagnostic payload is missing a required field."""


class ErrorClass(Enum):
    TRANSIENT = "transient"  # busy host or dropped connection
    TIMEOUT = "timeout"  # analyzer did not answer in time
    CLIENT = "client"  # missing file, permission, bad input
    UNKNOWN = "unknown"  # unclassified


def classify_error(error: BaseException) -> ErrorClass:
    """Classify an error to determine how loudly to report it.

    Checks exception types first, falls back to string matching for
    errors wrapped by the host.
    """
    if isinstance(error, (TimeoutError, asyncio.TimeoutError)):
        return ErrorClass.TIMEOUT
    if isinstance(
        error, (FileNotFoundError, PermissionError, IsADirectoryError)
    ):
        return ErrorClass.CLIENT
    if isinstance(error, (ConnectionError, BrokenPipeError)):
        return ErrorClass.TRANSIENT

    msg = str(error).lower()

    if "timeout" in msg or "timed out" in msg:
        return ErrorClass.TIMEOUT
    if "busy" in msg or "connection" in msg or "econnrefused" in msg:
        return ErrorClass.TRANSIENT
    if "not found" in msg or "permission" in msg or "binary" in msg:
        return ErrorClass.CLIENT

    return ErrorClass.UNKNOWN


_RETRYABLE = frozenset({
    ErrorClass.TRANSIENT,
    ErrorClass.TIMEOUT,
})


def is_retryable(error: BaseException) -> bool:
    """Return True if a later live update is likely to succeed."""
    return classify_error(error) in _RETRYABLE
