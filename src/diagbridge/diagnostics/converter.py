"""Convert raw host diagnostic payloads into :class:`Diagnostic` models.

Hosts hand us loosely-shaped mappings (editor JSON, analyzer output).
This module owns all the normalization rules:

* numeric severities ``0..3`` map to error/warning/information/hint,
  unknown numbers fall back to error; strings match case-insensitively
* a missing ``source`` becomes ``"unknown"``
* a missing ``message`` or ``range`` (or non-integer positions) makes
  the payload malformed; :class:`MalformedDiagnosticError` is raised
  and the caller decides whether to drop it
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, TypeAlias

from pydantic import ValidationError

from diagbridge.constants import (
    HOST_SEVERITY_MAP,
    UNKNOWN_SOURCE,
    UNKNOWN_WORKSPACE,
    Severity,
)
from diagbridge.diagnostics.schemas import (
    Diagnostic,
    Position,
    Range,
    RelatedInformation,
)
from diagbridge.resilience.errors import MalformedDiagnosticError

logger = logging.getLogger(__name__)

WorkspaceResolver: TypeAlias = Callable[[str], str | None]

_SEVERITY_ALIASES: dict[str, Severity] = {
    "error": Severity.ERROR,
    "warning": Severity.WARNING,
    "warn": Severity.WARNING,
    "information": Severity.INFORMATION,
    "info": Severity.INFORMATION,
    "hint": Severity.HINT,
}


def map_severity(value: object) -> Severity:
    """Map a host severity (number, string or enum) to :class:`Severity`."""
    if isinstance(value, Severity):
        return value
    if value is None:
        return Severity.ERROR
    if isinstance(value, bool):
        # bool is an int subclass; never a meaningful severity
        return Severity.ERROR
    if isinstance(value, int):
        return HOST_SEVERITY_MAP.get(value, Severity.ERROR)
    if isinstance(value, str):
        return _SEVERITY_ALIASES.get(value.strip().lower(), Severity.ERROR)
    return Severity.ERROR


def resolve_workspace_folder(
    file_id: str, resolver: WorkspaceResolver | None
) -> str:
    """Ask the host which workspace folder owns *file_id*."""
    if resolver is None:
        return UNKNOWN_WORKSPACE
    try:
        name = resolver(file_id)
    except Exception:
        logger.debug(
            "event=workspace_resolve_failed file=%s", file_id
        )
        return UNKNOWN_WORKSPACE
    return name or UNKNOWN_WORKSPACE


def to_diagnostic(
    raw: Diagnostic | Mapping[str, Any],
    file_id: str,
    resolver: WorkspaceResolver | None = None,
) -> Diagnostic:
    """Normalize one raw payload for *file_id*.

    An already-built :class:`Diagnostic` passes through unchanged unless
    it names a different file, which is treated as malformed.
    """
    if isinstance(raw, Diagnostic):
        if raw.file_id != file_id:
            msg = (
                f"diagnostic for {raw.file_id!r} "
                f"delivered under {file_id!r}"
            )
            raise MalformedDiagnosticError(msg)
        return raw

    if not isinstance(raw, Mapping):
        msg = f"expected a mapping, got {type(raw).__name__}"
        raise MalformedDiagnosticError(msg)

    message = raw.get("message")
    if not isinstance(message, str) or not message.strip():
        raise MalformedDiagnosticError("missing message")

    workspace = raw.get("workspace_folder") or resolve_workspace_folder(
        file_id, resolver
    )

    try:
        return Diagnostic(
            file_id=file_id,
            range=_parse_range(raw.get("range")),
            severity=map_severity(raw.get("severity")),
            source=str(raw.get("source") or UNKNOWN_SOURCE),
            message=message,
            code=_parse_code(raw.get("code")),
            workspace_folder=str(workspace),
            related_information=_parse_related(
                raw.get("related_information")
                or raw.get("relatedInformation")
            ),
        )
    except ValidationError as exc:
        raise MalformedDiagnosticError(str(exc)) from exc


def _parse_range(value: object) -> Range:
    if isinstance(value, Range):
        return value
    if not isinstance(value, Mapping):
        raise MalformedDiagnosticError("missing range")
    return Range(
        start=_parse_position(value.get("start")),
        end=_parse_position(value.get("end")),
    )


def _parse_position(value: object) -> Position:
    if isinstance(value, Position):
        return value
    if not isinstance(value, Mapping):
        raise MalformedDiagnosticError("missing range position")
    line = value.get("line")
    character = value.get("character", value.get("column"))
    if not _is_int(line) or not _is_int(character):
        raise MalformedDiagnosticError("range position is not integer")
    return Position(line=line, character=character)  # type: ignore[arg-type]


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _parse_code(value: object) -> str | int | None:
    """Codes may arrive as ``{"value": ..., "target": ...}`` objects."""
    if isinstance(value, Mapping):
        value = value.get("value")
    if value is None or value == "":
        return None
    if _is_int(value):
        return value  # type: ignore[return-value]
    return str(value)


def _parse_related(value: object) -> tuple[RelatedInformation, ...]:
    """Best-effort: a broken related entry is dropped, not fatal."""
    if not isinstance(value, (list, tuple)):
        return ()
    related: list[RelatedInformation] = []
    for item in value:
        if isinstance(item, RelatedInformation):
            related.append(item)
            continue
        if not isinstance(item, Mapping):
            continue
        location = item.get("location")
        loc: Mapping[str, Any] = (
            location if isinstance(location, Mapping) else item
        )
        try:
            related.append(
                RelatedInformation(
                    uri=str(loc.get("uri") or "unknown"),
                    range=_parse_range(loc.get("range")),
                    message=str(item.get("message") or "No message"),
                )
            )
        except (MalformedDiagnosticError, ValidationError):
            continue
    return tuple(related)
