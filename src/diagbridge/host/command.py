"""Standalone host that runs an external analyzer command per file.

Lets the engine work outside an editor: "opening" a document runs the
configured analyzer on it, and the parsed output becomes that file's
complete diagnostic list.
"""

from __future__ import annotations

import asyncio
import json
import logging
import shlex
from collections.abc import Callable
from typing import Any, TypeAlias

from diagbridge.constants import (
    ERROR_TRUNCATION_CHARS,
    AnalyzerOutputFormat,
    Severity,
)
from diagbridge.diagnostics.events import DiagnosticChangeBatch, FileDiagnostics
from diagbridge.host.protocols import ChangeHandler, Unsubscribe
from diagbridge.resilience.errors import DiagnosticReadError, DocumentOpenError

logger = logging.getLogger(__name__)

FILE_PLACEHOLDER = "{file}"
RUFF_SOURCE = "ruff"

OutputParser: TypeAlias = Callable[[str], list[dict[str, Any]]]


def build_argv(template: str, file_id: str) -> list[str]:
    """Split *template* and substitute ``{file}``; append it if absent."""
    argv = shlex.split(template)
    if not argv:
        raise ValueError("analyzer command is empty")
    if any(FILE_PLACEHOLDER in arg for arg in argv):
        return [arg.replace(FILE_PLACEHOLDER, file_id) for arg in argv]
    return [*argv, file_id]


def parse_canonical(output: str) -> list[dict[str, Any]]:
    """Diagnostics already in host shape: a list, or ``{"diagnostics": [...]}``."""
    data = json.loads(output)
    if isinstance(data, dict):
        data = data.get("diagnostics", [])
    if not isinstance(data, list):
        raise ValueError("expected a JSON list of diagnostics")
    return [d for d in data if isinstance(d, dict)]


def parse_ruff(output: str) -> list[dict[str, Any]]:
    """``ruff check --output-format json``; rows and columns are 1-based."""
    data = json.loads(output)
    if not isinstance(data, list):
        raise ValueError("expected a JSON list of ruff messages")
    result: list[dict[str, Any]] = []
    for item in data:
        if not isinstance(item, dict):
            continue
        start = item.get("location") or {}
        end = item.get("end_location") or start
        code = item.get("code")
        result.append({
            "range": {
                "start": _zero_based(start),
                "end": _zero_based(end),
            },
            # ruff reports syntax errors without a rule code
            "severity": (
                Severity.ERROR.value if code is None
                else Severity.WARNING.value
            ),
            "source": RUFF_SOURCE,
            "message": item.get("message"),
            "code": code,
        })
    return result


def _zero_based(location: dict[str, Any]) -> dict[str, Any]:
    row = location.get("row")
    column = location.get("column")
    return {
        "line": row - 1 if isinstance(row, int) and row > 0 else row,
        "character": (
            column - 1 if isinstance(column, int) and column > 0 else column
        ),
    }


_PARSERS: dict[AnalyzerOutputFormat, OutputParser] = {
    AnalyzerOutputFormat.CANONICAL: parse_canonical,
    AnalyzerOutputFormat.RUFF: parse_ruff,
}


class CommandAnalyzerHost:
    """DiagnosticSource + DocumentOpener backed by a subprocess."""

    def __init__(
        self,
        command: str,
        output_format: AnalyzerOutputFormat = AnalyzerOutputFormat.CANONICAL,
        timeout: float = 30.0,
    ) -> None:
        if not command.strip():
            raise ValueError("analyzer command is empty")
        self._command = command
        self._parser = _PARSERS[AnalyzerOutputFormat(output_format)]
        self._timeout = timeout
        self._results: dict[str, list[dict[str, Any]]] = {}
        self._handlers: list[ChangeHandler] = []

    async def get_diagnostics(
        self, file_id: str | None = None
    ) -> list[FileDiagnostics]:
        if file_id is None:
            return [
                FileDiagnostics(f, list(d), complete=True)
                for f, d in self._results.items()
            ]
        if file_id not in self._results:
            return []
        return [
            FileDiagnostics(file_id, list(self._results[file_id]), True)
        ]

    def subscribe(self, handler: ChangeHandler) -> Unsubscribe:
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    async def open_invisibly(self, file_id: str) -> None:
        await self.analyze(file_id)

    async def release(self, file_id: str) -> None:
        return None

    async def analyze(self, file_id: str) -> list[dict[str, Any]]:
        """Run the analyzer on *file_id* and publish the result."""
        output = await self._run(file_id)
        try:
            diagnostics = self._parser(output) if output.strip() else []
        except ValueError as exc:
            msg = f"unparseable analyzer output: {exc}"
            raise DiagnosticReadError(msg, file_id=file_id) from exc

        self._results[file_id] = diagnostics
        batch = DiagnosticChangeBatch(
            entries=[FileDiagnostics(file_id, diagnostics, complete=True)]
        )
        for handler in list(self._handlers):
            await handler(batch)
        return diagnostics

    async def _run(self, file_id: str) -> str:
        argv = build_argv(self._command, file_id)
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            msg = f"cannot start analyzer {argv[0]!r}: {exc}"
            raise DocumentOpenError(msg, file_id=file_id) from exc

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self._timeout
            )
        except TimeoutError:
            proc.kill()
            await proc.wait()
            msg = f"analyzer timed out after {self._timeout}s"
            raise TimeoutError(msg) from None

        text = stdout.decode(errors="replace")
        if proc.returncode not in (0, 1) and not text.strip():
            detail = stderr.decode(errors="replace")[:ERROR_TRUNCATION_CHARS]
            logger.debug(
                "event=analyzer_failed file=%s code=%s", file_id, proc.returncode
            )
            msg = f"analyzer exited with {proc.returncode}: {detail}"
            raise DocumentOpenError(msg, file_id=file_id)
        return text
