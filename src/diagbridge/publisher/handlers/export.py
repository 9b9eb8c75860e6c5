"""JSON export handler -- rewrites the export file on every change."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeAlias
from pathlib import Path

from diagbridge.publisher.events import ProblemsChangedEvent

Exporter: TypeAlias = Callable[[Path], Awaitable[None]]


class JsonExportHandler:
    """Keeps an on-disk JSON copy of the aggregate current.

    The exporter does the atomic write; failures propagate to the
    dispatcher, which logs them.
    """

    def __init__(self, path: Path, exporter: Exporter) -> None:
        self._path = path
        self._exporter = exporter

    @property
    def name(self) -> str:
        return "json_export"

    @property
    def path(self) -> Path:
        return self._path

    async def handle(self, event: ProblemsChangedEvent) -> None:
        await self._exporter(self._path)
