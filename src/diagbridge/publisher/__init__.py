"""Publisher layer -- change dispatcher + pluggable subscribers."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path

from diagbridge.config import Settings
from diagbridge.diagnostics.scheduler import Scheduler
from diagbridge.publisher.dispatcher import ChangeDispatcher
from diagbridge.publisher.events import ProblemsChangedEvent
from diagbridge.publisher.handlers import ProblemSubscriber
from diagbridge.publisher.handlers.console import ConsoleStatusHandler
from diagbridge.publisher.handlers.export import JsonExportHandler

__all__ = [
    "ChangeDispatcher",
    "ProblemSubscriber",
    "ProblemsChangedEvent",
    "initialize_publisher",
]


def initialize_publisher(
    settings: Settings,
    scheduler: Scheduler | None = None,
    exporter: Callable[[Path], Awaitable[None]] | None = None,
) -> ChangeDispatcher:
    """Create dispatcher and register built-in subscribers from settings."""
    dispatcher = ChangeDispatcher(
        scheduler=scheduler,
        debounce_seconds=settings.notify_debounce_seconds,
    )
    dispatcher.register(ConsoleStatusHandler())

    if settings.export_path is not None and exporter is not None:
        dispatcher.register(
            JsonExportHandler(settings.export_path, exporter)
        )

    return dispatcher
