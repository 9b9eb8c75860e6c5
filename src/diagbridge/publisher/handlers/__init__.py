"""Pluggable change subscribers."""

from __future__ import annotations

from typing import Protocol

from diagbridge.publisher.events import ProblemsChangedEvent


class ProblemSubscriber(Protocol):
    """Anything that can receive change notifications.

    The MCP notifier, the status line and test collectors all attach
    through this one shape.
    """

    @property
    def name(self) -> str: ...

    async def handle(self, event: ProblemsChangedEvent) -> None: ...
