"""Console status handler -- one key=value status line per change."""

from __future__ import annotations

import logging

from diagbridge.publisher.events import ProblemsChangedEvent

logger = logging.getLogger(__name__)


class ConsoleStatusHandler:
    """Logs the problem counts, like an editor status bar would show."""

    @property
    def name(self) -> str:
        return "console"

    async def handle(self, event: ProblemsChangedEvent) -> None:
        s = event.summary
        parts = [
            f"change={event.kind}",
            f"files={len(event.file_ids)}",
            f"problems={event.total_problems}",
            f"errors={s.get('error_count', 0)}",
            f"warnings={s.get('warning_count', 0)}",
        ]
        logger.info(" ".join(parts))
