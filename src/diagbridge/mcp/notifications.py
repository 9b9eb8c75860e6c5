"""Push problemsChanged notifications to subscribed MCP client sessions."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from diagbridge.constants import MCP_LOGGER_NAME, MCP_NOTIFICATION_TYPE
from diagbridge.publisher.events import ProblemsChangedEvent

logger = logging.getLogger(__name__)


class NotifiableSession(Protocol):
    """The slice of an MCP server session the notifier needs."""

    async def send_log_message(
        self,
        level: Any,
        data: Any,
        logger: str | None = None,
    ) -> None: ...


class McpNotifier:
    """Change subscriber that forwards events as MCP log notifications.

    Sessions register through the ``subscribe_problems`` tool. A session
    whose send fails is assumed gone and dropped.
    """

    def __init__(self) -> None:
        self._sessions: dict[int, NotifiableSession] = {}

    @property
    def name(self) -> str:
        return "mcp"

    def add(self, session: NotifiableSession) -> bool:
        """Register *session*; False if it was already subscribed."""
        key = id(session)
        if key in self._sessions:
            return False
        self._sessions[key] = session
        return True

    def remove(self, session: NotifiableSession) -> bool:
        return self._sessions.pop(id(session), None) is not None

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    async def handle(self, event: ProblemsChangedEvent) -> None:
        payload = {"type": MCP_NOTIFICATION_TYPE, **event.to_payload()}
        for key, session in list(self._sessions.items()):
            try:
                await session.send_log_message(
                    level="info", data=payload, logger=MCP_LOGGER_NAME
                )
            except Exception as exc:
                logger.warning(
                    "event=mcp_session_dropped error=%s", exc
                )
                self._sessions.pop(key, None)
