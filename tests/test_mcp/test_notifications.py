"""Tests for McpNotifier."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from diagbridge.constants import ChangeKind
from diagbridge.mcp.notifications import McpNotifier
from diagbridge.publisher.events import ProblemsChangedEvent


class _Session:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.messages: list[dict[str, Any]] = []

    async def send_log_message(
        self, level: Any, data: Any, logger: str | None = None
    ) -> None:
        if self.fail:
            raise ConnectionError("client went away")
        self.messages.append({"level": level, "data": data, "logger": logger})


def _event() -> ProblemsChangedEvent:
    return ProblemsChangedEvent(
        kind=ChangeKind.SWEEP,
        file_ids=("a.ts",),
        summary={"total_problems": 5},
    )


class TestMcpNotifier:
    def test_add_is_idempotent_per_session(self) -> None:
        notifier = McpNotifier()
        session = _Session()
        assert notifier.add(session)
        assert not notifier.add(session)
        assert notifier.session_count == 1

    def test_remove(self) -> None:
        notifier = McpNotifier()
        session = _Session()
        notifier.add(session)
        assert notifier.remove(session)
        assert not notifier.remove(session)

    @pytest.mark.asyncio
    async def test_handle_sends_problems_changed(self) -> None:
        notifier = McpNotifier()
        session = _Session()
        notifier.add(session)

        await notifier.handle(_event())

        [message] = session.messages
        assert message["level"] == "info"
        assert message["logger"] == "diagbridge"
        assert message["data"]["type"] == "problemsChanged"
        assert message["data"]["kind"] == "sweep"
        assert message["data"]["problemCount"] == 5

    @pytest.mark.asyncio
    async def test_failing_session_dropped(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        notifier = McpNotifier()
        good, bad = _Session(), _Session(fail=True)
        notifier.add(bad)
        notifier.add(good)

        with caplog.at_level(logging.WARNING):
            await notifier.handle(_event())

        assert notifier.session_count == 1
        assert len(good.messages) == 1
        assert "event=mcp_session_dropped" in caplog.text
