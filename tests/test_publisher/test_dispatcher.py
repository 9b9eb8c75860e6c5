"""Tests for ChangeDispatcher fan-out and debouncing."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from diagbridge.constants import ChangeKind
from diagbridge.host.fakes import RecordingSubscriber, VirtualScheduler
from diagbridge.publisher.dispatcher import ChangeDispatcher
from diagbridge.publisher.events import ProblemsChangedEvent


class _Failing:
    @property
    def name(self) -> str:
        return "failing"

    async def handle(self, event: ProblemsChangedEvent) -> None:
        raise RuntimeError("subscriber down")


def _summary() -> dict[str, Any]:
    return {"total_problems": 3}


class TestRegistration:
    def test_duplicate_names_ignored(self) -> None:
        dispatcher = ChangeDispatcher()
        dispatcher.register(RecordingSubscriber("a"))
        dispatcher.register(RecordingSubscriber("a"))
        assert dispatcher.subscriber_count == 1

    def test_unregister(self) -> None:
        dispatcher = ChangeDispatcher()
        dispatcher.register(RecordingSubscriber("a"))
        assert dispatcher.unregister("a")
        assert not dispatcher.unregister("a")


class TestEmit:
    @pytest.mark.asyncio
    async def test_failing_subscriber_isolated(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        dispatcher = ChangeDispatcher()
        good = RecordingSubscriber()
        dispatcher.register(_Failing())
        dispatcher.register(good)

        with caplog.at_level(logging.WARNING):
            await dispatcher.notify(ChangeKind.UPDATE, ["a.ts"], _summary)

        assert len(good.events) == 1
        assert "event=subscriber_error subscriber=failing" in caplog.text

    @pytest.mark.asyncio
    async def test_event_carries_summary(self) -> None:
        dispatcher = ChangeDispatcher()
        rec = RecordingSubscriber()
        dispatcher.register(rec)
        await dispatcher.notify(ChangeKind.SWEEP, ["a.ts"], _summary)
        event = rec.events[0]
        assert event.kind == ChangeKind.SWEEP
        assert event.total_problems == 3
        assert event.file_ids == ("a.ts",)


class TestDebounce:
    @pytest.mark.asyncio
    async def test_coalesces_within_window(self) -> None:
        clock = VirtualScheduler()
        dispatcher = ChangeDispatcher(scheduler=clock, debounce_seconds=1.0)
        rec = RecordingSubscriber()
        dispatcher.register(rec)

        await dispatcher.notify(ChangeKind.UPDATE, ["a.ts"], _summary)
        await dispatcher.notify(ChangeKind.UPDATE, ["b.ts", "a.ts"], _summary)
        assert dispatcher.has_pending
        assert rec.events == []

        await clock.advance(1.0)
        assert len(rec.events) == 1
        assert rec.events[0].file_ids == ("a.ts", "b.ts")
        assert not dispatcher.has_pending

    @pytest.mark.asyncio
    async def test_cancel_pending_drops_event(self) -> None:
        clock = VirtualScheduler()
        dispatcher = ChangeDispatcher(scheduler=clock, debounce_seconds=1.0)
        rec = RecordingSubscriber()
        dispatcher.register(rec)

        await dispatcher.notify(ChangeKind.UPDATE, ["a.ts"], _summary)
        dispatcher.cancel_pending()
        await clock.advance(2.0)
        assert rec.events == []

    @pytest.mark.asyncio
    async def test_without_scheduler_is_immediate(self) -> None:
        dispatcher = ChangeDispatcher(debounce_seconds=5.0)
        rec = RecordingSubscriber()
        dispatcher.register(rec)
        await dispatcher.notify(ChangeKind.UPDATE, ["a.ts"], _summary)
        assert len(rec.events) == 1
