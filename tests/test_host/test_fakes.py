"""Tests for the virtual clock used throughout the suite."""

from __future__ import annotations

import asyncio

import pytest

from diagbridge.host.fakes import VirtualScheduler


class TestVirtualScheduler:
    @pytest.mark.asyncio
    async def test_auto_advance_sleep(self) -> None:
        clock = VirtualScheduler()
        await clock.sleep(2.5)
        assert clock.now == 2.5
        assert clock.sleeps == [2.5]

    @pytest.mark.asyncio
    async def test_manual_sleep_waits_for_advance(self) -> None:
        clock = VirtualScheduler(auto_advance=False)
        task = asyncio.create_task(clock.sleep(1.0))
        await clock.advance(0.5)
        assert not task.done()
        await clock.advance(0.5)
        assert task.done()

    @pytest.mark.asyncio
    async def test_schedule_fires_in_order(self) -> None:
        clock = VirtualScheduler()
        order: list[str] = []

        async def job(name: str) -> None:
            order.append(name)

        clock.schedule(2.0, lambda: job("late"))
        clock.schedule(1.0, lambda: job("early"))
        await clock.advance(3.0)
        assert order == ["early", "late"]

    @pytest.mark.asyncio
    async def test_cancelled_handle_never_fires(self) -> None:
        clock = VirtualScheduler()
        fired: list[bool] = []

        async def job() -> None:
            fired.append(True)

        handle = clock.schedule(1.0, job)
        handle.cancel()
        await clock.run_until_idle()
        assert fired == []
        assert handle.done
