"""Shared test fixtures: fake host, virtual clock, engine."""

from __future__ import annotations

import os
from collections.abc import AsyncIterator, Callable
from typing import Any, TypeAlias

import pytest

from diagbridge.config import Settings
from diagbridge.engine import DiagnosticsEngine
from diagbridge.host.fakes import (
    FakeHost,
    RecordingSubscriber,
    VirtualScheduler,
    raw_diagnostic,
)

DiagFactory: TypeAlias = Callable[..., dict[str, Any]]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's DIAGBRIDGE_* variables out of Settings()."""
    for key in list(os.environ):
        if key.startswith("DIAGBRIDGE_"):
            monkeypatch.delenv(key)


@pytest.fixture
def make_diag() -> DiagFactory:
    return raw_diagnostic


@pytest.fixture
def recorder() -> RecordingSubscriber:
    return RecordingSubscriber()


@pytest.fixture
def scheduler() -> VirtualScheduler:
    return VirtualScheduler()


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def settings() -> Settings:
    """Manual analysis only; small batches."""
    return Settings(
        initial_analysis_delay_seconds=-1.0,
        sweep_batch_size=4,
        sweep_settle_seconds=1.0,
        sweep_interbatch_seconds=0.1,
    )


@pytest.fixture
async def engine(
    host: FakeHost,
    scheduler: VirtualScheduler,
    settings: Settings,
    recorder: RecordingSubscriber,
) -> AsyncIterator[DiagnosticsEngine]:
    eng = DiagnosticsEngine(
        source=host,
        opener=host,
        workspace=host,
        settings=settings,
        scheduler=scheduler,
        resolver=host,
        deletions=host,
    )
    eng.subscribe(recorder)
    await eng.init()
    yield eng
    eng.dispose()
