"""Execution-time tracking for engine operations.

Records durations per operation name, keeps a bounded history, and
logs a warning when an operation exceeds its budget.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from typing import TypeVar
from dataclasses import dataclass

from diagbridge.constants import (
    PERF_MAX_HISTORY,
    PERF_OPERATION_EXPORT,
    PERF_OPERATION_PROCESSING,
    PERF_OPERATION_SWEEP,
    Thresholds,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DEFAULT_THRESHOLDS: dict[str, float] = {
    PERF_OPERATION_PROCESSING: Thresholds.DIAGNOSTIC_PROCESSING_MS,
    PERF_OPERATION_SWEEP: Thresholds.WORKSPACE_SWEEP_MS,
    PERF_OPERATION_EXPORT: Thresholds.EXPORT_MS,
}


@dataclass(frozen=True)
class PerformanceStats:
    count: int
    average: float
    min: float
    max: float
    total: float


class PerformanceMonitor:
    """Measures sync and async operations by name."""

    def __init__(
        self,
        enable_logging: bool = True,
        max_history: int = PERF_MAX_HISTORY,
        thresholds: dict[str, float] | None = None,
    ) -> None:
        self._enable_logging = enable_logging
        self._max_history = max_history
        self._thresholds = {**_DEFAULT_THRESHOLDS, **(thresholds or {})}
        self._metrics: dict[str, deque[float]] = {}
        self._disposed = False

    def measure(self, operation: str, fn: Callable[[], T]) -> T:
        if self._disposed:
            return fn()
        start = time.perf_counter()
        try:
            return fn()
        finally:
            self.record(operation, _elapsed_ms(start))

    async def measure_async(
        self, operation: str, fn: Callable[[], Awaitable[T]]
    ) -> T:
        if self._disposed:
            return await fn()
        start = time.perf_counter()
        try:
            return await fn()
        finally:
            self.record(operation, _elapsed_ms(start))

    def record(self, operation: str, duration_ms: float) -> None:
        if self._disposed:
            return
        history = self._metrics.get(operation)
        if history is None:
            history = deque(maxlen=self._max_history)
            self._metrics[operation] = history
        history.append(duration_ms)

        threshold = self._thresholds.get(operation)
        if (
            self._enable_logging
            and threshold is not None
            and duration_ms > threshold
        ):
            logger.warning(
                "event=slow_operation operation=%s duration_ms=%.1f "
                "threshold_ms=%.1f",
                operation,
                duration_ms,
                threshold,
            )

    def stats(self, operation: str) -> PerformanceStats | None:
        history = self._metrics.get(operation)
        if not history:
            return None
        total = sum(history)
        return PerformanceStats(
            count=len(history),
            average=total / len(history),
            min=min(history),
            max=max(history),
            total=total,
        )

    def summary(self) -> dict[str, PerformanceStats]:
        result: dict[str, PerformanceStats] = {}
        for name in self._metrics:
            stats = self.stats(name)
            if stats is not None:
                result[name] = stats
        return result

    def clear(self) -> None:
        self._metrics.clear()

    def dispose(self) -> None:
        self._disposed = True
        self._metrics.clear()


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
