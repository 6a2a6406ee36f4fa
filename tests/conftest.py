"""
Shared pytest fixtures for relayhub tests.

This module provides:
- ManualTimeoutScheduler: a scheduler whose timers only fire when told to
- FakeClock: deterministic epoch-millisecond clock
- tracker: a CorrelationTracker wired to both

Usage:
    def test_something(tracker, scheduler, clock):
        tracker.start_execution("cmd_1", "start-agent", "web-01")
        clock.advance(30_000)
        scheduler.fire("cmd_1")
"""

from __future__ import annotations

from collections.abc import Callable

import pytest

from relayhub.execution.events import ExecutionChannel
from relayhub.execution.models import Execution
from relayhub.execution.tracker import CorrelationTracker


class ManualTimeoutScheduler:
    """TimeoutScheduler whose timers fire only via :meth:`fire`."""

    name = "manual"

    def __init__(self) -> None:
        self.timers: dict[str, tuple[float, Callable[[], None]]] = {}
        self.cancelled: list[str] = []

    def schedule(self, key: str, delay_seconds: float, callback: Callable[[], None]) -> None:
        self.timers[key] = (delay_seconds, callback)

    def cancel(self, key: str) -> bool:
        if self.timers.pop(key, None) is None:
            return False
        self.cancelled.append(key)
        return True

    def cancel_all(self) -> int:
        count = len(self.timers)
        self.cancelled.extend(self.timers)
        self.timers.clear()
        return count

    @property
    def pending_count(self) -> int:
        return len(self.timers)

    def delay_of(self, key: str) -> float:
        return self.timers[key][0]

    def fire(self, key: str) -> None:
        _, callback = self.timers.pop(key)
        callback()


class FakeClock:
    """Callable clock returning epoch milliseconds, advanced by hand."""

    def __init__(self, start_ms: int = 1_760_781_600_000) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


class EventRecorder:
    """Subscribes to every channel and records (channel, snapshot) pairs."""

    def __init__(self, tracker: CorrelationTracker) -> None:
        self.events: list[tuple[ExecutionChannel, Execution]] = []
        bus = tracker.events
        for subscribe, channel in (
            (bus.on_update, ExecutionChannel.UPDATE),
            (bus.on_complete, ExecutionChannel.COMPLETE),
            (bus.on_failed, ExecutionChannel.FAILED),
            (bus.on_timeout, ExecutionChannel.TIMEOUT),
            (bus.on_manager_operation_complete, ExecutionChannel.MANAGER_OPERATION_COMPLETE),
        ):
            subscribe(lambda e, c=channel: self.events.append((c, e)))

    def channels(self, correlation_id: str | None = None) -> list[ExecutionChannel]:
        return [
            c for c, e in self.events
            if correlation_id is None or e.correlation_id == correlation_id
        ]

    def count(self, channel: ExecutionChannel, correlation_id: str | None = None) -> int:
        return self.channels(correlation_id).count(channel)

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture
def scheduler() -> ManualTimeoutScheduler:
    return ManualTimeoutScheduler()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tracker(scheduler, clock) -> CorrelationTracker:
    return CorrelationTracker(scheduler=scheduler, clock=clock)


@pytest.fixture
def recorder(tracker) -> EventRecorder:
    return EventRecorder(tracker)
