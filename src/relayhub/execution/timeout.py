"""Deadline timers for pending executions.

Every pending execution gets one timer. If no callback arrives before it
fires, the tracker forces the execution into ``timeout``. Timers are
cancelled (not merely guarded) on every path that reaches a terminal status
first and when a record is evicted, so nothing leaks.

Architecture:
    ::

        TimeoutPolicy.select_ms(command, operation_type) → ms
                              │
                              ▼
        TimeoutScheduler.schedule(correlation_id, seconds, callback)
            ├── ThreadTimeoutScheduler   threading.Timer, daemon threads
            └── AsyncioTimeoutScheduler  loop.call_later on the running loop

        TimeoutScheduler.cancel(correlation_id)   on complete/fail/evict

Both schedulers key timers by correlation id; scheduling a key twice
replaces the earlier timer.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from relayhub.core.logging import get_logger
from relayhub.execution.transitions import is_manager_operation

logger = get_logger(__name__)

DEFAULT_TIMEOUT_MS = 30_000
MANAGER_TIMEOUT_MS = 30_000

TimeoutCallback = Callable[[], None]


@dataclass(frozen=True)
class TimeoutPolicy:
    """Chooses the deadline for an operation.

    Manager lifecycle actions and ordinary operations each have their own
    duration. They default to the same value but stay independently
    configurable.
    """

    default_timeout_ms: int = DEFAULT_TIMEOUT_MS
    manager_timeout_ms: int = MANAGER_TIMEOUT_MS

    def __post_init__(self) -> None:
        if self.default_timeout_ms <= 0 or self.manager_timeout_ms <= 0:
            raise ValueError("Timeouts must be positive milliseconds")

    def select_ms(self, command: str | None, operation_type: str | None = None) -> int:
        if is_manager_operation(command, operation_type):
            return self.manager_timeout_ms
        return self.default_timeout_ms

    def to_dict(self) -> dict[str, float]:
        return {
            "default_timeout_ms": self.default_timeout_ms,
            "manager_timeout_ms": self.manager_timeout_ms,
            "default_timeout_seconds": self.default_timeout_ms / 1000,
            "manager_timeout_seconds": self.manager_timeout_ms / 1000,
        }


@runtime_checkable
class TimeoutScheduler(Protocol):
    """Keyed one-shot timers."""

    def schedule(self, key: str, delay_seconds: float, callback: TimeoutCallback) -> None:
        """Run *callback* after *delay_seconds* unless cancelled first."""
        ...

    def cancel(self, key: str) -> bool:
        """Cancel the timer for *key*. Returns True if one was pending."""
        ...

    def cancel_all(self) -> int:
        """Cancel every pending timer and return how many were cancelled."""
        ...

    @property
    def pending_count(self) -> int:
        ...


class ThreadTimeoutScheduler:
    """Timers backed by daemon ``threading.Timer`` threads.

    This is the default for synchronous callers. Callbacks run on the timer
    thread, so the code they call into must do its own locking (the tracker
    serializes everything behind one lock).

    Example:
        >>> scheduler = ThreadTimeoutScheduler()
        >>> scheduler.schedule("cmd_1", 0.05, lambda: print("expired"))
        >>> scheduler.cancel("cmd_1")
        True
    """

    name = "thread"

    def __init__(self) -> None:
        self._timers: dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    def schedule(self, key: str, delay_seconds: float, callback: TimeoutCallback) -> None:
        timer = threading.Timer(delay_seconds, self._fire, args=(key, callback))
        timer.daemon = True
        timer.name = f"relayhub-timeout-{key}"
        with self._lock:
            previous = self._timers.pop(key, None)
            self._timers[key] = timer
        if previous is not None:
            previous.cancel()
        timer.start()

    def _fire(self, key: str, callback: TimeoutCallback) -> None:
        with self._lock:
            timer = self._timers.get(key)
            if timer is not threading.current_thread():
                # Replaced or cancelled while this thread was waking up
                return
            del self._timers[key]
        try:
            callback()
        except Exception:
            logger.exception("timeout_callback_error", key=key)

    def cancel(self, key: str) -> bool:
        with self._lock:
            timer = self._timers.pop(key, None)
        if timer is None:
            return False
        timer.cancel()
        return True

    def cancel_all(self) -> int:
        with self._lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
        return len(timers)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._timers)


class AsyncioTimeoutScheduler:
    """Timers on an asyncio event loop via ``loop.call_later``.

    Used by the HTTP application, where request handlers and timers
    interleave on one cooperative loop. ``schedule`` must be called from the
    loop's thread; without an explicit *loop* the running loop is used.
    """

    name = "asyncio"

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._handles: dict[str, asyncio.TimerHandle] = {}

    def schedule(self, key: str, delay_seconds: float, callback: TimeoutCallback) -> None:
        loop = self._loop or asyncio.get_running_loop()
        self.cancel(key)
        self._handles[key] = loop.call_later(delay_seconds, self._fire, key, callback)

    def _fire(self, key: str, callback: TimeoutCallback) -> None:
        self._handles.pop(key, None)
        try:
            callback()
        except Exception:
            logger.exception("timeout_callback_error", key=key)

    def cancel(self, key: str) -> bool:
        handle = self._handles.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> int:
        handles = list(self._handles.values())
        self._handles.clear()
        for handle in handles:
            handle.cancel()
        return len(handles)

    @property
    def pending_count(self) -> int:
        return len(self._handles)
