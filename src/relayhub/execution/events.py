"""Execution event bus — decouples state changes from their observers.

Why This Module Exists
----------------------
Long-poll handlers, server-push streams and the multi-agent dispatch logic
all react to execution changes. The tracker publishes to named channels and
never learns who is listening.

Channels
--------
executionUpdate              every mutation, without exception
execution-complete           success / timeoutSuccess / parent resolution
execution-failed             failure callback accepted
execution-timeout            deadline fired
manager-operation-complete   a manager lifecycle action completed

Usage::

    bus = ExecutionEventBus()
    sub_id = bus.on_complete(lambda execution: print(execution.correlation_id))
    ...
    bus.unsubscribe(sub_id)

Delivery is synchronous, in registration order, and best-effort: a handler
that raises is logged and skipped. There is no persistence or replay; late
subscribers catch up through ``get_all_executions()``.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from relayhub.core.logging import get_logger
from relayhub.execution.models import Execution

__all__ = [
    "ExecutionChannel",
    "ExecutionEventBus",
    "ExecutionHandler",
    "Subscription",
]

logger = get_logger(__name__)

ExecutionHandler = Callable[[Execution], None]


class ExecutionChannel(str, Enum):
    UPDATE = "executionUpdate"
    COMPLETE = "execution-complete"
    FAILED = "execution-failed"
    TIMEOUT = "execution-timeout"
    MANAGER_OPERATION_COMPLETE = "manager-operation-complete"


@dataclass
class Subscription:
    """Internal subscription record."""

    id: str
    channel: ExecutionChannel
    handler: ExecutionHandler


class ExecutionEventBus:
    """In-process publish/subscribe for execution state changes."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self._lock = threading.Lock()

    # ── Typed subscribe methods ───────────────────────────────────────

    def on_update(self, handler: ExecutionHandler) -> str:
        """Every mutation of any execution."""
        return self._subscribe(ExecutionChannel.UPDATE, handler)

    def on_complete(self, handler: ExecutionHandler) -> str:
        return self._subscribe(ExecutionChannel.COMPLETE, handler)

    def on_failed(self, handler: ExecutionHandler) -> str:
        return self._subscribe(ExecutionChannel.FAILED, handler)

    def on_timeout(self, handler: ExecutionHandler) -> str:
        return self._subscribe(ExecutionChannel.TIMEOUT, handler)

    def on_manager_operation_complete(self, handler: ExecutionHandler) -> str:
        """Manager lifecycle actions only, so observers can refresh manager state."""
        return self._subscribe(ExecutionChannel.MANAGER_OPERATION_COMPLETE, handler)

    def _subscribe(self, channel: ExecutionChannel, handler: ExecutionHandler) -> str:
        sub_id = f"sub_{uuid.uuid4().hex[:12]}"
        with self._lock:
            self._subscriptions[sub_id] = Subscription(id=sub_id, channel=channel, handler=handler)
        return sub_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription. Returns False if it was unknown."""
        with self._lock:
            return self._subscriptions.pop(subscription_id, None) is not None

    # ── Publishing ────────────────────────────────────────────────────

    def publish(self, channel: ExecutionChannel, execution: Execution) -> int:
        """Deliver *execution* to every handler on *channel*.

        Each handler gets its own snapshot. Returns the number of handlers
        that ran without raising.
        """
        with self._lock:
            targets = [s for s in self._subscriptions.values() if s.channel is channel]

        delivered = 0
        for sub in targets:
            try:
                sub.handler(execution.snapshot())
                delivered += 1
            except Exception as e:
                logger.warning(
                    "event_handler_error",
                    subscription_id=sub.id,
                    channel=channel.value,
                    correlation_id=execution.correlation_id,
                    error=str(e),
                )
        return delivered

    def subscription_count(self, channel: ExecutionChannel | None = None) -> int:
        with self._lock:
            if channel is None:
                return len(self._subscriptions)
            return sum(1 for s in self._subscriptions.values() if s.channel is channel)

    def clear(self) -> None:
        with self._lock:
            self._subscriptions.clear()
