"""Correlation tracker — the hub's view of every in-flight agent operation.

A dispatch endpoint registers an execution under a correlation id, sends
the request to the agent and returns. The agent reports back later through
a completion or failure callback, which may arrive late, twice, or never.
The tracker races those callbacks against a deadline timer, decides the
recorded status, rolls child outcomes up into fan-out parents, and tells
observers about every change.

Architecture:
    ::

        start_execution ──► ExecutionStore.add
                       └──► TimeoutScheduler.schedule ──► timeout_execution
        complete/fail/terminate/timeout
              │
              ├─ resolve_transition()      (what is the next status?)
              ├─ TimeoutScheduler.cancel   (every terminal path)
              ├─ ExecutionEventBus.publish (specific channel, then update)
              └─ _resolve_parent()         (all children terminal? classify)

Guardrails:
    - Public methods never raise for unknown ids or contradictory
      callbacks; those become log lines and queryable state.
    - One re-entrant lock linearizes all transitions. On the asyncio loop
      it is never contended; with thread timers it serializes the timer
      thread against callers.
    - Observers only ever see snapshots.

Example:
    >>> tracker = CorrelationTracker()
    >>> cid = tracker.generate_correlation_id()
    >>> tracker.start_execution(cid, "start-agent", "web-01", "start-agent")
    >>> tracker.complete_execution(cid, {"agentName": "web-01"})
    >>> tracker.get_execution(cid).status
    <ExecutionStatus.SUCCESS: 'success'>
"""

from __future__ import annotations

import copy
import functools
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from relayhub.core.logging import get_logger
from relayhub.execution.aggregation import classify, summarize_children
from relayhub.execution.events import ExecutionChannel, ExecutionEventBus
from relayhub.execution.models import Execution, ExecutionStatus, now_ms
from relayhub.execution.store import (
    DEFAULT_RETENTION_COUNT,
    ExecutionStore,
    generate_correlation_id,
)
from relayhub.execution.timeout import ThreadTimeoutScheduler, TimeoutPolicy, TimeoutScheduler
from relayhub.execution.transitions import (
    InvalidTransitionError,
    TransitionEvent,
    is_manager_operation,
    is_stop_operation,
    resolve_transition,
    validate_transition,
)

if TYPE_CHECKING:
    from relayhub.core.settings import RelayHubSettings

logger = get_logger(__name__)


class CorrelationTracker:
    """Tracks distributed operations by correlation id.

    Construct one per process and pass it to whatever needs it; there is no
    module-level instance.

    Args:
        policy: Deadline selection (default and manager durations).
        scheduler: Timer backend. Defaults to daemon thread timers.
        events: Event bus to publish on. A private bus is created if omitted.
        retention_count: Records kept by ``cleanup()``.
        clock: Epoch-millisecond clock, injectable for tests.
    """

    def __init__(
        self,
        policy: TimeoutPolicy | None = None,
        scheduler: TimeoutScheduler | None = None,
        events: ExecutionEventBus | None = None,
        retention_count: int = DEFAULT_RETENTION_COUNT,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._policy = policy or TimeoutPolicy()
        self._scheduler = scheduler if scheduler is not None else ThreadTimeoutScheduler()
        self._events = events if events is not None else ExecutionEventBus()
        self._store = ExecutionStore()
        self._retention_count = retention_count
        self._clock = clock
        self._lock = threading.RLock()

    @classmethod
    def from_settings(
        cls,
        settings: RelayHubSettings,
        scheduler: TimeoutScheduler | None = None,
    ) -> CorrelationTracker:
        return cls(
            policy=TimeoutPolicy(
                default_timeout_ms=settings.default_timeout_ms,
                manager_timeout_ms=settings.manager_timeout_ms,
            ),
            scheduler=scheduler,
            retention_count=settings.retention_count,
        )

    @property
    def events(self) -> ExecutionEventBus:
        return self._events

    @property
    def policy(self) -> TimeoutPolicy:
        return self._policy

    @property
    def scheduler(self) -> TimeoutScheduler:
        return self._scheduler

    def generate_correlation_id(self) -> str:
        return generate_correlation_id(self._clock())

    # ── Registration ──────────────────────────────────────────────────

    def start_execution(
        self,
        correlation_id: str,
        command: str,
        agent_target: str,
        operation_type: str | None = None,
        parent_id: str | None = None,
    ) -> Execution | None:
        """Register a pending execution and arm its deadline.

        Returns a snapshot of the new record, or None when the correlation id
        is already tracked (the existing record is left untouched).
        """
        with self._lock:
            if correlation_id in self._store:
                logger.warning("duplicate_correlation_id", correlation_id=correlation_id)
                return None

            now = self._clock()
            execution = Execution.create(
                correlation_id,
                command,
                agent_target,
                operation_type=operation_type,
                parent_id=parent_id,
                start_time=now,
            )
            self._store.add(execution)

            if parent_id is not None:
                self._attach_to_parent(execution, parent_id)

            label = "[STOP]" if is_stop_operation(command, operation_type) else "[START]"
            timeout_ms = self._policy.select_ms(command, operation_type)
            self._log(execution, f"{label} Execution started: {command} on {agent_target}")
            self._log(execution, f"{label} CorrelationId: {correlation_id}")
            self._log(
                execution,
                f"[DEBUG] Type: {operation_type or 'not specified'}, "
                f"parent: {parent_id or 'none'}, timeout: {timeout_ms / 1000:g}s",
            )

            self._scheduler.schedule(
                correlation_id,
                timeout_ms / 1000,
                functools.partial(self._on_deadline, correlation_id, timeout_ms),
            )

            logger.info(
                "execution_started",
                correlation_id=correlation_id,
                command=command,
                agent=agent_target,
                operation_type=operation_type,
                parent_id=parent_id,
                timeout_ms=timeout_ms,
            )
            self._events.publish(ExecutionChannel.UPDATE, execution)
            return execution.snapshot()

    def _attach_to_parent(self, child: Execution, parent_id: str) -> None:
        parent = self._store.get(parent_id)
        if parent is None:
            logger.warning(
                "unknown_parent_id",
                correlation_id=child.correlation_id,
                parent_id=parent_id,
            )
            return
        if parent.add_child(child.correlation_id):
            self._log(
                parent,
                f"[PARENT] Added child operation: {child.correlation_id} for {child.agent_target}",
            )
        if parent.is_terminal:
            logger.warning(
                "child_added_to_resolved_parent",
                correlation_id=child.correlation_id,
                parent_id=parent_id,
                parent_status=parent.status.value,
            )

    # ── Transitions ───────────────────────────────────────────────────

    def complete_execution(self, correlation_id: str, result: Any = None) -> None:
        """Record a completion callback."""
        with self._lock:
            execution = self._lookup(correlation_id, "complete_execution")
            if execution is None:
                return

            target = resolve_transition(
                execution.status,
                TransitionEvent.COMPLETE,
                execution.command,
                execution.operation_type,
            )
            if target is None:
                if execution.status is ExecutionStatus.TIMEOUT:
                    if is_stop_operation(execution.command, execution.operation_type):
                        message = "Ignoring late callback for stop operation after timeout"
                    else:
                        message = "Ignoring late callback after timeout"
                    self._log(execution, f"[LATE-CALLBACK] {message}")
                    logger.info("late_callback_discarded", correlation_id=correlation_id)
                else:
                    logger.info(
                        "callback_ignored",
                        correlation_id=correlation_id,
                        status=execution.status.value,
                    )
                return

            self._scheduler.cancel(correlation_id)
            now = self._clock()
            if not self._transition(execution, target, now):
                return
            execution.callback_time = now
            # Stored detached from the caller's object
            execution.result = copy.deepcopy(result)

            if target is ExecutionStatus.TIMEOUT_SUCCESS:
                execution.timed_out = True
                self._log(execution, "[LATE-CALLBACK] Received successful completion after timeout")
            self._log(
                execution,
                f"[TRACKER] Execution completed for agent: {execution.agent_target} "
                f"with status: {execution.status.value}",
            )
            logger.info(
                "execution_completed",
                correlation_id=correlation_id,
                agent=execution.agent_target,
                status=execution.status.value,
                duration_ms=now - execution.start_time,
                late=execution.timed_out,
            )

            self._events.publish(ExecutionChannel.COMPLETE, execution)
            self._events.publish(ExecutionChannel.UPDATE, execution)
            if is_manager_operation(execution.command, execution.operation_type):
                self._events.publish(ExecutionChannel.MANAGER_OPERATION_COMPLETE, execution)

            self._notify_parent(execution)

    def fail_execution(self, correlation_id: str, error: str) -> None:
        """Record a failure callback."""
        with self._lock:
            execution = self._lookup(correlation_id, "fail_execution")
            if execution is None:
                return

            target = resolve_transition(execution.status, TransitionEvent.FAIL)
            if target is None:
                if execution.status is ExecutionStatus.TIMEOUT:
                    self._log(execution, f"[LATE-CALLBACK] Ignoring failure after timeout: {error}")
                logger.info(
                    "callback_ignored",
                    correlation_id=correlation_id,
                    status=execution.status.value,
                    error=error,
                )
                return

            self._scheduler.cancel(correlation_id)
            now = self._clock()
            if not self._transition(execution, target, now):
                return
            execution.error = error

            self._log(execution, f"[FAILED] {error}")
            logger.warning(
                "execution_failed",
                correlation_id=correlation_id,
                agent=execution.agent_target,
                duration_ms=now - execution.start_time,
                error=error,
            )

            self._events.publish(ExecutionChannel.FAILED, execution)
            self._events.publish(ExecutionChannel.UPDATE, execution)
            self._notify_parent(execution)

    def timeout_execution(self, correlation_id: str, message: str | None = None) -> None:
        """Force a still-pending execution into ``timeout``.

        Called by the deadline timer; a no-op once the execution is terminal.
        """
        with self._lock:
            execution = self._lookup(correlation_id, "timeout_execution")
            if execution is None:
                return

            self._scheduler.cancel(correlation_id)
            target = resolve_transition(execution.status, TransitionEvent.DEADLINE)
            if target is None:
                logger.debug(
                    "deadline_ignored",
                    correlation_id=correlation_id,
                    status=execution.status.value,
                )
                return

            now = self._clock()
            if not self._transition(execution, target, now):
                return
            execution.error = message or "Command timed out"

            elapsed = (now - execution.start_time) / 1000
            self._log(execution, f"[TIMEOUT] Execution timed out after {elapsed:.1f} seconds")
            logger.warning(
                "execution_timed_out",
                correlation_id=correlation_id,
                agent=execution.agent_target,
                elapsed_ms=now - execution.start_time,
            )

            self._events.publish(ExecutionChannel.TIMEOUT, execution)
            self._events.publish(ExecutionChannel.UPDATE, execution)
            self._notify_parent(execution)

    def terminate_execution(self, correlation_id: str, reason: str | None = None) -> None:
        """Operator-driven stop of a pending execution (``manualTermination``)."""
        with self._lock:
            execution = self._lookup(correlation_id, "terminate_execution")
            if execution is None:
                return

            target = resolve_transition(execution.status, TransitionEvent.TERMINATE)
            if target is None:
                logger.info(
                    "terminate_ignored",
                    correlation_id=correlation_id,
                    status=execution.status.value,
                )
                return

            self._scheduler.cancel(correlation_id)
            now = self._clock()
            if not self._transition(execution, target, now):
                return
            execution.error = reason or "Terminated manually"

            self._log(execution, f"[TERMINATED] {execution.error}")
            logger.info("execution_terminated", correlation_id=correlation_id, reason=reason)

            self._events.publish(ExecutionChannel.UPDATE, execution)
            self._notify_parent(execution)

    def _on_deadline(self, correlation_id: str, timeout_ms: int) -> None:
        self.timeout_execution(
            correlation_id, f"Command timed out after {timeout_ms / 1000:g} seconds"
        )

    def _transition(self, execution: Execution, target: ExecutionStatus, now: int) -> bool:
        try:
            validate_transition(execution.status, target)
        except InvalidTransitionError as e:
            logger.error(
                "transition_rejected",
                correlation_id=execution.correlation_id,
                error=str(e),
            )
            return False
        execution.status = target
        if execution.end_time is None:
            execution.end_time = now
        return True

    # ── Aggregation ───────────────────────────────────────────────────

    def _notify_parent(self, child: Execution) -> None:
        if child.parent_id is not None:
            self._resolve_parent(child.parent_id)

    def _resolve_parent(self, parent_id: str) -> None:
        parent = self._store.get(parent_id)
        if parent is None or parent.is_terminal:
            return

        children = self._store.children_of(parent)
        if not children:
            return

        summary = summarize_children(children)
        self._log(parent, f"[PARENT] Child progress: {summary.completed}/{summary.total} completed")
        self._log(
            parent,
            f"[PARENT] Status breakdown: {summary.succeeded} success, "
            f"{summary.failed} failed, {summary.timeout} timeout",
        )
        if not summary.all_terminal:
            return

        outcome = classify(summary)
        self._scheduler.cancel(parent_id)
        now = self._clock()
        if not self._transition(parent, outcome.status, now):
            return
        parent.result = outcome.result
        if outcome.status is ExecutionStatus.FAILED:
            parent.error = outcome.message

        self._log(
            parent,
            f"[PARENT] Operation completed with status: {outcome.status.value} "
            f"after {now - parent.start_time}ms",
        )
        logger.info(
            "parent_resolved",
            correlation_id=parent_id,
            status=outcome.status.value,
            children=summary.total,
            succeeded=summary.succeeded,
            failed=summary.failed,
        )

        self._events.publish(ExecutionChannel.COMPLETE, parent)
        self._events.publish(ExecutionChannel.UPDATE, parent)
        self._notify_parent(parent)

    # ── Diagnostics ───────────────────────────────────────────────────

    def add_log(self, correlation_id: str, message: str) -> None:
        with self._lock:
            execution = self._lookup(correlation_id, "add_log")
            if execution is not None:
                self._log(execution, message)

    def record_polling_detection(self, correlation_id: str) -> None:
        """Record when status polling first noticed the outcome.

        Only the first detection counts; used to compare poll and push
        latency.
        """
        with self._lock:
            execution = self._lookup(correlation_id, "record_polling_detection")
            if execution is None or execution.polling_detected_time is not None:
                return

            now = self._clock()
            execution.polling_detected_time = now
            since_start = now - execution.start_time
            self._log(
                execution,
                f"[POLLING] Status change detected by polling after {since_start / 1000:.1f}s from start",
            )
            since_callback = None
            if execution.callback_time is not None:
                since_callback = now - execution.callback_time
                self._log(
                    execution,
                    f"[POLLING] Polling detected change {since_callback / 1000:.1f}s after callback",
                )
            logger.info(
                "polling_detected",
                correlation_id=correlation_id,
                since_start_ms=since_start,
                since_callback_ms=since_callback,
            )
            self._events.publish(ExecutionChannel.UPDATE, execution)

    # ── Queries ───────────────────────────────────────────────────────

    def get_execution(self, correlation_id: str) -> Execution | None:
        with self._lock:
            execution = self._store.get(correlation_id)
            return execution.snapshot() if execution is not None else None

    def get_all_executions(self) -> list[Execution]:
        with self._lock:
            return [e.snapshot() for e in self._store.values()]

    def get_children(self, correlation_id: str) -> list[Execution]:
        with self._lock:
            parent = self._store.get(correlation_id)
            if parent is None:
                return []
            return [c.snapshot() for c in self._store.children_of(parent)]

    def timeout_config(self) -> dict[str, float]:
        return self._policy.to_dict()

    def __len__(self) -> int:
        return len(self._store)

    # ── Lifecycle ─────────────────────────────────────────────────────

    def cleanup(self, retention_count: int | None = None) -> int:
        """Evict the oldest records beyond the retention limit.

        Timers of evicted records are cancelled. Returns the number evicted.
        """
        limit = self._retention_count if retention_count is None else retention_count
        if limit < 0:
            logger.warning("invalid_retention_count", retention_count=limit)
            return 0
        with self._lock:
            evicted = self._store.evict_oldest(limit)
            for execution in evicted:
                self._scheduler.cancel(execution.correlation_id)
            if evicted:
                logger.info(
                    "executions_evicted",
                    evicted=len(evicted),
                    remaining=len(self._store),
                    retention_count=limit,
                )
            return len(evicted)

    def shutdown(self) -> int:
        """Cancel every pending deadline timer."""
        with self._lock:
            cancelled = self._scheduler.cancel_all()
        logger.info("tracker_shutdown", cancelled_timers=cancelled)
        return cancelled

    def _lookup(self, correlation_id: str, operation: str) -> Execution | None:
        execution = self._store.get(correlation_id)
        if execution is None:
            logger.warning("unknown_correlation_id", correlation_id=correlation_id, operation=operation)
        return execution

    def _log(self, execution: Execution, message: str) -> None:
        execution.append_log(message, self._clock())
