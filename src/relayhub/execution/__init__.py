"""Correlation tracking for hub-dispatched agent operations.

Modules
-------
models        Execution record and ExecutionStatus
transitions   Status state machine and start/stop/manager classification
timeout       TimeoutPolicy and thread/asyncio deadline schedulers
events        ExecutionEventBus with typed per-channel subscriptions
aggregation   Parent outcome from child statuses
store         In-memory record table with retention
tracker       CorrelationTracker facade
fanout        Parent + per-target children dispatch helper
"""

from relayhub.execution.aggregation import AggregateOutcome, ChildSummary, classify, summarize_children
from relayhub.execution.events import ExecutionChannel, ExecutionEventBus
from relayhub.execution.fanout import ChildDispatch, FanOutResult, dispatch_fan_out
from relayhub.execution.models import TERMINAL_STATUSES, Execution, ExecutionStatus
from relayhub.execution.store import ExecutionStore, generate_correlation_id
from relayhub.execution.timeout import (
    AsyncioTimeoutScheduler,
    ThreadTimeoutScheduler,
    TimeoutPolicy,
    TimeoutScheduler,
)
from relayhub.execution.tracker import CorrelationTracker
from relayhub.execution.transitions import (
    InvalidTransitionError,
    TransitionEvent,
    resolve_transition,
    validate_transition,
)

__all__ = [
    "AggregateOutcome",
    "AsyncioTimeoutScheduler",
    "ChildDispatch",
    "ChildSummary",
    "CorrelationTracker",
    "Execution",
    "ExecutionChannel",
    "ExecutionEventBus",
    "ExecutionStatus",
    "ExecutionStore",
    "FanOutResult",
    "InvalidTransitionError",
    "TERMINAL_STATUSES",
    "ThreadTimeoutScheduler",
    "TimeoutPolicy",
    "TimeoutScheduler",
    "TransitionEvent",
    "classify",
    "dispatch_fan_out",
    "generate_correlation_id",
    "resolve_transition",
    "summarize_children",
    "validate_transition",
]
