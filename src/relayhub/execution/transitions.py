"""Status transition engine for tracked executions.

Decides what a callback, deadline or operator action does to an
execution's status. The tracker performs the side effects (logs, events,
timer cancellation); this module only answers "what is the next status".

Transition table::

    current   event       next               notes
    ───────   ─────────   ────────────────   ───────────────────────────────
    pending   complete    success
    pending   fail        failed
    pending   deadline    timeout            scheduler-driven
    pending   terminate   manualTermination  operator-driven
    timeout   complete    timeoutSuccess     start-type operations only
    timeout   complete    (unchanged)        stop-type: late success discarded
    timeout   fail        (unchanged)        failure never overrides timeout
    terminal  *           (unchanged)        idempotent

``partialSuccess`` is only ever produced by parent aggregation.
"""

from enum import Enum

from relayhub.execution.models import ExecutionStatus

_MANAGER_OPERATION_TYPES = frozenset({"start-manager", "stop-manager", "restart-manager"})


class InvalidTransitionError(ValueError):
    """Raised when an illegal status transition is attempted.

    Validation is strict: a legitimate transition that is blocked belongs in
    ``VALID_TRANSITIONS``, never in a relaxed guard.
    """

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Invalid ExecutionStatus transition: {current} → {target}")


class TransitionEvent(str, Enum):
    """What happened to an execution."""

    COMPLETE = "complete"
    FAIL = "fail"
    DEADLINE = "deadline"
    TERMINATE = "terminate"


VALID_TRANSITIONS: dict[ExecutionStatus, frozenset[ExecutionStatus]] = {
    ExecutionStatus.PENDING: frozenset({
        ExecutionStatus.SUCCESS,
        ExecutionStatus.FAILED,
        ExecutionStatus.TIMEOUT,
        ExecutionStatus.MANUAL_TERMINATION,
        ExecutionStatus.PARTIAL_SUCCESS,
    }),
    ExecutionStatus.TIMEOUT: frozenset({
        ExecutionStatus.TIMEOUT_SUCCESS,  # late start callback
    }),
    ExecutionStatus.SUCCESS: frozenset(),
    ExecutionStatus.FAILED: frozenset(),
    ExecutionStatus.TIMEOUT_SUCCESS: frozenset(),
    ExecutionStatus.PARTIAL_SUCCESS: frozenset(),
    ExecutionStatus.MANUAL_TERMINATION: frozenset(),
}


def validate_transition(current: ExecutionStatus, target: ExecutionStatus) -> None:
    """Raise :class:`InvalidTransitionError` if *current → target* is illegal.

    Example:
        >>> validate_transition(ExecutionStatus.PENDING, ExecutionStatus.SUCCESS)
        >>> validate_transition(ExecutionStatus.SUCCESS, ExecutionStatus.FAILED)
        InvalidTransitionError: Invalid ExecutionStatus transition: success → failed
    """
    if target not in VALID_TRANSITIONS.get(current, frozenset()):
        raise InvalidTransitionError(current.value, target.value)


def _text(command: str | None, operation_type: str | None) -> str:
    return f"{command or ''} {operation_type or ''}".lower()


def is_manager_operation(command: str | None, operation_type: str | None = None) -> bool:
    """True when the operation is a manager lifecycle action."""
    if operation_type in _MANAGER_OPERATION_TYPES:
        return True
    return "manager" in _text(command, operation_type)


def is_stop_operation(command: str | None, operation_type: str | None = None) -> bool:
    return "stop" in _text(command, operation_type)


def is_start_operation(command: str | None, operation_type: str | None = None) -> bool:
    """True for start-type operations (``restart`` included).

    Stop wins when both words appear.
    """
    if is_stop_operation(command, operation_type):
        return False
    return "start" in _text(command, operation_type)


def resolve_transition(
    status: ExecutionStatus,
    event: TransitionEvent,
    command: str | None = None,
    operation_type: str | None = None,
) -> ExecutionStatus | None:
    """Return the next status for *event*, or None when the event is a no-op.

    Args:
        status: Current status of the execution.
        event: What happened.
        command: Command text, used to classify start/stop operations.
        operation_type: Optional operation tag, classified like *command*.
    """
    if status is ExecutionStatus.PENDING:
        return {
            TransitionEvent.COMPLETE: ExecutionStatus.SUCCESS,
            TransitionEvent.FAIL: ExecutionStatus.FAILED,
            TransitionEvent.DEADLINE: ExecutionStatus.TIMEOUT,
            TransitionEvent.TERMINATE: ExecutionStatus.MANUAL_TERMINATION,
        }[event]

    if (
        status is ExecutionStatus.TIMEOUT
        and event is TransitionEvent.COMPLETE
        and is_start_operation(command, operation_type)
    ):
        return ExecutionStatus.TIMEOUT_SUCCESS

    return None
