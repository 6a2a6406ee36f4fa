"""Execution domain models.

Defines the record the correlation tracker keeps for every distributed
operation:
- ExecutionStatus: mutually exclusive lifecycle status
- Execution: one correlation-id-keyed operation, optionally part of a
  parent/child fan-out tree

Timestamps are integer milliseconds since the epoch so they line up with
what agents report in their callbacks.
"""

import copy
import time
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any


def now_ms() -> int:
    """Return the current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


def format_log_line(message: str, at_ms: int) -> str:
    """Prefix *message* with an ISO-8601 UTC timestamp."""
    stamp = datetime.fromtimestamp(at_ms / 1000, UTC).isoformat(timespec="milliseconds")
    return f"[{stamp.replace('+00:00', 'Z')}] {message}"


class ExecutionStatus(str, Enum):
    """Status of a tracked execution.

    Valid transition graph (see ``relayhub.execution.transitions``)::

        PENDING → SUCCESS | FAILED | TIMEOUT | MANUAL_TERMINATION
        PENDING → PARTIAL_SUCCESS   (parent aggregation only)
        TIMEOUT → TIMEOUT_SUCCESS   (late start-type callback)
        everything else → (terminal)
    """

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"
    TIMEOUT_SUCCESS = "timeoutSuccess"
    PARTIAL_SUCCESS = "partialSuccess"
    MANUAL_TERMINATION = "manualTermination"

    @property
    def is_terminal(self) -> bool:
        return self is not ExecutionStatus.PENDING


TERMINAL_STATUSES: frozenset[ExecutionStatus] = frozenset(
    s for s in ExecutionStatus if s.is_terminal
)


@dataclass
class Execution:
    """One tracked operation, keyed by correlation id.

    Example:
        >>> execution = Execution.create(
        ...     correlation_id="cmd_1760781600000_3f9a1c2b7",
        ...     command="start-agent",
        ...     agent_target="web-01",
        ...     operation_type="start-agent",
        ... )
        >>> execution.status
        <ExecutionStatus.PENDING: 'pending'>
    """

    correlation_id: str
    command: str
    agent_target: str
    start_time: int
    operation_type: str | None = None
    status: ExecutionStatus = ExecutionStatus.PENDING
    end_time: int | None = None
    callback_time: int | None = None
    polling_detected_time: int | None = None
    result: Any = None
    error: str | None = None
    logs: list[str] = field(default_factory=list)
    timed_out: bool = False
    parent_id: str | None = None
    child_ids: list[str] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        correlation_id: str,
        command: str,
        agent_target: str,
        operation_type: str | None = None,
        parent_id: str | None = None,
        start_time: int | None = None,
    ) -> "Execution":
        """Create a new execution in PENDING status."""
        return cls(
            correlation_id=correlation_id,
            command=command,
            agent_target=agent_target,
            operation_type=operation_type,
            parent_id=parent_id,
            start_time=now_ms() if start_time is None else start_time,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def duration_ms(self) -> int | None:
        if self.end_time is None:
            return None
        return self.end_time - self.start_time

    def append_log(self, message: str, at_ms: int | None = None) -> None:
        self.logs.append(format_log_line(message, now_ms() if at_ms is None else at_ms))

    def add_child(self, child_id: str) -> bool:
        """Register *child_id*; returns False when it was already present."""
        if child_id in self.child_ids:
            return False
        self.child_ids.append(child_id)
        return True

    def snapshot(self) -> "Execution":
        """Detached copy handed to observers and API callers."""
        return replace(
            self,
            logs=list(self.logs),
            child_ids=list(self.child_ids),
            result=copy.deepcopy(self.result),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "correlation_id": self.correlation_id,
            "command": self.command,
            "agent_target": self.agent_target,
            "operation_type": self.operation_type,
            "status": self.status.value,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "callback_time": self.callback_time,
            "polling_detected_time": self.polling_detected_time,
            "duration_ms": self.duration_ms,
            "result": self.result,
            "error": self.error,
            "logs": list(self.logs),
            "timed_out": self.timed_out,
            "parent_id": self.parent_id,
            "child_ids": list(self.child_ids),
        }
