"""Parent/child aggregation for fan-out operations.

A fan-out ("stop all agents") is one parent execution with one child per
target. Once every child is terminal, the parent's status is derived from
the children's statuses:

    all failed                          → failed
    all success (timeoutSuccess counts) → success
    anything else                       → partialSuccess

Children complete in any order, so the tracker calls
``summarize_children`` after every child transition and only resolves the
parent once ``summary.pending == 0``.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from relayhub.execution.models import Execution, ExecutionStatus


@dataclass(frozen=True)
class ChildSummary:
    """Per-status child counts for one parent."""

    total: int = 0
    pending: int = 0
    success: int = 0
    failed: int = 0
    timeout: int = 0
    timeout_success: int = 0
    partial_success: int = 0
    manual_termination: int = 0

    @property
    def completed(self) -> int:
        return self.total - self.pending

    @property
    def succeeded(self) -> int:
        """Children in the success bucket."""
        return self.success + self.timeout_success

    @property
    def all_terminal(self) -> bool:
        return self.total > 0 and self.pending == 0

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "success": self.success,
            "failed": self.failed,
            "timeout": self.timeout,
            "timeout_success": self.timeout_success,
            "partial_success": self.partial_success,
            "manual_termination": self.manual_termination,
        }


_FIELD_BY_STATUS = {
    ExecutionStatus.PENDING: "pending",
    ExecutionStatus.SUCCESS: "success",
    ExecutionStatus.FAILED: "failed",
    ExecutionStatus.TIMEOUT: "timeout",
    ExecutionStatus.TIMEOUT_SUCCESS: "timeout_success",
    ExecutionStatus.PARTIAL_SUCCESS: "partial_success",
    ExecutionStatus.MANUAL_TERMINATION: "manual_termination",
}


def summarize_children(children: Iterable[Execution]) -> ChildSummary:
    counts = dict.fromkeys(_FIELD_BY_STATUS.values(), 0)
    total = 0
    for child in children:
        counts[_FIELD_BY_STATUS[child.status]] += 1
        total += 1
    return ChildSummary(total=total, **counts)


@dataclass(frozen=True)
class AggregateOutcome:
    status: ExecutionStatus
    message: str
    result: dict[str, Any]


def classify(summary: ChildSummary) -> AggregateOutcome:
    """Derive the parent outcome from a fully terminal child set.

    Raises:
        ValueError: if the summary is empty or still has pending children.
    """
    if not summary.all_terminal:
        raise ValueError(
            f"Cannot classify {summary.total} children with {summary.pending} pending"
        )

    if summary.failed == summary.total:
        status = ExecutionStatus.FAILED
        message = "All child operations failed"
    elif summary.succeeded == summary.total:
        status = ExecutionStatus.SUCCESS
        message = "All child operations completed successfully"
    else:
        status = ExecutionStatus.PARTIAL_SUCCESS
        message = f"Partial success: {summary.succeeded} succeeded, {summary.failed} failed"
        if summary.timeout:
            message += f", {summary.timeout} timed out"

    return AggregateOutcome(
        status=status,
        message=message,
        result={"message": message, "child_results": summary.to_dict()},
    )
