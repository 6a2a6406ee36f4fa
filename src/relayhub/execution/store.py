"""In-memory execution record store with count-based retention.

Records live in one dict keyed by correlation id for the lifetime of the
process. Nothing is persisted; ``evict_oldest`` keeps memory bounded.

Eviction never removes an in-flight fan-out: a pending parent that still has
pending children is protected, and so are those children. Evicting them
would leave the parent unable to resolve.
"""

from __future__ import annotations

import uuid

from relayhub.core.logging import get_logger
from relayhub.execution.models import Execution, ExecutionStatus, now_ms

logger = get_logger(__name__)

DEFAULT_RETENTION_COUNT = 1000


def generate_correlation_id(at_ms: int | None = None) -> str:
    """Time-prefixed, collision-resistant identifier.

    Example:
        >>> generate_correlation_id(1760781600000)
        'cmd_1760781600000_3f9a1c2b7'
    """
    stamp = now_ms() if at_ms is None else at_ms
    return f"cmd_{stamp}_{uuid.uuid4().hex[:9]}"


class ExecutionStore:
    """Correlation-id-keyed table of live execution records.

    The store hands out the live records; callers that expose them outside
    the tracker must snapshot them first.
    """

    def __init__(self) -> None:
        self._executions: dict[str, Execution] = {}

    def add(self, execution: Execution) -> None:
        self._executions[execution.correlation_id] = execution

    def get(self, correlation_id: str) -> Execution | None:
        return self._executions.get(correlation_id)

    def values(self) -> list[Execution]:
        return list(self._executions.values())

    def children_of(self, parent: Execution) -> list[Execution]:
        """Children still present in the store, in registration order."""
        return [
            child
            for child_id in parent.child_ids
            if (child := self._executions.get(child_id)) is not None
        ]

    def __contains__(self, correlation_id: object) -> bool:
        return correlation_id in self._executions

    def __len__(self) -> int:
        return len(self._executions)

    # ── Retention ─────────────────────────────────────────────────────

    def _protected_ids(self) -> set[str]:
        protected: set[str] = set()
        for execution in self._executions.values():
            if execution.status is not ExecutionStatus.PENDING or not execution.child_ids:
                continue
            pending_children = [
                child.correlation_id
                for child in self.children_of(execution)
                if child.status is ExecutionStatus.PENDING
            ]
            if pending_children:
                protected.add(execution.correlation_id)
                protected.update(pending_children)
        return protected

    def evict_oldest(self, retention_count: int = DEFAULT_RETENTION_COUNT) -> list[Execution]:
        """Remove the oldest records (by start_time) beyond *retention_count*.

        Returns the evicted records so the caller can release their timers.
        """
        if retention_count < 0:
            raise ValueError(f"retention_count must be non-negative, got {retention_count}")

        excess = len(self._executions) - retention_count
        if excess <= 0:
            return []

        protected = self._protected_ids()
        # sorted() is stable, so equal start times keep insertion order
        candidates = sorted(
            (e for e in self._executions.values() if e.correlation_id not in protected),
            key=lambda e: e.start_time,
        )
        evicted = candidates[:excess]
        for execution in evicted:
            del self._executions[execution.correlation_id]

        if len(evicted) < excess:
            logger.warning(
                "retention_limit_exceeded",
                retained=len(self._executions),
                retention_count=retention_count,
                protected=len(protected),
            )
        return evicted
