"""Fan-out dispatch: one parent execution, one child per target agent.

Multi-target operations ("start all agents", "stop all managers") register
a parent under the ``multi-agent`` target and a child for each agent, then
send every request concurrently. A request that cannot be delivered fails
its child straight away; everything else is resolved later by the agents'
callbacks, and the tracker rolls the children up into the parent.

Example::

    async def send(agent: str, correlation_id: str) -> dict:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                f"http://{hosts[agent]}:3081/start",
                json={"correlationId": correlation_id},
            )
            resp.raise_for_status()
            return resp.json()

    result = await dispatch_fan_out(
        tracker,
        ["web-01", "web-02"],
        send,
        command="start-all",
        child_command="start-agent",
    )
    result.parent_id  # poll or subscribe for the aggregate outcome
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from relayhub.core.logging import get_logger
from relayhub.execution.tracker import CorrelationTracker

logger = get_logger(__name__)

MULTI_AGENT_TARGET = "multi-agent"

SendFn = Callable[[str, str], Awaitable[Any]]


@dataclass
class ChildDispatch:
    """Outcome of handing one child request to its agent."""

    target: str
    correlation_id: str
    accepted: bool
    response: Any = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "correlation_id": self.correlation_id,
            "accepted": self.accepted,
            "response": self.response,
            "error": self.error,
        }


@dataclass
class FanOutResult:
    parent_id: str
    dispatches: list[ChildDispatch] = field(default_factory=list)

    @property
    def child_ids(self) -> list[str]:
        return [d.correlation_id for d in self.dispatches]

    @property
    def rejected(self) -> list[ChildDispatch]:
        return [d for d in self.dispatches if not d.accepted]

    def to_dict(self) -> dict[str, Any]:
        return {
            "parent_id": self.parent_id,
            "dispatches": [d.to_dict() for d in self.dispatches],
        }


async def dispatch_fan_out(
    tracker: CorrelationTracker,
    targets: Iterable[str],
    send: SendFn,
    *,
    command: str,
    child_command: str | None = None,
    operation_type: str | None = None,
    child_operation_type: str | None = None,
    parent_id: str | None = None,
) -> FanOutResult:
    """Register a parent plus one child per target and dispatch them all.

    Args:
        tracker: Tracker that owns the executions.
        targets: Agent names, one child each. Must be non-empty and unique.
        send: ``await send(target, child_correlation_id)`` delivers one request.
        command: Parent command text (e.g. ``"stop-all"``).
        child_command: Child command text; defaults to *command*.
        operation_type: Parent operation tag; defaults to *command*.
        child_operation_type: Child operation tag; defaults to *child_command*.
        parent_id: Caller-supplied parent correlation id, generated if omitted.

    Raises:
        ValueError: if *targets* is empty or has duplicates, or *parent_id*
            is already tracked.
    """
    target_list = list(targets)
    if not target_list:
        raise ValueError("targets must not be empty")
    if len(set(target_list)) != len(target_list):
        raise ValueError("targets must be unique")
    if parent_id is not None and tracker.get_execution(parent_id) is not None:
        raise ValueError(f"Correlation id {parent_id} is already tracked")

    child_command = child_command or command
    parent_id = parent_id or tracker.generate_correlation_id()
    tracker.start_execution(parent_id, command, MULTI_AGENT_TARGET, operation_type or command, None)

    children: list[tuple[str, str]] = []
    for target in target_list:
        child_id = tracker.generate_correlation_id()
        tracker.start_execution(
            child_id,
            child_command,
            target,
            child_operation_type or child_command,
            parent_id,
        )
        children.append((target, child_id))

    async def _dispatch(target: str, child_id: str) -> ChildDispatch:
        tracker.add_log(child_id, f"Dispatching {child_command} to {target}")
        try:
            response = await send(target, child_id)
        except Exception as e:
            tracker.add_log(child_id, f"Error dispatching to {target}: {e}")
            tracker.fail_execution(child_id, str(e))
            logger.warning(
                "fan_out_dispatch_failed",
                parent_id=parent_id,
                correlation_id=child_id,
                target=target,
                error=str(e),
            )
            return ChildDispatch(target, child_id, accepted=False, error=str(e))
        tracker.add_log(child_id, f"Dispatch accepted by {target}")
        return ChildDispatch(target, child_id, accepted=True, response=response)

    dispatches = await asyncio.gather(*(_dispatch(t, c) for t, c in children))
    result = FanOutResult(parent_id=parent_id, dispatches=list(dispatches))

    logger.info(
        "fan_out_dispatched",
        parent_id=parent_id,
        command=command,
        targets=len(target_list),
        rejected=len(result.rejected),
    )
    return result
