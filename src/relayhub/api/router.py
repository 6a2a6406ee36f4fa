"""FastAPI router for execution tracking — ``/api/executions``.

ARCHITECTURE
────────────
::

    create_executions_router(tracker) → APIRouter
      GET   /api/executions                        ─ list (status / parent filters)
      GET   /api/executions/stream                 ─ SSE feed of updates
      GET   /api/executions/config/timeouts        ─ deadline configuration
      GET   /api/executions/{id}                   ─ one execution
      GET   /api/executions/{id}/children          ─ fan-out children
      POST  /api/executions/{id}/complete          ─ agent completion callback
      POST  /api/executions/{id}/fail              ─ agent failure callback
      POST  /api/executions/{id}/log               ─ append a diagnostic line
      POST  /api/executions/{id}/terminate         ─ operator termination
      POST  /api/executions/{id}/polling-detected  ─ poll latency marker

    Callbacks always answer ``{"success": true}``: agents fire and forget,
    and an unknown id is a normal race with retention cleanup. The
    ``tracked`` flag tells them whether the id was known.

Static paths are registered before ``/{correlation_id}`` so they are not
captured by it.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from relayhub.api.stream import execution_stream
from relayhub.execution.models import Execution, ExecutionStatus, now_ms
from relayhub.execution.tracker import CorrelationTracker

# === PYDANTIC MODELS FOR API ===


class CompleteRequest(BaseModel):
    result: Any = None


class FailRequest(BaseModel):
    error: str = "Unknown error"


class LogRequest(BaseModel):
    message: str


class TerminateRequest(BaseModel):
    reason: str | None = None


class ExecutionResponse(BaseModel):
    """Response for a single execution."""

    correlation_id: str
    command: str
    agent_target: str
    operation_type: str | None = None
    status: str
    start_time: int
    end_time: int | None = None
    callback_time: int | None = None
    polling_detected_time: int | None = None
    duration_ms: int | None = None
    result: Any = None
    error: str | None = None
    logs: list[str] = []
    timed_out: bool = False
    parent_id: str | None = None
    child_ids: list[str] = []

    @classmethod
    def from_execution(cls, execution: Execution) -> "ExecutionResponse":
        return cls(**execution.to_dict())


class ExecutionListResponse(BaseModel):
    executions: list[ExecutionResponse]


class CallbackResponse(BaseModel):
    success: bool = True
    tracked: bool


class TimeoutConfigResponse(BaseModel):
    default_timeout_ms: int
    manager_timeout_ms: int
    default_timeout_seconds: float
    manager_timeout_seconds: float


def _agent_identity(result: Any) -> str | None:
    if isinstance(result, dict):
        return result.get("agentId") or result.get("agentName") or result.get("agent")
    return None


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def create_executions_router(
    tracker: CorrelationTracker,
    prefix: str = "/api/executions",
    tags: list[str] | None = None,
    heartbeat_seconds: float = 30.0,
) -> APIRouter:
    """Create the execution tracking router.

    Args:
        tracker: The process's CorrelationTracker
        prefix: URL prefix (default: /api/executions)
        tags: OpenAPI tags (default: ["executions"])
        heartbeat_seconds: Idle interval between SSE heartbeats

    Example:
        >>> app = FastAPI()
        >>> app.include_router(create_executions_router(CorrelationTracker()))
    """
    router = APIRouter(prefix=prefix, tags=tags or ["executions"])

    @router.get("", response_model=ExecutionListResponse)
    async def list_executions(status: str | None = None, parent_id: str | None = None):
        """List tracked executions, optionally filtered."""
        status_enum = None
        if status:
            try:
                status_enum = ExecutionStatus(status)
            except ValueError:
                raise HTTPException(400, f"Invalid status: {status}") from None

        executions = tracker.get_all_executions()
        if status_enum is not None:
            executions = [e for e in executions if e.status is status_enum]
        if parent_id is not None:
            executions = [e for e in executions if e.parent_id == parent_id]
        return ExecutionListResponse(
            executions=[ExecutionResponse.from_execution(e) for e in executions]
        )

    @router.get("/stream")
    async def stream_executions():
        """Server-sent events: current executions, then live updates."""
        return StreamingResponse(
            execution_stream(tracker, heartbeat_seconds=heartbeat_seconds),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",
            },
        )

    @router.get("/config/timeouts", response_model=TimeoutConfigResponse)
    async def get_timeout_config():
        return TimeoutConfigResponse(**tracker.timeout_config())

    @router.get("/{correlation_id}", response_model=ExecutionResponse)
    async def get_execution(correlation_id: str):
        execution = tracker.get_execution(correlation_id)
        if execution is None:
            raise HTTPException(404, "Execution not found")
        return ExecutionResponse.from_execution(execution)

    @router.get("/{correlation_id}/children", response_model=ExecutionListResponse)
    async def get_children(correlation_id: str):
        if tracker.get_execution(correlation_id) is None:
            raise HTTPException(404, "Execution not found")
        return ExecutionListResponse(
            executions=[ExecutionResponse.from_execution(c) for c in tracker.get_children(correlation_id)]
        )

    # === CALLBACKS ===

    @router.post("/{correlation_id}/complete", response_model=CallbackResponse)
    async def complete_execution(correlation_id: str, body: CompleteRequest, request: Request):
        """Completion callback from an agent or manager."""
        execution = tracker.get_execution(correlation_id)
        if execution is not None:
            duration = now_ms() - execution.start_time
            agent = _agent_identity(body.result)
            tracker.add_log(
                correlation_id,
                f"[CALLBACK] Completion callback received from {agent or 'unknown'} "
                f"(IP: {_client_host(request)})",
            )
            tracker.add_log(
                correlation_id,
                f"[CALLBACK] Total duration: {duration}ms ({duration / 1000:.1f}s)",
            )
            if agent is None:
                tracker.add_log(correlation_id, "[WARNING] Callback missing agent identification")
        tracker.complete_execution(correlation_id, body.result)
        return CallbackResponse(tracked=execution is not None)

    @router.post("/{correlation_id}/fail", response_model=CallbackResponse)
    async def fail_execution(correlation_id: str, body: FailRequest, request: Request):
        """Failure callback from an agent or manager."""
        execution = tracker.get_execution(correlation_id)
        if execution is not None:
            duration = now_ms() - execution.start_time
            tracker.add_log(
                correlation_id,
                f"[CALLBACK] Failure callback received from {_client_host(request)}",
            )
            tracker.add_log(
                correlation_id,
                f"[CALLBACK] Failed after: {duration}ms ({duration / 1000:.1f}s)",
            )
        tracker.fail_execution(correlation_id, body.error)
        return CallbackResponse(tracked=execution is not None)

    @router.post("/{correlation_id}/log", response_model=CallbackResponse)
    async def add_log(correlation_id: str, body: LogRequest):
        tracked = tracker.get_execution(correlation_id) is not None
        tracker.add_log(correlation_id, body.message)
        return CallbackResponse(tracked=tracked)

    # === CONTROL ===

    @router.post("/{correlation_id}/terminate", response_model=ExecutionResponse)
    async def terminate_execution(correlation_id: str, body: TerminateRequest):
        """Mark a pending execution as manually terminated."""
        if tracker.get_execution(correlation_id) is None:
            raise HTTPException(404, "Execution not found")
        tracker.terminate_execution(correlation_id, body.reason)
        return ExecutionResponse.from_execution(tracker.get_execution(correlation_id))

    @router.post("/{correlation_id}/polling-detected", response_model=CallbackResponse)
    async def record_polling_detection(correlation_id: str):
        tracked = tracker.get_execution(correlation_id) is not None
        tracker.record_polling_detection(correlation_id)
        return CallbackResponse(tracked=tracked)

    return router
