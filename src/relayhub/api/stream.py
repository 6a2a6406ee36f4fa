"""Server-sent event stream of execution updates.

Each connected client receives ``:ok``, then one ``data:`` frame per
execution currently tracked, then every subsequent ``executionUpdate``.
A ``:heartbeat`` comment goes out when the stream has been idle for
``heartbeat_seconds`` so proxies keep the connection open.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Any

from relayhub.core.logging import get_logger
from relayhub.execution.models import Execution
from relayhub.execution.tracker import CorrelationTracker

logger = get_logger(__name__)


def format_sse(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, default=str)}\n\n"


async def execution_stream(
    tracker: CorrelationTracker,
    heartbeat_seconds: float = 30.0,
) -> AsyncIterator[str]:
    """Yield SSE frames until the consumer stops iterating."""
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

    def _enqueue(execution: Execution) -> None:
        # Timer threads publish too, so hop onto the stream's loop
        loop.call_soon_threadsafe(queue.put_nowait, execution.to_dict())

    # Subscribe before the snapshot so nothing falls in between
    sub_id = tracker.events.on_update(_enqueue)
    logger.info("sse_client_connected", subscription_id=sub_id)
    try:
        yield ":ok\n\n"
        for execution in tracker.get_all_executions():
            yield format_sse(execution.to_dict())

        while True:
            try:
                payload = await asyncio.wait_for(queue.get(), timeout=heartbeat_seconds)
            except TimeoutError:
                yield ":heartbeat\n\n"
                continue
            yield format_sse(payload)
    finally:
        tracker.events.unsubscribe(sub_id)
        logger.info("sse_client_disconnected", subscription_id=sub_id)
