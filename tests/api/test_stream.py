"""Tests for the server-sent execution stream."""

import asyncio
import json

import pytest

from relayhub.api.stream import execution_stream, format_sse


def _payload(frame: str) -> dict:
    assert frame.startswith("data: ") and frame.endswith("\n\n")
    return json.loads(frame[len("data: "):])


class TestExecutionStream:
    @pytest.mark.asyncio
    async def test_replays_current_then_streams_updates(self, tracker):
        tracker.start_execution("a", "start-agent", "web-01")
        stream = execution_stream(tracker, heartbeat_seconds=5)

        assert await stream.__anext__() == ":ok\n\n"
        assert _payload(await stream.__anext__())["correlation_id"] == "a"

        tracker.complete_execution("a", {"agentName": "web-01"})
        update = _payload(await asyncio.wait_for(stream.__anext__(), 1.0))
        assert update["correlation_id"] == "a"
        assert update["status"] == "success"

        await stream.aclose()

    @pytest.mark.asyncio
    async def test_heartbeat_when_idle(self, tracker):
        stream = execution_stream(tracker, heartbeat_seconds=0.01)
        assert await stream.__anext__() == ":ok\n\n"
        assert await asyncio.wait_for(stream.__anext__(), 1.0) == ":heartbeat\n\n"
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_unsubscribes_on_close(self, tracker):
        before = tracker.events.subscription_count()
        stream = execution_stream(tracker, heartbeat_seconds=5)
        await stream.__anext__()
        assert tracker.events.subscription_count() == before + 1

        await stream.aclose()

        assert tracker.events.subscription_count() == before


def test_format_sse():
    assert format_sse({"a": 1}) == 'data: {"a": 1}\n\n'
