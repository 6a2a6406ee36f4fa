"""Tests for Execution and ExecutionStatus."""

from relayhub.execution.models import (
    TERMINAL_STATUSES,
    Execution,
    ExecutionStatus,
    format_log_line,
)


class TestExecutionStatus:
    def test_wire_values(self):
        assert ExecutionStatus.TIMEOUT_SUCCESS.value == "timeoutSuccess"
        assert ExecutionStatus.PARTIAL_SUCCESS.value == "partialSuccess"
        assert ExecutionStatus.MANUAL_TERMINATION.value == "manualTermination"

    def test_only_pending_is_not_terminal(self):
        assert not ExecutionStatus.PENDING.is_terminal
        assert ExecutionStatus.PENDING not in TERMINAL_STATUSES
        assert len(TERMINAL_STATUSES) == len(ExecutionStatus) - 1

    def test_status_is_string(self):
        assert ExecutionStatus("success") is ExecutionStatus.SUCCESS
        assert ExecutionStatus.FAILED == "failed"


class TestExecution:
    def _make(self, **kw) -> Execution:
        defaults = dict(
            correlation_id="cmd_1",
            command="start-agent",
            agent_target="web-01",
            operation_type="start-agent",
            start_time=1_000,
        )
        defaults.update(kw)
        return Execution.create(**defaults)

    def test_create_defaults(self):
        execution = self._make()
        assert execution.status is ExecutionStatus.PENDING
        assert execution.end_time is None
        assert execution.logs == []
        assert execution.child_ids == []
        assert execution.timed_out is False
        assert execution.duration_ms is None

    def test_create_without_start_time_uses_wall_clock(self):
        execution = Execution.create("cmd_1", "start-agent", "web-01")
        assert execution.start_time > 1_600_000_000_000

    def test_duration(self):
        execution = self._make()
        execution.end_time = 3_500
        assert execution.duration_ms == 2_500

    def test_add_child_deduplicates(self):
        execution = self._make()
        assert execution.add_child("c1") is True
        assert execution.add_child("c1") is False
        assert execution.child_ids == ["c1"]

    def test_append_log_prefixes_timestamp(self):
        execution = self._make()
        execution.append_log("hello", at_ms=0)
        assert execution.logs == ["[1970-01-01T00:00:00.000Z] hello"]

    def test_snapshot_is_detached(self):
        execution = self._make(result={"a": 1})
        snap = execution.snapshot()
        snap.logs.append("x")
        snap.child_ids.append("c9")
        snap.result["a"] = 2
        assert execution.logs == []
        assert execution.child_ids == []
        assert execution.result == {"a": 1}

    def test_snapshot_copies_nested_result(self):
        execution = self._make(result={"child_results": {"success": 3}})
        snap = execution.snapshot()
        snap.result["child_results"]["success"] = 99
        assert execution.result == {"child_results": {"success": 3}}

    def test_to_dict(self):
        execution = self._make()
        execution.status = ExecutionStatus.SUCCESS
        execution.end_time = 1_250
        data = execution.to_dict()
        assert data["status"] == "success"
        assert data["duration_ms"] == 250
        assert data["correlation_id"] == "cmd_1"
        assert data["parent_id"] is None


def test_format_log_line_millisecond_precision():
    assert format_log_line("m", 1_500).startswith("[1970-01-01T00:00:01.500Z]")
