"""Tests for the execution status state machine and operation classifiers."""

import pytest

from relayhub.execution.models import ExecutionStatus
from relayhub.execution.transitions import (
    VALID_TRANSITIONS,
    InvalidTransitionError,
    TransitionEvent,
    is_manager_operation,
    is_start_operation,
    is_stop_operation,
    resolve_transition,
    validate_transition,
)

S = ExecutionStatus


class TestValidTransitions:
    def test_every_status_has_an_entry(self):
        assert set(VALID_TRANSITIONS) == set(ExecutionStatus)

    @pytest.mark.parametrize(
        "target",
        [S.SUCCESS, S.FAILED, S.TIMEOUT, S.MANUAL_TERMINATION, S.PARTIAL_SUCCESS],
    )
    def test_pending_to_terminal(self, target):
        validate_transition(S.PENDING, target)

    def test_timeout_to_timeout_success(self):
        validate_transition(S.TIMEOUT, S.TIMEOUT_SUCCESS)

    @pytest.mark.parametrize(
        "current,target",
        [
            (S.SUCCESS, S.FAILED),
            (S.FAILED, S.SUCCESS),
            (S.TIMEOUT, S.FAILED),
            (S.TIMEOUT, S.SUCCESS),
            (S.TIMEOUT_SUCCESS, S.TIMEOUT),
            (S.PENDING, S.TIMEOUT_SUCCESS),
            (S.MANUAL_TERMINATION, S.SUCCESS),
        ],
    )
    def test_invalid(self, current, target):
        with pytest.raises(InvalidTransitionError) as exc_info:
            validate_transition(current, target)
        assert exc_info.value.current == current.value
        assert exc_info.value.target == target.value

    def test_invalid_transition_is_value_error(self):
        with pytest.raises(ValueError):
            validate_transition(S.SUCCESS, S.PENDING)


class TestClassifiers:
    @pytest.mark.parametrize(
        "command,op_type",
        [
            ("start-manager", None),
            ("anything", "restart-manager"),
            ("Stop Manager on web-01", None),
        ],
    )
    def test_manager(self, command, op_type):
        assert is_manager_operation(command, op_type)

    def test_not_manager(self):
        assert not is_manager_operation("start-agent", "start-agent")
        assert not is_manager_operation(None, None)

    def test_stop_wins_over_start(self):
        assert is_stop_operation("stop-agent")
        assert not is_start_operation("stop-agent", "start")

    def test_restart_counts_as_start(self):
        assert is_start_operation("restart-agent")
        assert not is_stop_operation("restart-agent")

    def test_neither(self):
        assert not is_start_operation("status")
        assert not is_stop_operation("status")


class TestResolveTransition:
    @pytest.mark.parametrize(
        "event,expected",
        [
            (TransitionEvent.COMPLETE, S.SUCCESS),
            (TransitionEvent.FAIL, S.FAILED),
            (TransitionEvent.DEADLINE, S.TIMEOUT),
            (TransitionEvent.TERMINATE, S.MANUAL_TERMINATION),
        ],
    )
    def test_from_pending(self, event, expected):
        assert resolve_transition(S.PENDING, event, "stop-agent") is expected

    def test_late_start_completion(self):
        assert (
            resolve_transition(S.TIMEOUT, TransitionEvent.COMPLETE, "start-agent")
            is S.TIMEOUT_SUCCESS
        )

    def test_late_start_completion_by_operation_type(self):
        assert (
            resolve_transition(S.TIMEOUT, TransitionEvent.COMPLETE, "run", "start-manager")
            is S.TIMEOUT_SUCCESS
        )

    def test_late_stop_completion_discarded(self):
        assert resolve_transition(S.TIMEOUT, TransitionEvent.COMPLETE, "stop-agent") is None

    def test_late_completion_of_unclassified_command_discarded(self):
        assert resolve_transition(S.TIMEOUT, TransitionEvent.COMPLETE, "status") is None

    def test_failure_never_overrides_timeout(self):
        assert resolve_transition(S.TIMEOUT, TransitionEvent.FAIL, "start-agent") is None

    @pytest.mark.parametrize("status", [S.SUCCESS, S.FAILED, S.TIMEOUT_SUCCESS, S.MANUAL_TERMINATION])
    @pytest.mark.parametrize("event", list(TransitionEvent))
    def test_terminal_is_absorbing(self, status, event):
        assert resolve_transition(status, event, "start-agent") is None
