"""Tests for ExecutionStore and correlation id generation."""

import re

import pytest

from relayhub.execution.models import Execution, ExecutionStatus
from relayhub.execution.store import ExecutionStore, generate_correlation_id


def _add(store: ExecutionStore, cid: str, start: int, **kw) -> Execution:
    execution = Execution.create(cid, "start-agent", "web-01", start_time=start, **kw)
    store.add(execution)
    return execution


class TestCorrelationId:
    def test_format(self):
        cid = generate_correlation_id(1_760_781_600_000)
        assert re.fullmatch(r"cmd_1760781600000_[0-9a-f]{9}", cid)

    def test_unique(self):
        ids = {generate_correlation_id(0) for _ in range(500)}
        assert len(ids) == 500

    def test_time_prefix_sorts(self):
        assert generate_correlation_id(1_000) < generate_correlation_id(2_000)


class TestStore:
    def test_add_get_contains(self):
        store = ExecutionStore()
        _add(store, "a", 1)
        assert "a" in store
        assert store.get("a").correlation_id == "a"
        assert store.get("missing") is None
        assert len(store) == 1

    def test_values_is_a_copy(self):
        store = ExecutionStore()
        _add(store, "a", 1)
        values = store.values()
        values.clear()
        assert len(store) == 1

    def test_children_of_skips_missing(self):
        store = ExecutionStore()
        parent = _add(store, "p", 0)
        _add(store, "c1", 1, parent_id="p")
        parent.child_ids.extend(["c1", "gone"])
        assert [c.correlation_id for c in store.children_of(parent)] == ["c1"]


class TestEviction:
    def test_under_limit_is_noop(self):
        store = ExecutionStore()
        _add(store, "a", 1)
        assert store.evict_oldest(5) == []

    def test_evicts_oldest_by_start_time(self):
        store = ExecutionStore()
        for i in reversed(range(10)):
            _add(store, f"e{i}", i)
        evicted = store.evict_oldest(7)
        assert [e.correlation_id for e in evicted] == ["e0", "e1", "e2"]
        assert len(store) == 7

    def test_negative_limit_rejected(self):
        with pytest.raises(ValueError):
            ExecutionStore().evict_oldest(-1)

    def test_active_parent_and_pending_children_protected(self):
        store = ExecutionStore()
        parent = _add(store, "p", 0)
        for i in (1, 2):
            _add(store, f"c{i}", i, parent_id="p")
            parent.add_child(f"c{i}")
        store.get("c1").status = ExecutionStatus.SUCCESS
        for i in range(3, 8):
            _add(store, f"e{i}", i)

        evicted = [e.correlation_id for e in store.evict_oldest(5)]

        # c1 is terminal so it may go; p and pending c2 stay
        assert evicted == ["c1", "e3"]
        assert "p" in store
        assert "c2" in store

    def test_resolved_parent_is_not_protected(self):
        store = ExecutionStore()
        parent = _add(store, "p", 0)
        _add(store, "c1", 1, parent_id="p")
        parent.add_child("c1")
        parent.status = ExecutionStatus.SUCCESS
        store.get("c1").status = ExecutionStatus.SUCCESS
        _add(store, "e2", 2)

        evicted = [e.correlation_id for e in store.evict_oldest(1)]
        assert evicted == ["p", "c1"]

    def test_cannot_reach_limit_when_everything_protected(self):
        store = ExecutionStore()
        parent = _add(store, "p", 0)
        _add(store, "c1", 1, parent_id="p")
        parent.add_child("c1")
        assert store.evict_oldest(1) == []
        assert len(store) == 2
