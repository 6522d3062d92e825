"""
Tests for task identity and priority reconciliation.
"""

import itertools

import pytest

from hippoplan.core.registry import (
    TaskNotFound,
    TaskRegistry,
    generate_task_id,
    reorder_by_priority,
    tasks_from_records,
)
from hippoplan.core.types import Task


def counting_ids(prefix: str = "t"):
    """Deterministic id factory: t1, t2, ..."""
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"


class TestReconcile:
    """Test reconciling content lists against existing tasks."""

    def test_replace_semantics(self):
        """Test that matching tasks are reused, new ones created and missing ones dropped."""
        registry = TaskRegistry(
            [Task(id="1", content="a"), Task(id="2", content="b", priority=1)],
            id_factory=counting_ids("new"),
        )
        result = registry.reconcile(["b", "c"])

        assert [t.model_dump() for t in result] == [
            {"id": "2", "content": "b", "priority": 1},
            {"id": "new1", "content": "c", "priority": None},
        ]
        assert registry.get("1") is None

    def test_identity_survives_edit_elsewhere(self):
        """Test that a task keeps id and priority while its content stays in the list."""
        registry = TaskRegistry([Task(id="X", content="buy milk", priority=2)])
        result = registry.reconcile(["call mom", "buy milk"])
        milk = [t for t in result if t.content == "buy milk"][0]
        assert milk.id == "X"
        assert milk.priority == 2

    def test_idempotent(self):
        """Test that reconciling the same list twice changes nothing."""
        registry = TaskRegistry(id_factory=counting_ids())
        first = registry.reconcile(["a", "b", "c"])
        registry.set_priority(first[1].id, 3)
        first = registry.tasks

        second = registry.reconcile(["a", "b", "c"])
        assert second == first

    def test_follows_content_order(self):
        """Test that the result follows the order of the content list."""
        registry = TaskRegistry(id_factory=counting_ids())
        a, b = registry.reconcile(["a", "b"])
        assert [t.id for t in registry.reconcile(["b", "a"])] == [b.id, a.id]

    def test_matching_is_exact(self):
        """Test that whitespace or case changes create a new task."""
        registry = TaskRegistry([Task(id="1", content="Buy milk", priority=1)], id_factory=counting_ids())
        (task,) = registry.reconcile(["buy milk"])
        assert task.id != "1"
        assert task.priority is None

    def test_duplicate_contents(self):
        """Test that duplicate texts each get their own id and stay stable."""
        registry = TaskRegistry(id_factory=counting_ids())
        first = registry.reconcile(["x", "x"])
        assert first[0].id != first[1].id

        second = registry.reconcile(["x", "x"])
        assert [t.id for t in second] == [t.id for t in first]

        (only,) = registry.reconcile(["x"])
        assert only.id == first[0].id

    def test_empty_list_drops_everything(self):
        """Test that an empty content list clears the registry."""
        registry = TaskRegistry([Task(id="1", content="a")])
        assert registry.reconcile([]) == []
        assert registry.tasks == []

    def test_new_ids_avoid_collisions(self):
        """Test that a colliding generated id is retried."""
        ids = iter(["dup", "dup", "fresh"])
        registry = TaskRegistry([Task(id="dup", content="old")], id_factory=lambda: next(ids))
        result = registry.reconcile(["old", "new"])
        assert [t.id for t in result] == ["dup", "fresh"]


class TestPriority:
    """Test priority mutation and ordering."""

    def test_set_priority(self):
        """Test setting and clearing a priority."""
        registry = TaskRegistry([Task(id="1", content="a")])
        assert registry.set_priority("1", 4).priority == 4
        assert registry.get("1").priority == 4
        assert registry.clear_priority("1").priority is None

    def test_set_priority_unknown_id(self):
        """Test that an unknown id is signaled with TaskNotFound."""
        registry = TaskRegistry([Task(id="1", content="a")])
        with pytest.raises(TaskNotFound):
            registry.set_priority("missing", 1)
        assert registry.get("1").priority is None

    @pytest.mark.parametrize("priority", [0, 5, -1])
    def test_set_priority_invalid_value(self, priority):
        """Test that priorities outside 1-4 are rejected."""
        registry = TaskRegistry([Task(id="1", content="a")])
        with pytest.raises(ValueError):
            registry.set_priority("1", priority)

    def test_reorder_by_priority(self):
        """Test ascending, stable ordering with unprioritized tasks last."""
        tasks = [
            Task(id="u1", content="u1"),
            Task(id="p3", content="p3", priority=3),
            Task(id="p1a", content="p1a", priority=1),
            Task(id="u2", content="u2"),
            Task(id="p1b", content="p1b", priority=1),
            Task(id="p4", content="p4", priority=4),
        ]
        assert [t.id for t in reorder_by_priority(tasks)] == ["p1a", "p1b", "p3", "p4", "u1", "u2"]

    def test_unprioritized_sorts_after_priority_four(self):
        """Test that unprioritized is not treated as priority 4."""
        tasks = [Task(id="u", content="u"), Task(id="p4", content="p4", priority=4)]
        assert [t.id for t in reorder_by_priority(tasks)] == ["p4", "u"]

    def test_buckets(self):
        """Test the per-priority views."""
        registry = TaskRegistry(
            [Task(id="1", content="a", priority=2), Task(id="2", content="b"), Task(id="3", content="c", priority=2)]
        )
        assert [t.id for t in registry.by_priority(2)] == ["1", "3"]
        assert registry.by_priority(1) == []
        assert [t.id for t in registry.unprioritized()] == ["2"]


class TestLookup:
    """Test resolving task references."""

    def test_find_by_id_and_content(self):
        """Test exact id and exact content lookups."""
        registry = TaskRegistry([Task(id="abc", content="Buy milk"), Task(id="def", content="Call mom")])
        assert registry.find("abc").id == "abc"
        assert registry.find("call mom").id == "def"

    def test_find_fuzzy(self):
        """Test that a close spelling resolves to the task."""
        registry = TaskRegistry([Task(id="1", content="book dentist appointment"), Task(id="2", content="water plants")])
        assert registry.find("book dentist appointmnt").id == "1"

    def test_find_nothing_close(self):
        """Test that unrelated queries resolve to nothing."""
        registry = TaskRegistry([Task(id="1", content="water plants")])
        assert registry.find("file taxes") is None
        assert registry.find("   ") is None

    def test_get_empty_id(self):
        """Test that empty ids never match."""
        registry = TaskRegistry([Task(id="1", content="a")])
        assert registry.get("") is None
        assert registry.get(None) is None


class TestRecords:
    """Test task persistence helpers."""

    def test_generated_ids(self):
        """Test the default id format."""
        task_id = generate_task_id()
        assert len(task_id) == 9
        assert task_id.isalnum()
        assert task_id == task_id.lower()

    def test_round_trip(self):
        """Test that tasks dump to plain records and back."""
        registry = TaskRegistry([Task(id="1", content="a", priority=3), Task(id="2", content="b")])
        assert tasks_from_records(registry.to_records()) == registry.tasks

    @pytest.mark.parametrize(
        "raw",
        [None, "[]", {"id": "1"}, [{"id": "1"}], [{"id": "1", "content": "a", "priority": 9}], [{"id": "", "content": "a"}]],
    )
    def test_malformed_records_fall_back_to_empty(self, raw):
        """Test that unusable stored values give an empty task list."""
        assert tasks_from_records(raw) == []
