"""
Tests for the weekly schedule board.
"""

import pytest

from hippoplan.core.registry import TaskRegistry
from hippoplan.core.schedule import (
    PRIORITY_SECTIONS,
    ScheduleBoard,
    ScheduleError,
    entries_from_records,
    normalize_day,
    priority_section,
)
from hippoplan.core.types import ScheduleEntry, Task


@pytest.fixture
def registry() -> TaskRegistry:
    return TaskRegistry(
        [
            Task(id="A", content="buy milk", priority=3),
            Task(id="B", content="call mom", priority=1),
            Task(id="C", content="water plants"),
        ]
    )


@pytest.fixture
def board(registry: TaskRegistry) -> ScheduleBoard:
    return ScheduleBoard(registry)


class TestAssign:
    """Test slot assignment."""

    def test_assign_and_lookup(self, board: ScheduleBoard):
        """Test that an assigned task resolves through the registry."""
        board.assign("Monday", "am", 1, "A")
        assert board.lookup("Monday", "am", 1).content == "buy milk"
        assert board.lookup("Monday", "pm", 1) is None

    def test_assign_replaces(self, board: ScheduleBoard):
        """Test that a second assignment to the same key replaces the first."""
        board.assign("Tuesday", "pm", 2, "A")
        board.assign("Tuesday", "pm", 2, "B")
        assert board.lookup("Tuesday", "pm", 2).id == "B"
        assert [e.task_id for e in board.entries] == ["B"]

    def test_assign_idempotent(self, board: ScheduleBoard):
        """Test that repeating an assignment keeps a single entry."""
        board.assign("Friday", "am", 4, "C")
        board.assign("Friday", "am", 4, "C")
        assert len(board.entries) == 1

    @pytest.mark.parametrize("task_id", ["", None])
    def test_empty_task_clears(self, board: ScheduleBoard, task_id):
        """Test that assigning no task clears the slot."""
        board.assign("Monday", "am", 1, "A")
        assert board.assign("Monday", "am", 1, task_id) is None
        assert board.entries == []
        assert board.lookup("Monday", "am", 1) is None

    def test_clear(self, board: ScheduleBoard):
        """Test clearing one slot leaves the others."""
        board.assign("Monday", "am", 1, "A")
        board.assign("Monday", "am", 2, "B")
        board.clear("Monday", "am", 1)
        assert [e.slot for e in board.entries] == [2]

    def test_same_task_in_several_slots(self, board: ScheduleBoard):
        """Test that one task may fill several slots."""
        board.assign("Monday", "am", 1, "A")
        board.assign("Wednesday", "pm", 3, "A")
        assert [(e.day, e.slot) for e in board.slots_for_task("A")] == [("Monday", 1), ("Wednesday", 3)]

    def test_deleted_task_reads_as_empty(self, board: ScheduleBoard, registry: TaskRegistry):
        """Test that a dangling task id resolves to an empty slot."""
        board.assign("Thursday", "am", 1, "A")
        registry.reconcile(["call mom"])
        assert board.lookup("Thursday", "am", 1) is None
        assert board.entry_at("Thursday", "am", 1).task_id == "A"

    @pytest.mark.parametrize(
        "day, period, slot",
        [("Saturday", "am", 1), ("Monday", "noon", 1), ("Monday", "am", 0), ("Monday", "pm", 5)],
    )
    def test_invalid_keys(self, board: ScheduleBoard, day, period, slot):
        """Test that keys outside the grid are rejected."""
        with pytest.raises(ScheduleError):
            board.assign(day, period, slot, "A")
        assert board.entries == []

    def test_day_names_are_normalized(self, board: ScheduleBoard):
        """Test case-insensitive and abbreviated day names share one key."""
        board.assign("monday", "am", 1, "A")
        board.assign("Mon", "am", 1, "B")
        assert len(board.entries) == 1
        assert board.lookup("MONDAY", "am", 1).id == "B"
        assert normalize_day("fri") == "Friday"


class TestViews:
    """Test board views for assignment surfaces."""

    def test_sorted_tasks(self, board: ScheduleBoard):
        """Test that the picker lists tasks by priority with unprioritized last."""
        assert [t.id for t in board.sorted_tasks()] == ["B", "A", "C"]

    def test_day_view(self, board: ScheduleBoard):
        """Test that a day view resolves every slot of both periods."""
        board.assign("Wednesday", "pm", 3, "C")
        view = board.day_view("wed")
        assert set(view) == {"am", "pm"}
        assert view["pm"][3].id == "C"
        assert view["am"][1] is None
        assert len(view["am"]) == 4

    def test_priority_sections(self):
        """Test the static priority metadata."""
        assert [s.id for s in PRIORITY_SECTIONS] == [1, 2, 3, 4]
        assert priority_section(1).color == "#FF4B4B"
        assert priority_section(4).title == "4th Priority"
        assert priority_section(None) is None


class TestRecords:
    """Test schedule persistence helpers."""

    def test_round_trip(self, board: ScheduleBoard):
        """Test that entries dump to plain records and back."""
        board.assign("Monday", "am", 1, "A")
        board.assign("Friday", "pm", 4, "B")
        assert entries_from_records(board.to_records()) == board.entries

    def test_duplicate_stored_keys_keep_last(self):
        """Test that stored duplicates collapse to the latest entry."""
        raw = [
            {"day": "Monday", "period": "am", "slot": 1, "task_id": "A"},
            {"day": "Monday", "period": "pm", "slot": 1, "task_id": "C"},
            {"day": "Monday", "period": "am", "slot": 1, "task_id": "B"},
        ]
        entries = entries_from_records(raw)
        assert [(e.period, e.task_id) for e in entries] == [("pm", "C"), ("am", "B")]

    @pytest.mark.parametrize(
        "raw",
        [None, 3, {"day": "Monday"}, [{"day": "Monday", "period": "evening", "slot": 1, "task_id": "A"}], [{"day": "Monday", "period": "am"}]],
    )
    def test_malformed_records_fall_back_to_empty(self, raw):
        """Test that unusable stored values give an empty board."""
        assert entries_from_records(raw) == []

    def test_board_accepts_loaded_entries(self, registry: TaskRegistry):
        """Test constructing a board from restored entries."""
        board = ScheduleBoard(registry, [ScheduleEntry(day="Monday", period="am", slot=2, task_id="B")])
        assert board.lookup("Monday", "am", 2).content == "call mom"

    def test_stored_day_names_are_normalized(self, registry: TaskRegistry):
        """Test that a lower-case stored day shares its key with the board spelling."""
        raw = [
            {"day": "monday", "period": "am", "slot": 1, "task_id": "A"},
            {"day": "Tue", "period": "pm", "slot": 2, "task_id": "C"},
        ]
        board = ScheduleBoard(registry, entries_from_records(raw))
        assert [e.day for e in board.entries] == ["Monday", "Tuesday"]

        board.assign("Monday", "am", 1, "B")
        assert board.to_records() == [
            {"day": "Tuesday", "period": "pm", "slot": 2, "task_id": "C"},
            {"day": "Monday", "period": "am", "slot": 1, "task_id": "B"},
        ]

    @pytest.mark.parametrize(
        "record",
        [
            {"day": "Saturday", "period": "pm", "slot": 1, "task_id": "A"},
            {"day": "Monday", "period": "pm", "slot": 9, "task_id": "A"},
        ],
    )
    def test_off_grid_records_fall_back_to_empty(self, record):
        """Test that stored entries outside the weekly grid are not loaded."""
        raw = [{"day": "Monday", "period": "am", "slot": 1, "task_id": "B"}, record]
        assert entries_from_records(raw) == []
