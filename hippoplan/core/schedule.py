"""
Weekly schedule board.

Maps (day, period, slot) keys to task ids. Uniqueness per key is structural:
assign() always replaces whatever the key held, it never appends a second
entry. Ids are resolved against the task registry on lookup, and ids of
deleted tasks simply read as empty slots.
"""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .registry import TaskRegistry, reorder_by_priority
from .types import DAYS, PERIODS, SLOTS, PrioritySection, ScheduleEntry, Task

logger = logging.getLogger(__name__)

PRIORITY_SECTIONS = (
    PrioritySection(id=1, title="1st Priority", description="Urgent and super important", color="#FF4B4B"),
    PrioritySection(id=2, title="2nd Priority", description="Important but not urgent", color="#FF9F1C"),
    PrioritySection(id=3, title="3rd Priority", description="Urgent but less important", color="#2EC4B6"),
    PrioritySection(id=4, title="4th Priority", description="Neither urgent nor important", color="#8338EC"),
)

PERIOD_LABELS = {"am": "Morning", "pm": "Afternoon"}


class ScheduleError(ValueError):
    """Raised for a (day, period, slot) key outside the weekly grid."""

    pass


def priority_section(priority: Optional[int]) -> Optional[PrioritySection]:
    """Return the section describing a priority, None when unprioritized."""
    for section in PRIORITY_SECTIONS:
        if section.id == priority:
            return section
    return None


def normalize_day(day: str) -> str:
    """
    Resolve a day name case-insensitively, accepting 3-letter abbreviations.

    Raises:
        ScheduleError: If the day is not on the board
    """
    wanted = day.strip().lower()
    for known in DAYS:
        if wanted in (known.lower(), known[:3].lower()):
            return known
    raise ScheduleError(f"Unknown day: {day!r} (expected one of {', '.join(DAYS)})")


def _validate_key(day: str, period: str, slot: int) -> str:
    day = normalize_day(day)
    if period not in PERIODS:
        raise ScheduleError(f"Unknown period: {period!r} (expected 'am' or 'pm')")
    if slot not in SLOTS:
        raise ScheduleError(f"Slot out of range: {slot} (expected {SLOTS[0]}-{SLOTS[-1]})")
    return day


def entries_from_records(raw: Any) -> List[ScheduleEntry]:
    """
    Rebuild schedule entries from stored records.

    Day names are normalized to the board's spelling. Anything absent,
    malformed or off the grid yields an empty list. When stored data holds
    several entries for one key the last one wins.
    """
    if not isinstance(raw, list):
        return []
    entries = []
    try:
        for item in raw:
            entry = ScheduleEntry.model_validate(item)
            day = _validate_key(entry.day, entry.period, entry.slot)
            entries.append(entry.model_copy(update={"day": day}))
    except (ValidationError, ScheduleError) as e:
        logger.warning(f"Stored schedule is malformed, starting empty: {e}")
        return []

    by_key: Dict[tuple, ScheduleEntry] = {}
    for entry in entries:
        by_key.pop(entry.key, None)
        by_key[entry.key] = entry
    return list(by_key.values())


class ScheduleBoard:
    """
    Task assignments on the weekly (day, period, slot) grid.
    """

    def __init__(self, registry: TaskRegistry, entries: Optional[List[ScheduleEntry]] = None):
        self.registry = registry
        self._entries: List[ScheduleEntry] = list(entries or [])

    @property
    def entries(self) -> List[ScheduleEntry]:
        return list(self._entries)

    def assign(self, day: str, period: str, slot: int, task_id: Optional[str]) -> Optional[ScheduleEntry]:
        """
        Put a task into a slot, replacing whatever was there.

        Args:
            day: Weekday name
            period: 'am' or 'pm'
            slot: Slot number
            task_id: Task to assign; empty or None clears the slot

        Returns:
            The stored entry, or None when the slot was cleared

        Raises:
            ScheduleError: If the key is outside the grid
        """
        day = _validate_key(day, period, slot)
        self._entries = [e for e in self._entries if e.key != (day, period, slot)]
        if not task_id:
            return None
        entry = ScheduleEntry(day=day, period=period, slot=slot, task_id=task_id)
        self._entries.append(entry)
        return entry

    def clear(self, day: str, period: str, slot: int) -> None:
        self.assign(day, period, slot, None)

    def entry_at(self, day: str, period: str, slot: int) -> Optional[ScheduleEntry]:
        day = _validate_key(day, period, slot)
        for entry in self._entries:
            if entry.key == (day, period, slot):
                return entry
        return None

    def lookup(self, day: str, period: str, slot: int) -> Optional[Task]:
        """
        Resolve the task scheduled in a slot.

        Returns:
            The task, or None for an empty slot or a task that no longer exists
        """
        entry = self.entry_at(day, period, slot)
        if entry is None:
            return None
        return self.registry.get(entry.task_id)

    def sorted_tasks(self) -> List[Task]:
        """Registry tasks in priority order, for assignment pickers."""
        return reorder_by_priority(self.registry.tasks)

    def day_view(self, day: str) -> Dict[str, Dict[int, Optional[Task]]]:
        """
        Resolve one full day of the board.

        Returns:
            Mapping period -> slot -> task (None for empty slots)
        """
        day = normalize_day(day)
        return {period: {slot: self.lookup(day, period, slot) for slot in SLOTS} for period in PERIODS}

    def slots_for_task(self, task_id: str) -> List[ScheduleEntry]:
        """Entries referencing one task, in board order."""
        return [entry for entry in self._entries if entry.task_id == task_id]

    def to_records(self) -> List[dict]:
        return [entry.model_dump() for entry in self._entries]
