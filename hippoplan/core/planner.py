"""
Planner: wires capture session, task registry and schedule board together.

Stored state is injected explicitly; the core components never read storage
themselves. Content changes in the capture session are reconciled into the
registry as they happen, so task identity follows the captured fields.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from .capture import CaptureSession, fields_from_records
from .debug_log import DebugLogger
from .registry import TaskNotFound, TaskRegistry, generate_task_id, tasks_from_records
from .schedule import ScheduleBoard, entries_from_records
from .speech import TranscriptSource
from .store import PlannerStore, StoreError
from .types import ScheduleEntry, Task

logger = logging.getLogger(__name__)


class Planner:
    """
    The planning core as one object.

    Attributes:
        session: Capture session producing task texts
        registry: Canonical task list
        board: Weekly schedule board
        store: Persistence collaborator, None for in-memory planners
    """

    def __init__(
        self,
        fields: Optional[List[str]] = None,
        tasks: Optional[List[Task]] = None,
        schedule: Optional[List[ScheduleEntry]] = None,
        source: Optional[TranscriptSource] = None,
        countdown_seconds: Optional[int] = None,
        debug_logger: Optional[DebugLogger] = None,
        id_factory: Callable[[], str] = generate_task_id,
        store: Optional[PlannerStore] = None,
    ):
        self.registry = TaskRegistry(tasks, id_factory=id_factory)
        self.board = ScheduleBoard(self.registry, schedule)
        self.session = CaptureSession(source, fields, countdown_seconds=countdown_seconds, debug_logger=debug_logger)
        self.session.on_change(self.registry.reconcile)
        self.store = store

    @classmethod
    def from_records(cls, fields: Any = None, tasks: Any = None, schedule: Any = None, **kwargs) -> "Planner":
        """
        Build a planner from stored plain records.

        Each value may be absent or malformed and then falls back to empty.
        """
        return cls(
            fields=fields_from_records(fields),
            tasks=tasks_from_records(tasks),
            schedule=entries_from_records(schedule),
            **kwargs,
        )

    @classmethod
    def load(cls, project_root: Optional[str] = None, **kwargs) -> "Planner":
        """Build a planner from the project's planner store."""
        store = PlannerStore(project_root)
        return cls.from_records(store.load("fields"), store.load("tasks"), store.load("schedule"), store=store, **kwargs)

    def snapshot(self) -> Dict[str, List[dict]]:
        """Plain, order-preserving records of the whole planner state."""
        return {
            "fields": self.session.to_records(),
            "tasks": self.registry.to_records(),
            "schedule": self.board.to_records(),
        }

    def save(self) -> None:
        """
        Persist the planner state.

        Raises:
            StoreError: If the planner has no store or writing fails
        """
        if self.store is None:
            raise StoreError("Planner has no store to save to")
        self.store.save_all(self.snapshot())

    def sync_tasks(self) -> List[Task]:
        """Reconcile the registry against the current capture contents."""
        return self.registry.reconcile(self.session.contents)

    def set_priority(self, task_id: str, priority: Optional[int]) -> Optional[Task]:
        """
        Set a task priority, ignoring unknown ids.

        Returns:
            The updated task, or None if the id was not found
        """
        try:
            return self.registry.set_priority(task_id, priority)
        except TaskNotFound:
            logger.debug(f"Priority change for unknown task {task_id!r} ignored")
            return None
