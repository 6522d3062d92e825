"""
Task registry: canonical tasks with stable identity.

Tasks are reconciled against the content list coming out of the capture
session. Exact content matches keep their id and priority, anything new gets
a fresh id and no priority, and tasks whose content disappeared are dropped.
"""

import logging
import secrets
import string
from collections import defaultdict, deque
from typing import Any, Callable, Deque, Dict, Iterable, List, Optional

from pydantic import ValidationError
from rapidfuzz import fuzz

from .types import PRIORITIES, Task

logger = logging.getLogger(__name__)

# Minimum similarity for resolving a task from a loose content reference
FIND_THRESHOLD = 0.75

_ID_ALPHABET = string.ascii_lowercase + string.digits
ID_LENGTH = 9


class TaskNotFound(LookupError):
    """Raised when a task id is not in the registry."""

    pass


def generate_task_id() -> str:
    """Generate a random 9-character base36 task id."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(ID_LENGTH))


def reorder_by_priority(tasks: Iterable[Task]) -> List[Task]:
    """
    Stable sort of tasks by ascending priority.

    Unprioritized tasks come after every prioritized one; equal priorities keep
    their relative order.
    """
    return sorted(tasks, key=lambda task: (task.priority is None, task.priority or 0))


def tasks_from_records(raw: Any) -> List[Task]:
    """
    Rebuild tasks from stored records.

    Anything absent or malformed yields an empty list.
    """
    if not isinstance(raw, list):
        return []
    try:
        return [Task.model_validate(item) for item in raw]
    except ValidationError:
        logger.warning("Stored tasks are malformed, starting empty")
        return []


class TaskRegistry:
    """
    Owns the canonical task list.

    Other components only hold task ids and resolve them through get().
    """

    def __init__(self, tasks: Optional[Iterable[Task]] = None, id_factory: Callable[[], str] = generate_task_id):
        """
        Initialize the registry.

        Args:
            tasks: Initial tasks (e.g. restored from storage)
            id_factory: Generator for new task ids
        """
        self._tasks: List[Task] = list(tasks or [])
        self._id_factory = id_factory

    @property
    def tasks(self) -> List[Task]:
        return list(self._tasks)

    def get(self, task_id: Optional[str]) -> Optional[Task]:
        """Return the task with this id, or None."""
        if not task_id:
            return None
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    def reconcile(self, contents: Iterable[str]) -> List[Task]:
        """
        Replace the task list with one task per content string.

        Each content string reuses an existing task with exactly that content
        (same id, same priority). Identical contents claim existing tasks in
        their original order; once those are used up, a new task is created.
        Tasks whose content no longer appears are dropped.

        Args:
            contents: Authoritative ordered list of task texts

        Returns:
            The new task list
        """
        available: Dict[str, Deque[Task]] = defaultdict(deque)
        for task in self._tasks:
            available[task.content].append(task)

        used_ids = {task.id for task in self._tasks}
        result: List[Task] = []
        created = 0
        for content in contents:
            if available[content]:
                result.append(available[content].popleft())
                continue
            result.append(Task(id=self._new_id(used_ids), content=content))
            created += 1

        dropped = len(self._tasks) - (len(result) - created)
        if created or dropped:
            logger.debug(f"Reconciled tasks: {created} created, {dropped} dropped")

        self._tasks = result
        return self.tasks

    def _new_id(self, used_ids: set) -> str:
        task_id = self._id_factory()
        while task_id in used_ids:
            task_id = self._id_factory()
        used_ids.add(task_id)
        return task_id

    def set_priority(self, task_id: str, priority: Optional[int]) -> Task:
        """
        Set the priority of a task.

        Args:
            task_id: Task to update
            priority: 1-4, or None to make the task unprioritized

        Returns:
            The updated task

        Raises:
            TaskNotFound: If no task has this id
            ValueError: If the priority is not 1-4
        """
        if priority is not None and priority not in PRIORITIES:
            raise ValueError(f"Invalid priority: {priority} (expected one of {', '.join(map(str, PRIORITIES))})")

        for i, task in enumerate(self._tasks):
            if task.id == task_id:
                updated = task.model_copy(update={"priority": priority})
                self._tasks[i] = updated
                return updated

        raise TaskNotFound(f"No task with id {task_id!r}")

    def clear_priority(self, task_id: str) -> Task:
        """Make a task unprioritized again."""
        return self.set_priority(task_id, None)

    def by_priority(self, priority: int) -> List[Task]:
        """Tasks with exactly this priority, in registry order."""
        return [task for task in self._tasks if task.priority == priority]

    def unprioritized(self) -> List[Task]:
        return [task for task in self._tasks if task.priority is None]

    def find(self, query: str, threshold: float = FIND_THRESHOLD) -> Optional[Task]:
        """
        Resolve a loose task reference.

        Tries an exact id, then exact content, then the best fuzzy content
        match at or above threshold.

        Args:
            query: Task id or (approximate) content
            threshold: Minimum similarity score (0.0 to 1.0)

        Returns:
            Matching task or None
        """
        task = self.get(query)
        if task is not None:
            return task

        normalized = query.strip().lower()
        if not normalized:
            return None

        best: Optional[Task] = None
        best_score = 0.0
        for task in self._tasks:
            content = task.content.strip().lower()
            if content == normalized:
                return task
            score = fuzz.ratio(normalized, content) / 100.0
            if score > best_score:
                best, best_score = task, score

        return best if best_score >= threshold else None

    def to_records(self) -> List[dict]:
        return [task.model_dump() for task in self._tasks]
