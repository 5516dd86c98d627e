"""In-memory task store - the board's single source of truth for the view layer."""

import logging
from datetime import date
from typing import Callable, Iterable, Optional, Union
from pydantic import BaseModel

from kanban_board.models.task import COLUMNS, PRIORITY_ORDER, Assignee, TagId, Task, TaskStatus

logger = logging.getLogger(__name__)

ALL = "all"

Observer = Callable[["TaskStore"], None]


class TaskCounts(BaseModel):
    """Header statistics for a set of tasks."""
    total: int = 0
    completed: int = 0
    due_today: int = 0


def sort_by_position(tasks: Iterable[Task]) -> list[Task]:
    """Ascending position; ties keep their current relative order."""
    return sorted(tasks, key=lambda t: t.position)


class TaskStore:
    """
    Ordered collection of tasks keyed by id.
    
    Observers are called synchronously after every mutation. The store is
    meant to be owned by one event loop; it does no locking.
    """
    
    def __init__(self, tasks: Optional[Iterable[Task]] = None):
        self._tasks: dict[str, Task] = {}
        self._observers: list[Observer] = []
        if tasks:
            for task in tasks:
                self._tasks[task.id] = task
    
    def __len__(self) -> int:
        return len(self._tasks)
    
    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks
    
    @property
    def tasks(self) -> list[Task]:
        return list(self._tasks.values())
    
    def get(self, task_id: str) -> Optional[Task]:
        return self._tasks.get(task_id)
    
    # Observers
    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer; returns a callable that unsubscribes it."""
        self._observers.append(observer)
        
        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)
        
        return unsubscribe
    
    def _notify(self) -> None:
        for observer in list(self._observers):
            observer(self)
    
    # Mutations
    def replace_all(self, tasks: Iterable[Task]) -> None:
        """Replace the whole collection (initial load and manual refresh)."""
        self._tasks = {task.id: task for task in tasks}
        logger.debug("Task store replaced", extra={"task_count": len(self._tasks)})
        self._notify()
    
    def upsert(self, task: Task) -> None:
        """Insert a task, or replace the one with the same id in place."""
        self._tasks[task.id] = task
        self._notify()
    
    def remove(self, task_id: str) -> Optional[Task]:
        """Remove a task by id; a missing id is not an error."""
        removed = self._tasks.pop(task_id, None)
        if removed is not None:
            self._notify()
        return removed
    
    # Derived views
    def group(self, status: Union[TaskStatus, str]) -> list[Task]:
        """Tasks of one status group, sorted by position."""
        return sort_by_position(t for t in self._tasks.values() if t.status == status)
    
    def max_position(self, status: Union[TaskStatus, str]) -> int:
        """Highest position in a status group, or -1 when it is empty."""
        positions = [t.position for t in self._tasks.values() if t.status == status]
        return max(positions) if positions else -1
    
    def filtered(
        self,
        assignee: Union[Assignee, str, None] = ALL,
        tag: Union[TagId, str, None] = ALL,
    ) -> list[Task]:
        """Tasks matching the assignee and tag filters; ``"all"`` or None disables a filter."""
        return [
            t for t in self._tasks.values()
            if (assignee in (None, ALL) or t.assignee == assignee)
            and (tag in (None, ALL) or t.has_tag(tag))
        ]
    
    def grouped_by_status(self, tasks: Optional[Iterable[Task]] = None) -> dict[TaskStatus, list[Task]]:
        """Every column with its tasks sorted by position."""
        source = list(self._tasks.values()) if tasks is None else list(tasks)
        return {
            status: sort_by_position(t for t in source if t.status == status)
            for status in COLUMNS
        }
    
    def counts(self, tasks: Optional[Iterable[Task]] = None, today: Optional[date] = None) -> TaskCounts:
        """Total, completed and due-today-not-done counts."""
        source = list(self._tasks.values()) if tasks is None else list(tasks)
        today = today or date.today()
        return TaskCounts(
            total=len(source),
            completed=sum(1 for t in source if t.is_done),
            due_today=sum(1 for t in source if t.is_due_today(today) and not t.is_done),
        )
    
    def tasks_by_due_date(self, tasks: Optional[Iterable[Task]] = None) -> dict[str, list[Task]]:
        """Tasks with a due date keyed by ISO date, highest priority first within a day."""
        source = list(self._tasks.values()) if tasks is None else list(tasks)
        by_date: dict[str, list[Task]] = {}
        for task in source:
            if task.due_date is None:
                continue
            by_date.setdefault(task.due_date.isoformat(), []).append(task)
        return {
            key: sorted(day_tasks, key=lambda t: PRIORITY_ORDER[t.priority])
            for key, day_tasks in by_date.items()
        }
