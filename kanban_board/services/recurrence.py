"""Recurrence scheduler - next due date and successor task for recurring tasks."""

import calendar
from datetime import date, timedelta
from typing import Optional

from kanban_board.models.task import Recurrence, Task, TaskStatus
from kanban_board.utils.errors import RecurrenceError


def add_months(value: date, months: int) -> date:
    """Calendar month arithmetic, clamping to the last day of the target month."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def next_due_date(current: date, recurrence: Recurrence) -> date:
    """Advance ``current`` by one recurrence period."""
    if recurrence == Recurrence.DAILY:
        return current + timedelta(days=1)
    if recurrence == Recurrence.WEEKLY:
        return current + timedelta(weeks=1)
    if recurrence == Recurrence.MONTHLY:
        return add_months(current, 1)
    raise RecurrenceError(f"Task recurrence {recurrence!r} has no next date")


def should_spawn_successor(task: Task, previous_status: Optional[TaskStatus]) -> bool:
    """True when ``task`` has just entered done and repeats on a dated schedule."""
    return (
        task.status == TaskStatus.DONE
        and previous_status != TaskStatus.DONE
        and task.is_recurring
        and task.due_date is not None
    )


def build_successor(source: Task, successor_id: str, position: int) -> Task:
    """
    The next occurrence of ``source``: same content, back in To Do, due one period later.
    """
    if not source.is_recurring or source.due_date is None:
        raise RecurrenceError(f"Task {source.id} is not a dated recurring task")
    
    return Task(
        id=successor_id,
        title=source.title,
        description=source.description,
        status=TaskStatus.TODO,
        priority=source.priority,
        assignee=source.assignee,
        due_date=next_due_date(source.due_date, source.recurrence),
        tags=list(source.tags),
        recurrence=source.recurrence,
        position=position,
    )
