"""Drag-and-drop position reconciliation."""

from datetime import datetime
from typing import Iterable, Optional, Union
from pydantic import BaseModel, Field

from kanban_board.models.task import COLUMNS, Task, TaskStatus
from kanban_board.services.task_store import sort_by_position


class PositionUpdate(BaseModel):
    """New position for one task."""
    task_id: str
    position: int


class MoveResult(BaseModel):
    """Outcome of a drop: the write-set the caller must persist."""
    task_id: str = Field(..., description="The dragged task")
    from_status: TaskStatus
    to_status: TaskStatus
    positions: list[PositionUpdate] = Field(default_factory=list)
    reordered: bool = Field(
        default=False,
        description="True when the whole group was renumbered 0..n-1"
    )

    @property
    def status_changed(self) -> bool:
        return self.from_status != self.to_status

    def position_of(self, task_id: str) -> Optional[int]:
        for update in self.positions:
            if update.task_id == task_id:
                return update.position
        return None


def _column_for(drop_id: str) -> Optional[TaskStatus]:
    for status in COLUMNS:
        if drop_id == status.value:
            return status
    return None


def move_item(items: list, from_index: int, to_index: int) -> list:
    """Return a copy of ``items`` with one element moved to ``to_index``."""
    moved = list(items)
    moved.insert(to_index, moved.pop(from_index))
    return moved


def reconcile_drop(
    tasks: Iterable[Task],
    active_id: str,
    over_id: Union[str, TaskStatus],
) -> Optional[MoveResult]:
    """
    Compute new positions for a task dropped on a column or on another task.
    
    ``over_id`` is either a status value (drop on the column itself) or the id
    of the task under the pointer. Returns None when nothing has to be written:
    the task was dropped onto itself, or either id is unknown.
    """
    by_id = {t.id: t for t in tasks}
    active = by_id.get(active_id)
    if active is None:
        return None

    over_key = over_id.value if isinstance(over_id, TaskStatus) else over_id
    if over_key == active_id:
        return None

    column = _column_for(over_key)
    if column is not None:
        group = [t for t in by_id.values() if t.status == column]
        position = max(t.position for t in group) + 1 if group else 0
        return MoveResult(
            task_id=active_id,
            from_status=active.status,
            to_status=column,
            positions=[PositionUpdate(task_id=active_id, position=position)],
        )

    over = by_id.get(over_key)
    if over is None:
        return None

    group = sort_by_position(t for t in by_id.values() if t.status == over.status)
    over_index = next(i for i, t in enumerate(group) if t.id == over.id)

    if over.status == active.status:
        active_index = next(i for i, t in enumerate(group) if t.id == active_id)
        reordered = move_item(group, active_index, over_index)
        return MoveResult(
            task_id=active_id,
            from_status=active.status,
            to_status=active.status,
            positions=[
                PositionUpdate(task_id=t.id, position=index)
                for index, t in enumerate(reordered)
                if t.position != index
            ],
            reordered=True,
        )

    # Different group: only the moved task gets a new slot
    return MoveResult(
        task_id=active_id,
        from_status=active.status,
        to_status=over.status,
        positions=[PositionUpdate(task_id=active_id, position=over_index)],
    )


def resolve_completed_at(
    previous_status: Union[TaskStatus, str, None],
    new_status: Union[TaskStatus, str],
    completed_at: Optional[datetime],
    now: datetime,
) -> Optional[datetime]:
    """completed_at after a status transition; non-null exactly when the new status is done."""
    if new_status != TaskStatus.DONE:
        return None
    if previous_status != TaskStatus.DONE:
        return now
    return completed_at or now
