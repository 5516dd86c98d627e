"""Task models for the kanban board."""

from enum import Enum
from typing import Optional, Any
from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator


class TaskStatus(str, Enum):
    """Status values; each one is a board column."""
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class TaskPriority(str, Enum):
    """Task priority values."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Assignee(str, Enum):
    """The two people sharing the board."""
    GUILHERME = "guilherme"
    SAFIRA = "safira"


class Recurrence(str, Enum):
    """Recurrence period of a task."""
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class TagId(str, Enum):
    """Fixed tag vocabulary."""
    WORK = "work"
    PERSONAL = "personal"
    HOME = "home"
    SHOPPING = "shopping"
    HEALTH = "health"
    FINANCE = "finance"
    URGENT = "urgent"


# Column order on the board
COLUMNS: tuple[TaskStatus, ...] = (TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.DONE)

STATUS_LABELS: dict[TaskStatus, str] = {
    TaskStatus.TODO: "To Do",
    TaskStatus.IN_PROGRESS: "In Progress",
    TaskStatus.DONE: "Done",
}

# Lower sorts first in the calendar view
PRIORITY_ORDER: dict[TaskPriority, int] = {
    TaskPriority.HIGH: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.LOW: 2,
}

# Columns the database assigns itself
SERVER_MANAGED_FIELDS = ("created_at",)


def _normalize_tags(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        seen = []
        for tag in value:
            if tag not in seen:
                seen.append(tag)
        return seen
    return value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class Task(BaseModel):
    """A card on the board, one row of the tasks table."""
    id: str = Field(..., description="Task ID (uuid text)")
    title: str = Field(..., min_length=1, description="Task title")
    description: Optional[str] = Field(None, description="Task description")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="Column the task is in")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Priority")
    assignee: Assignee = Field(default=Assignee.GUILHERME, description="Who owns the task")
    due_date: Optional[date] = Field(None, description="Due date (no time component)")
    tags: list[TagId] = Field(default_factory=list, description="Tags, order irrelevant")
    recurrence: Recurrence = Field(default=Recurrence.NONE, description="Recurrence period")
    position: int = Field(default=0, description="Order within the status group")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, value: Any) -> Any:
        return _normalize_tags(value)

    @field_validator("recurrence", mode="before")
    @classmethod
    def _recurrence(cls, value: Any) -> Any:
        return Recurrence.NONE if value is None else value

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @property
    def is_done(self) -> bool:
        return self.status == TaskStatus.DONE

    @property
    def is_recurring(self) -> bool:
        return self.recurrence != Recurrence.NONE

    def has_tag(self, tag: TagId) -> bool:
        return tag in self.tags

    def is_due_today(self, today: Optional[date] = None) -> bool:
        """True when the due date is today's local calendar date."""
        today = today or date.today()
        return self.due_date is not None and self.due_date == today

    def is_overdue(self, today: Optional[date] = None) -> bool:
        """True when the due date has passed and the task is not done."""
        today = today or date.today()
        return self.due_date is not None and self.due_date < today and not self.is_done

    def to_row(self) -> dict[str, Any]:
        """Serialize for a Supabase insert/update, leaving out unset server columns."""
        row = self.model_dump(mode="json")
        for field in SERVER_MANAGED_FIELDS + ("updated_at",):
            if row.get(field) is None:
                row.pop(field, None)
        return row


class TaskDraft(BaseModel):
    """Form input for creating or editing a task (modal submit or quick-add)."""
    id: Optional[str] = Field(None, description="Present when editing an existing task")
    title: str = Field(default="", description="Task title, validated before saving")
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee: Assignee = Assignee.GUILHERME
    due_date: Optional[date] = None
    tags: list[TagId] = Field(default_factory=list)
    recurrence: Recurrence = Recurrence.NONE

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, value: Any) -> Any:
        return _normalize_tags(value)

    @property
    def is_edit(self) -> bool:
        return self.id is not None

    def changed_fields(self, task: Task) -> list[str]:
        """Names of the editable fields that differ from ``task``.

        Status is left out; a status change is logged as a move instead.
        """
        changes = []
        if task.title != self.title:
            changes.append("title")
        if task.description != self.description:
            changes.append("description")
        if task.priority != self.priority:
            changes.append("priority")
        if task.assignee != self.assignee:
            changes.append("assignee")
        if task.due_date != self.due_date:
            changes.append("due_date")
        if task.recurrence != self.recurrence:
            changes.append("recurrence")
        if set(task.tags) != set(self.tags):
            changes.append("tags")
        return changes
