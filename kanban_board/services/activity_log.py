"""Activity log service - best-effort history of task lifecycle events."""

from typing import Any, Optional

from kanban_board.models.activity import ActivityAction, ActivityLogEntry
from kanban_board.models.task import STATUS_LABELS, TaskStatus
from kanban_board.services.supabase_client import get_activity_by_task, insert_activity
from kanban_board.utils.errors import SupabaseError
from kanban_board.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

ACTIVITY_DISPLAY_LIMIT = 50

ACTIVITY_ICONS: dict[ActivityAction, str] = {
    ActivityAction.CREATED: "✨",
    ActivityAction.UPDATED: "✏️",
    ActivityAction.MOVED: "↔️",
    ActivityAction.COMPLETED: "✅",
    ActivityAction.DELETED: "🗑️",
}


async def log_activity(
    task_id: str,
    action: ActivityAction,
    user_name: str,
    details: Optional[dict[str, Any]] = None,
) -> Optional[ActivityLogEntry]:
    """
    Append an activity entry for a task.
    
    History is secondary to the action it describes, so a failed insert is
    logged and None is returned instead of raising.
    """
    entry = ActivityLogEntry(task_id=task_id, action=action, user_name=user_name, details=details)
    try:
        row = await insert_activity(entry.model_dump(mode="json", exclude={"id", "created_at"}))
    except SupabaseError as e:
        logger.warning(
            "Failed to log activity (non-fatal)",
            task_id=task_id,
            action=action.value,
            error=str(e),
        )
        return None
    return ActivityLogEntry.model_validate(row)


async def get_task_activity(task_id: str, limit: int = ACTIVITY_DISPLAY_LIMIT) -> list[ActivityLogEntry]:
    """Newest-first activity for a task; empty on read failure."""
    try:
        rows = await get_activity_by_task(task_id, limit=limit)
    except SupabaseError as e:
        logger.error("Error fetching activity", task_id=task_id, error=str(e))
        return []
    return [ActivityLogEntry.model_validate(row) for row in rows]


def _status_label(value: Any) -> str:
    try:
        return STATUS_LABELS[TaskStatus(value)]
    except ValueError:
        return str(value)


def format_activity_message(entry: ActivityLogEntry) -> str:
    """One-line description of an activity entry."""
    name = entry.user_name
    details = entry.details or {}
    
    if entry.action == ActivityAction.CREATED:
        if details.get("recurring"):
            return f"{name} created this task (recurring)"
        return f"{name} created this task"
    if entry.action == ActivityAction.UPDATED:
        changes = details.get("changes")
        if changes:
            return f"{name} edited: {', '.join(changes)}"
        return f"{name} edited this task"
    if entry.action == ActivityAction.MOVED:
        if details.get("from") and details.get("to"):
            return (
                f'{name} moved this task from "{_status_label(details["from"])}" '
                f'to "{_status_label(details["to"])}"'
            )
        return f"{name} moved this task"
    if entry.action == ActivityAction.COMPLETED:
        return f"{name} completed this task 🎉"
    if entry.action == ActivityAction.DELETED:
        return f"{name} deleted this task"
    return f"{name} did something"


def activity_icon(action: ActivityAction) -> str:
    return ACTIVITY_ICONS.get(action, "•")
