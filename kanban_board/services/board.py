"""Board controller - dispatches user actions and realtime pushes against the task store."""

import asyncio
import os
from datetime import date, datetime, timezone
from typing import Any, Optional, Protocol, Union

from pydantic import BaseModel, ValidationError
from ulid import ULID

from kanban_board.models.activity import ActivityAction, ActivityLogEntry
from kanban_board.models.realtime import ChangeNotification
from kanban_board.models.task import Task, TaskDraft, TaskStatus
from kanban_board.services import supabase_client
from kanban_board.services.activity_log import get_task_activity, log_activity
from kanban_board.services.position_reconciler import MoveResult, reconcile_drop, resolve_completed_at
from kanban_board.services.realtime_merge import CelebrationCallback, RealtimeMergeHandler, StatusTracker
from kanban_board.services.recurrence import build_successor, should_spawn_successor
from kanban_board.services.task_store import ALL, TaskCounts, TaskStore
from kanban_board.utils.errors import KanbanError, RealtimeError, SupabaseError, TaskValidationError
from kanban_board.utils.logging import (
    correlation_context,
    get_structured_logger,
    log_timing,
    sanitize_task_text,
)

logger = get_structured_logger(__name__)

DEFAULT_USER = "Guilherme"

# Fields a modal edit writes back
EDIT_FIELDS = {
    "title",
    "description",
    "status",
    "priority",
    "assignee",
    "due_date",
    "tags",
    "recurrence",
    "updated_at",
    "completed_at",
}

MOVE_FIELDS = {"status", "position", "updated_at", "completed_at"}


def generate_task_id() -> str:
    """Generate a task ID: a ULID rendered as a UUID so it fits the uuid column."""
    return str(ULID().to_uuid())


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Notifier(Protocol):
    """Transient user notifications (toasts)."""

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingNotifier:
    """Notifier for headless use: notifications go to the log."""

    def success(self, message: str) -> None:
        logger.info("Notification", notification=message, notification_level="success")

    def error(self, message: str) -> None:
        logger.warning("Notification", notification=message, notification_level="error")


class BoardView(BaseModel):
    """What a board renders for one filter selection."""
    columns: dict[TaskStatus, list[Task]]
    counts: TaskCounts
    by_due_date: dict[str, list[Task]]


class BoardController:
    """
    Single-threaded dispatcher for every board event.

    Each local action mutates the store optimistically, then writes to
    Supabase. Realtime pushes go through the merge handler, which drops the
    echoes of those writes by comparing updated_at.
    """

    def __init__(
        self,
        store: Optional[TaskStore] = None,
        notifier: Optional[Notifier] = None,
        on_celebrate: Optional[CelebrationCallback] = None,
        user_name: Optional[str] = None,
    ):
        self.store = store or TaskStore()
        self.tracker = StatusTracker()
        self.merge_handler = RealtimeMergeHandler(self.store, self.tracker, on_celebrate)
        self.notifier = notifier or LoggingNotifier()
        self.user_name = user_name or os.environ.get("KANBAN_CURRENT_USER", DEFAULT_USER)
        self.loading = True
        self._channel = None

    # Loading
    async def load(self) -> bool:
        """Replace the store with the authoritative task list."""
        with correlation_context(), log_timing("load_tasks", logger=logger):
            try:
                rows = await supabase_client.fetch_tasks()
                tasks = [Task.model_validate(row) for row in rows]
            except (SupabaseError, ValidationError) as e:
                logger.error("Error fetching tasks", error=str(e), exc_info=True)
                return False

            self.tracker.seed(tasks)
            self.store.replace_all(tasks)
            self.loading = False
            logger.info("Tasks loaded", task_count=len(tasks))
            return True

    async def refresh(self) -> bool:
        return await self.load()

    # Realtime
    async def connect(self) -> None:
        """Subscribe to task changes; pushes are applied by handle_change."""
        if self._channel is None:
            self._channel = await supabase_client.subscribe_task_changes(self.handle_change)

    async def disconnect(self) -> None:
        """Drop the task channel, then close the client and its realtime socket."""
        if self._channel is not None:
            channel, self._channel = self._channel, None
            await supabase_client.unsubscribe_task_changes(channel)
        await supabase_client.close_supabase_client()

    def handle_change(self, payload: dict[str, Any]) -> bool:
        """Apply one realtime payload; returns True when the store changed."""
        try:
            notification = ChangeNotification.from_payload(payload)
        except RealtimeError as e:
            logger.warning("Ignoring malformed change notification", error=str(e))
            return False
        return self.merge_handler.apply(notification)

    # Views
    def view(
        self,
        assignee: Optional[str] = ALL,
        tag: Optional[str] = ALL,
        today: Optional[date] = None,
    ) -> BoardView:
        tasks = self.store.filtered(assignee=assignee, tag=tag)
        return BoardView(
            columns=self.store.grouped_by_status(tasks),
            counts=self.store.counts(tasks, today=today),
            by_due_date=self.store.tasks_by_due_date(tasks),
        )

    async def activity(self, task_id: str) -> list[ActivityLogEntry]:
        return await get_task_activity(task_id)

    # Creating and editing
    async def quick_add(self, title: str, status: Union[TaskStatus, str] = TaskStatus.TODO) -> Optional[Task]:
        """Create a task from a column's inline input with default fields."""
        return await self.save_task(TaskDraft(title=title, status=status))

    async def save_task(self, draft: TaskDraft) -> Optional[Task]:
        """
        Create or update a task from form input.

        Raises TaskValidationError for an empty title before anything is
        written. Returns the saved task, or None when the backend write failed
        (the optimistic state is kept and the user is notified).
        """
        if not draft.title:
            raise TaskValidationError("Task title cannot be empty")

        with correlation_context(), log_timing("save_task", logger=logger, edit=draft.is_edit):
            if draft.is_edit:
                return await self._update(draft)
            return await self._create(draft)

    async def _create(self, draft: TaskDraft) -> Optional[Task]:
        now = utc_now()
        task = Task(
            id=generate_task_id(),
            title=draft.title,
            description=draft.description,
            status=draft.status,
            priority=draft.priority,
            assignee=draft.assignee,
            due_date=draft.due_date,
            tags=draft.tags,
            recurrence=draft.recurrence,
            position=self.store.max_position(draft.status) + 1,
            completed_at=now if draft.status == TaskStatus.DONE else None,
        )
        self.store.upsert(task)
        self.tracker.observe(task.id, task.status)

        try:
            with log_timing("create_task", logger=logger, task_id=task.id):
                row = await supabase_client.create_task(task.to_row())
        except SupabaseError as e:
            logger.error(
                "Error creating task",
                task_id=task.id,
                title=sanitize_task_text(task.title),
                error=str(e),
                exc_info=True,
            )
            self.notifier.error("Could not create task")
            return None

        stored = Task.model_validate(row)
        self.store.upsert(stored)
        await log_activity(stored.id, ActivityAction.CREATED, self.user_name)
        self.notifier.success("Task created!")
        return stored

    async def _update(self, draft: TaskDraft) -> Optional[Task]:
        current = self.store.get(draft.id)
        if current is None:
            raise KanbanError(f"Unknown task: {draft.id}")

        now = utc_now()
        changes = draft.changed_fields(current)
        updated = current.model_copy(update={
            "title": draft.title,
            "description": draft.description,
            "status": draft.status,
            "priority": draft.priority,
            "assignee": draft.assignee,
            "due_date": draft.due_date,
            "tags": list(draft.tags),
            "recurrence": draft.recurrence,
            "updated_at": now,
            "completed_at": resolve_completed_at(current.status, draft.status, current.completed_at, now),
        })

        self._apply_local(updated)
        saved = await self._write_with_successor(
            updated,
            current.status,
            updated.model_dump(mode="json", include=EDIT_FIELDS),
            "Could not update task",
        )
        if not saved:
            return None

        if updated.is_done and current.status != TaskStatus.DONE:
            await log_activity(updated.id, ActivityAction.COMPLETED, self.user_name)
        elif updated.status != current.status:
            await log_activity(updated.id, ActivityAction.MOVED, self.user_name, {
                "from": current.status.value,
                "to": updated.status.value,
            })
        elif changes:
            await log_activity(updated.id, ActivityAction.UPDATED, self.user_name, {"changes": changes})

        self.notifier.success("Task updated!")
        return updated

    # Deleting
    async def delete_task(self, task_id: str) -> bool:
        """Delete immediately; on failure re-fetch so a surviving task reappears."""
        with correlation_context(), log_timing("delete_task", logger=logger, task_id=task_id):
            await log_activity(task_id, ActivityAction.DELETED, self.user_name)
            self.store.remove(task_id)
            self.tracker.forget(task_id)

            try:
                await supabase_client.delete_task(task_id)
            except SupabaseError as e:
                logger.error("Error deleting task", task_id=task_id, error=str(e), exc_info=True)
                self.notifier.error("Could not delete task")
                await self.refresh()
                return False

            self.notifier.success("Task deleted!")
            return True

    # Drag and drop
    async def handle_drag_end(self, active_id: str, over_id: Optional[str]) -> Optional[MoveResult]:
        """
        Persist a drop of ``active_id`` onto a column or another task.

        Returns the reconciler's write-set, or None when the drop changed nothing.
        """
        if over_id is None:
            return None

        result = reconcile_drop(self.store.tasks, active_id, over_id)
        if result is None:
            return None

        with correlation_context(), log_timing("handle_drag_end", logger=logger, task_id=active_id):
            logger.info(
                "Task dropped",
                task_id=active_id,
                from_status=result.from_status.value,
                to_status=result.to_status.value,
                reordered=result.reordered,
                write_count=len(result.positions),
            )
            if result.reordered:
                await self._reorder(result)
            else:
                await self._move(result)
        return result

    async def _reorder(self, result: MoveResult) -> None:
        now = utc_now()
        for update in result.positions:
            task = self.store.get(update.task_id)
            self.store.upsert(task.model_copy(update={"position": update.position, "updated_at": now}))

        stamp = now.isoformat()
        for update in result.positions:
            await self._persist(
                update.task_id,
                {"position": update.position, "updated_at": stamp},
                "Could not save the new order",
            )

    async def _move(self, result: MoveResult) -> None:
        active = self.store.get(result.task_id)
        now = utc_now()
        moved = active.model_copy(update={
            "status": result.to_status,
            "position": result.position_of(active.id),
            "updated_at": now,
            "completed_at": resolve_completed_at(result.from_status, result.to_status, active.completed_at, now),
        })

        self._apply_local(moved)
        saved = await self._write_with_successor(
            moved,
            result.from_status,
            moved.model_dump(mode="json", include=MOVE_FIELDS),
            "Could not move task",
        )
        if not saved:
            return

        if moved.is_done and result.from_status != TaskStatus.DONE:
            await log_activity(moved.id, ActivityAction.COMPLETED, self.user_name)
        if result.status_changed:
            await log_activity(moved.id, ActivityAction.MOVED, self.user_name, {
                "from": result.from_status.value,
                "to": result.to_status.value,
            })

    # Helpers
    def _apply_local(self, task: Task) -> None:
        self.store.upsert(task)
        if self.tracker.observe(task.id, task.status):
            self.merge_handler.celebrate(task)

    async def _persist(self, task_id: str, payload: dict[str, Any], failure_message: str) -> bool:
        try:
            await supabase_client.update_task(task_id, payload)
        except SupabaseError as e:
            logger.error("Error updating task", task_id=task_id, error=str(e), exc_info=True)
            self.notifier.error(failure_message)
            return False
        return True

    async def _write_with_successor(
        self,
        task: Task,
        previous_status: TaskStatus,
        payload: dict[str, Any],
        failure_message: str,
    ) -> bool:
        """Write ``task``; if it just completed a recurring series, spawn the successor alongside."""
        jobs = [self._persist(task.id, payload, failure_message)]
        if should_spawn_successor(task, previous_status):
            jobs.append(self._spawn_successor(task))
        results = await asyncio.gather(*jobs)
        return results[0]

    async def _spawn_successor(self, source: Task) -> Optional[Task]:
        log = logger.bind(source_task_id=source.id)
        successor = build_successor(
            source,
            generate_task_id(),
            self.store.max_position(TaskStatus.TODO) + 1,
        )
        try:
            row = await supabase_client.create_task(successor.to_row())
            stored = Task.model_validate(row)
        except (SupabaseError, ValidationError) as e:
            log.error(
                "Error creating recurring task",
                due_date=successor.due_date.isoformat(),
                error=str(e),
                exc_info=True,
            )
            self.notifier.error("Could not create the next recurring task")
            return None

        self.store.upsert(stored)
        self.tracker.observe(stored.id, stored.status)
        await log_activity(stored.id, ActivityAction.CREATED, self.user_name, {
            "recurring": True,
            "from_task": source.id,
        })
        self.notifier.success(f"Recurring task created for {stored.due_date.isoformat()}")
        log.info("Recurring task created", task_id=stored.id, due_date=stored.due_date.isoformat())
        return stored
