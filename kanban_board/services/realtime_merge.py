"""Realtime merge handler - apply pushed row changes to the local task store."""

from typing import Callable, Iterable, Optional

from kanban_board.models.realtime import ChangeEventType, ChangeNotification
from kanban_board.models.task import Task, TaskStatus
from kanban_board.services.task_store import TaskStore
from kanban_board.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

CelebrationCallback = Callable[[Task], None]


class StatusTracker:
    """
    Last observed status per task id.
    
    Kept apart from the store so a transition into done is celebrated once,
    whether the local optimistic write or its realtime echo sees it first.
    """
    
    def __init__(self):
        self._statuses: dict[str, TaskStatus] = {}
    
    def get(self, task_id: str) -> Optional[TaskStatus]:
        return self._statuses.get(task_id)
    
    def seed(self, tasks: Iterable[Task]) -> None:
        for task in tasks:
            self._statuses[task.id] = task.status
    
    def forget(self, task_id: str) -> None:
        self._statuses.pop(task_id, None)
    
    def observe(self, task_id: str, status: TaskStatus) -> bool:
        """Record ``status``; True when this is a fresh transition into done."""
        previous = self._statuses.get(task_id)
        self._statuses[task_id] = status
        return status == TaskStatus.DONE and previous != TaskStatus.DONE


class RealtimeMergeHandler:
    """Applies insert/update/delete notifications in arrival order."""
    
    def __init__(
        self,
        store: TaskStore,
        tracker: Optional[StatusTracker] = None,
        on_celebrate: Optional[CelebrationCallback] = None,
    ):
        self.store = store
        self.tracker = tracker or StatusTracker()
        self.on_celebrate = on_celebrate
    
    def apply(self, notification: ChangeNotification) -> bool:
        """Apply one notification; returns True when the store changed."""
        if notification.event_type == ChangeEventType.INSERT:
            return self._apply_insert(notification.record)
        if notification.event_type == ChangeEventType.UPDATE:
            return self._apply_update(notification.record)
        return self._apply_delete(notification.old_id)
    
    def _apply_insert(self, task: Task) -> bool:
        self.tracker.observe(task.id, task.status)
        if task.id in self.store:
            logger.debug("Insert already applied locally", task_id=task.id)
            return False
        self.store.upsert(task)
        logger.info("Task inserted from realtime", task_id=task.id, status=task.status.value)
        return True
    
    def _apply_update(self, task: Task) -> bool:
        if self.tracker.observe(task.id, task.status):
            self.celebrate(task)
        
        existing = self.store.get(task.id)
        if existing is not None and existing.updated_at == task.updated_at:
            logger.debug("Dropping echo of local write", task_id=task.id)
            return False
        
        self.store.upsert(task)
        logger.info("Task updated from realtime", task_id=task.id, status=task.status.value)
        return True
    
    def _apply_delete(self, task_id: str) -> bool:
        self.tracker.forget(task_id)
        if self.store.remove(task_id) is None:
            logger.debug("Delete for unknown task ignored", task_id=task_id)
            return False
        logger.info("Task deleted from realtime", task_id=task_id)
        return True
    
    def celebrate(self, task: Task) -> None:
        """Fire the celebration callback, logging (not raising) its failures."""
        if self.on_celebrate is None:
            return
        try:
            self.on_celebrate(task)
        except Exception as e:
            logger.error("Celebration callback failed", task_id=task.id, error=str(e), exc_info=True)
