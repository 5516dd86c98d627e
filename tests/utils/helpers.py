"""Test helper functions."""

from typing import Any, Dict, Optional
from unittest.mock import AsyncMock

from kanban_board.utils.errors import SupabaseError

SERVER_TIMESTAMP = "2024-01-01T09:00:00+00:00"


class FakeBackend:
    """In-memory stand-in for the tasks table and activity log."""
    
    def __init__(self):
        self.rows: Dict[str, dict] = {}
        self.created: list[dict] = []
        self.updates: list[tuple[str, dict]] = []
        self.deleted: list[str] = []
        self.fail_on: set[str] = set()
        self.log_activity = AsyncMock(return_value=None)
    
    def seed(self, *rows: dict) -> None:
        for row in rows:
            self.rows[row["id"]] = dict(row)
    
    async def fetch_tasks(self) -> list[dict]:
        if "fetch" in self.fail_on:
            raise SupabaseError("Failed to fetch tasks: connection refused")
        return sorted((dict(r) for r in self.rows.values()), key=lambda r: r["position"])
    
    async def create_task(self, row: dict) -> dict:
        if "create" in self.fail_on:
            raise SupabaseError("Failed to create task: permission denied")
        stored = dict(row)
        stored.setdefault("created_at", SERVER_TIMESTAMP)
        stored.setdefault("updated_at", SERVER_TIMESTAMP)
        self.rows[stored["id"]] = stored
        self.created.append(stored)
        return dict(stored)
    
    async def update_task(self, task_id: str, updates: dict) -> dict:
        if "update" in self.fail_on:
            raise SupabaseError(f"Failed to update task: {task_id}")
        self.updates.append((task_id, dict(updates)))
        self.rows[task_id].update(updates)
        return dict(self.rows[task_id])
    
    async def delete_task(self, task_id: str) -> None:
        if "delete" in self.fail_on:
            raise SupabaseError("Failed to delete task: timeout")
        self.deleted.append(task_id)
        self.rows.pop(task_id, None)
    
    def updates_for(self, task_id: str) -> list[dict]:
        return [updates for tid, updates in self.updates if tid == task_id]


def realtime_payload(event_type: str, record: Optional[dict] = None, old_record: Optional[dict] = None) -> Dict[str, Any]:
    """Build a postgres_changes payload in the realtime-py shape."""
    return {
        "data": {
            "schema": "public",
            "table": "tasks",
            "commit_timestamp": SERVER_TIMESTAMP,
            "type": event_type.upper(),
            "record": record or {},
            "old_record": old_record or {},
            "errors": None,
        },
        "ids": [1],
    }
