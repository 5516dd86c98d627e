"""Activity log model - append-only history of task lifecycle events."""

from enum import Enum
from typing import Optional, Any
from datetime import datetime
from pydantic import BaseModel, Field


class ActivityAction(str, Enum):
    """Lifecycle events recorded in the activity log."""
    CREATED = "created"
    UPDATED = "updated"
    MOVED = "moved"
    COMPLETED = "completed"
    DELETED = "deleted"


class ActivityLogEntry(BaseModel):
    """One row of the activity_log table."""
    id: Optional[str] = Field(None, description="Entry ID (server-assigned)")
    task_id: str = Field(..., description="Task the entry refers to")
    action: ActivityAction = Field(..., description="What happened")
    user_name: str = Field(..., description="Display name of the actor")
    details: Optional[dict[str, Any]] = Field(
        None,
        description="Structured details: {from, to} for moved, {changes} for updated"
    )
    created_at: Optional[datetime] = None
