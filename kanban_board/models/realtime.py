"""Realtime change notification model."""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field, ValidationError

from kanban_board.models.task import Task
from kanban_board.utils.errors import RealtimeError


class ChangeEventType(str, Enum):
    """Kinds of row change pushed by the backend."""
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class ChangeNotification(BaseModel):
    """A single insert/update/delete event for the tasks table."""
    event_type: ChangeEventType = Field(..., description="insert, update or delete")
    record: Optional[Task] = Field(None, description="Full current row (insert/update)")
    old_id: Optional[str] = Field(None, description="Id of the removed row (delete)")

    @property
    def task_id(self) -> Optional[str]:
        if self.record is not None:
            return self.record.id
        return self.old_id

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ChangeNotification":
        """
        Build a notification from a Supabase realtime payload.
        
        Accepts both the realtime-py shape ({"data": {"type", "record",
        "old_record"}}) and the supabase-js shape ({"eventType", "new", "old"}).
        """
        if not isinstance(payload, dict):
            raise RealtimeError(f"Unexpected payload type: {type(payload).__name__}")

        data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        event = data.get("type") or data.get("eventType") or data.get("event_type")
        new_row = data.get("record") if "record" in data else data.get("new")
        old_row = data.get("old_record") if "old_record" in data else data.get("old")

        if not event:
            raise RealtimeError("Change notification has no event type")

        try:
            event_type = ChangeEventType(str(event).lower())
        except ValueError:
            raise RealtimeError(f"Unknown change event type: {event}")

        try:
            if event_type == ChangeEventType.DELETE:
                old_id = (old_row or {}).get("id")
                if not old_id:
                    raise RealtimeError("Delete notification carries no id")
                return cls(event_type=event_type, old_id=str(old_id))

            if not new_row:
                raise RealtimeError(f"{event_type.value} notification carries no record")
            return cls(event_type=event_type, record=Task.model_validate(new_row))
        except ValidationError as e:
            raise RealtimeError(f"Invalid task record in notification: {e}") from e
