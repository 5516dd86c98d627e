"""Tests for the ActivityLogEntry model."""

import pytest
from pydantic import ValidationError

from kanban_board.models.activity import ActivityAction, ActivityLogEntry
from tests.utils.factories import create_activity_data


@pytest.mark.unit
def test_activity_entry_from_row():
    row = create_activity_data("t1", action="moved", details={"from": "todo", "to": "done"})
    
    entry = ActivityLogEntry.model_validate(row)
    
    assert entry.task_id == "t1"
    assert entry.action == ActivityAction.MOVED
    assert entry.details == {"from": "todo", "to": "done"}
    assert entry.created_at is not None


@pytest.mark.unit
def test_activity_entry_details_optional():
    entry = ActivityLogEntry(task_id="t1", action="deleted", user_name="Safira")
    
    assert entry.details is None
    assert entry.id is None


@pytest.mark.unit
def test_activity_entry_unknown_action():
    with pytest.raises(ValidationError):
        ActivityLogEntry(task_id="t1", action="archived", user_name="Safira")
