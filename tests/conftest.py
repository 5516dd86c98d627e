"""Shared pytest fixtures and configuration."""

import os
import pytest
from unittest.mock import Mock
from freezegun import freeze_time

# Set test environment variables
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-key")
os.environ.setdefault("KANBAN_CURRENT_USER", "Guilherme")
os.environ.setdefault("LOG_FORMAT", "text")

from kanban_board.services import supabase_client
from kanban_board.services.board import BoardController
from kanban_board.services.task_store import TaskStore
from tests.utils.helpers import FakeBackend


@pytest.fixture
def store():
    return TaskStore()


@pytest.fixture
def notifier():
    """Stands in for the toast layer; records success/error calls."""
    return Mock()


@pytest.fixture
def celebrate():
    return Mock()


@pytest.fixture
def fake_backend(monkeypatch):
    """In-memory tasks table wired in place of the Supabase helpers."""
    backend = FakeBackend()
    monkeypatch.setattr(supabase_client, "fetch_tasks", backend.fetch_tasks)
    monkeypatch.setattr(supabase_client, "create_task", backend.create_task)
    monkeypatch.setattr(supabase_client, "update_task", backend.update_task)
    monkeypatch.setattr(supabase_client, "delete_task", backend.delete_task)
    monkeypatch.setattr("kanban_board.services.board.log_activity", backend.log_activity)
    return backend


@pytest.fixture
def controller(fake_backend, notifier, celebrate):
    return BoardController(notifier=notifier, on_celebrate=celebrate, user_name="Guilherme")


@pytest.fixture
def freeze_time_fixture():
    """Fixture for freezing time in tests."""
    with freeze_time("2024-01-05 10:00:00") as frozen_time:
        yield frozen_time


@pytest.fixture(autouse=True)
def reset_supabase_singletons(monkeypatch):
    """Never let one test reuse another test's client."""
    monkeypatch.setattr(supabase_client, "_client", None)
    yield
