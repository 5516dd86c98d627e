"""Tests for the Supabase client wrapper."""

import asyncio
import time
import pytest
from unittest.mock import AsyncMock, MagicMock, Mock, patch

from kanban_board.services import supabase_client
from kanban_board.services.supabase_client import (
    close_supabase_client,
    create_task,
    fetch_tasks,
    get_activity_by_task,
    get_supabase_client,
    subscribe_task_changes,
    unsubscribe_task_changes,
    update_task,
)
from kanban_board.utils.errors import SupabaseError
from tests.utils.factories import create_task_data


@pytest.fixture
def mock_client():
    """Patch the SupabaseClient context manager to yield a MagicMock client."""
    client = MagicMock()
    with patch("kanban_board.services.supabase_client.SupabaseClient") as mock_client_class:
        mock_client_class.return_value.__aenter__.return_value = client
        mock_client_class.return_value.__aexit__.return_value = None
        yield client


def _patch_client(client):
    return patch(
        "kanban_board.services.supabase_client.get_supabase_client",
        new_callable=AsyncMock,
        return_value=client,
    )


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_supabase_client_requires_credentials(monkeypatch):
    monkeypatch.delenv("SUPABASE_URL", raising=False)
    monkeypatch.delenv("SUPABASE_ANON_KEY", raising=False)

    with pytest.raises(SupabaseError):
        await get_supabase_client()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_supabase_client_is_singleton():
    with patch("kanban_board.services.supabase_client.acreate_client", new_callable=AsyncMock) as mock_create:
        mock_create.return_value = MagicMock()
        first = await get_supabase_client()
        second = await get_supabase_client()

    assert first is second
    mock_create.assert_awaited_once()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_fetch_tasks_orders_by_position(mock_client):
    rows = [create_task_data(position=0), create_task_data(position=1)]
    query = mock_client.table.return_value.select.return_value.order.return_value
    query.execute = AsyncMock(return_value=MagicMock(data=rows))

    result = await fetch_tasks()

    assert result == rows
    mock_client.table.assert_called_once_with("tasks")
    mock_client.table.return_value.select.return_value.order.assert_called_once_with("position")
    query.execute.assert_awaited_once()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_create_task_without_returned_row_fails(mock_client):
    mock_client.table.return_value.insert.return_value.execute = AsyncMock(return_value=MagicMock(data=[]))

    with pytest.raises(SupabaseError, match="no data returned"):
        await create_task(create_task_data())


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_task_filters_by_id(mock_client):
    row = create_task_data(id="t1", position=3)
    query = mock_client.table.return_value.update.return_value
    query.eq.return_value.execute = AsyncMock(return_value=MagicMock(data=[row]))

    result = await update_task("t1", {"position": 3})

    assert result == row
    mock_client.table.return_value.update.assert_called_once_with({"position": 3})
    query.eq.assert_called_once_with("id", "t1")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_task_wraps_client_errors(mock_client):
    mock_client.table.return_value.update.side_effect = RuntimeError("network down")

    with pytest.raises(SupabaseError, match="network down"):
        await update_task("t1", {"position": 3})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_update_task_wraps_failed_request(mock_client):
    query = mock_client.table.return_value.update.return_value.eq.return_value
    query.execute = AsyncMock(side_effect=RuntimeError("503 Service Unavailable"))

    with pytest.raises(SupabaseError, match="503"):
        await update_task("t1", {"position": 3})


@pytest.mark.unit
@pytest.mark.asyncio
async def test_get_activity_by_task_newest_first(mock_client):
    select = mock_client.table.return_value.select.return_value
    ordered = select.eq.return_value.order.return_value
    ordered.limit.return_value.execute = AsyncMock(return_value=MagicMock(data=[]))

    result = await get_activity_by_task("t1")

    assert result == []
    mock_client.table.assert_called_once_with("activity_log")
    select.eq.assert_called_once_with("task_id", "t1")
    select.eq.return_value.order.assert_called_once_with("created_at", desc=True)
    ordered.limit.assert_called_once_with(50)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_concurrent_writes_overlap_and_keep_the_loop_running():
    """Two gathered writes take about one round trip, and other tasks keep ticking."""
    async def slow_execute():
        await asyncio.sleep(0.2)
        return MagicMock(data=[{"id": "t1"}])

    client = MagicMock()
    client.table.return_value.update.return_value.eq.return_value.execute = slow_execute
    ticks = []

    async def ticker():
        for _ in range(4):
            ticks.append(time.perf_counter())
            await asyncio.sleep(0.05)

    async def timed_writes():
        start = time.perf_counter()
        await asyncio.gather(update_task("t1", {"position": 0}), update_task("t2", {"position": 1}))
        return time.perf_counter() - start

    with _patch_client(client):
        elapsed, _ = await asyncio.gather(timed_writes(), ticker())

    gaps = [later - earlier for earlier, later in zip(ticks, ticks[1:])]
    assert elapsed < 0.35
    assert max(gaps) < 0.15


@pytest.mark.unit
@pytest.mark.asyncio
async def test_subscribe_task_changes_listens_to_all_events():
    callback = Mock()
    channel = MagicMock()
    channel.subscribe = AsyncMock()
    client = MagicMock()
    client.channel.return_value = channel
    client.remove_channel = AsyncMock()

    with _patch_client(client):
        result = await subscribe_task_changes(callback)
        await unsubscribe_task_changes(result)

    client.channel.assert_called_once_with("tasks-channel")
    channel.on_postgres_changes.assert_called_once_with(
        "*", schema="public", table="tasks", callback=callback
    )
    channel.subscribe.assert_awaited_once()
    client.remove_channel.assert_awaited_once_with(channel)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_subscribe_task_changes_wraps_errors():
    with _patch_client(None) as mock_get:
        mock_get.side_effect = RuntimeError("socket closed")
        with pytest.raises(SupabaseError, match="socket closed"):
            await subscribe_task_changes(Mock())


@pytest.mark.unit
@pytest.mark.asyncio
async def test_close_removes_channels_and_resets_singleton(monkeypatch):
    client = MagicMock()
    client.remove_all_channels = AsyncMock()
    monkeypatch.setattr(supabase_client, "_client", client)

    await close_supabase_client()

    client.remove_all_channels.assert_awaited_once()
    assert supabase_client._client is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_close_without_client_is_noop():
    await close_supabase_client()

    assert supabase_client._client is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_close_wraps_socket_errors(monkeypatch):
    client = MagicMock()
    client.remove_all_channels = AsyncMock(side_effect=RuntimeError("already closed"))
    monkeypatch.setattr(supabase_client, "_client", client)

    with pytest.raises(SupabaseError, match="already closed"):
        await close_supabase_client()
    assert supabase_client._client is None


@pytest.mark.unit
def test_table_names_configurable(monkeypatch):
    monkeypatch.setenv("KANBAN_TASKS_TABLE", "board_tasks")

    assert supabase_client.tasks_table() == "board_tasks"
    assert supabase_client.activity_table() == "activity_log"
