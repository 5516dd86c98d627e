"""Supabase client wrapper with async context manager support."""

import os
from typing import Any, Callable, Optional
from supabase import acreate_client, AsyncClient, AsyncClientOptions
from kanban_board.utils.errors import SupabaseError
import logging

logger = logging.getLogger(__name__)

# Global client instance (singleton pattern), shared by table calls and realtime
_client: Optional[AsyncClient] = None


def _credentials() -> tuple[str, str]:
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_ANON_KEY")
    
    if not url or not key:
        raise SupabaseError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")
    return url, key


def tasks_table() -> str:
    return os.environ.get("KANBAN_TASKS_TABLE", "tasks")


def activity_table() -> str:
    return os.environ.get("KANBAN_ACTIVITY_TABLE", "activity_log")


async def get_supabase_client() -> AsyncClient:
    """Get or create the async Supabase client singleton."""
    global _client
    
    if _client is None:
        url, key = _credentials()
        options = AsyncClientOptions(
            auto_refresh_token=False,
            persist_session=False,
        )
        
        _client = await acreate_client(url, key, options)
        logger.info("Supabase client initialized", extra={"url": url})
    
    return _client


async def close_supabase_client() -> None:
    """Unsubscribe every realtime channel, close the socket and drop the client."""
    global _client
    if _client is None:
        return
    
    client, _client = _client, None
    try:
        await client.remove_all_channels()
    except Exception as e:
        raise SupabaseError(f"Failed to close Supabase client: {e}")
    logger.info("Supabase client closed")


class SupabaseClient:
    """Async context manager for Supabase client."""
    
    def __init__(self):
        self.client: Optional[AsyncClient] = None
    
    async def __aenter__(self) -> AsyncClient:
        self.client = await get_supabase_client()
        return self.client
    
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            logger.error(
                "Supabase operation error",
                extra={"error": str(exc_val), "type": exc_type.__name__}
            )
        return False


# Tasks table operations
async def fetch_tasks() -> list[dict]:
    """Read every task ordered by position."""
    async with SupabaseClient() as client:
        try:
            result = await client.table(tasks_table()).select("*").order("position").execute()
            return result.data if result.data else []
        except Exception as e:
            raise SupabaseError(f"Failed to fetch tasks: {e}")


async def create_task(task_data: dict) -> dict:
    """Insert a task and return the stored row."""
    async with SupabaseClient() as client:
        try:
            result = await client.table(tasks_table()).insert(task_data).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to create task: {e}")
        if result.data and len(result.data) > 0:
            return result.data[0]
        raise SupabaseError("Failed to create task: no data returned")


async def update_task(task_id: str, updates: dict) -> dict:
    """Update a task by id."""
    async with SupabaseClient() as client:
        try:
            result = await client.table(tasks_table()).update(updates).eq("id", task_id).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to update task: {e}")
        if result.data and len(result.data) > 0:
            return result.data[0]
        raise SupabaseError(f"Failed to update task: {task_id}")


async def delete_task(task_id: str) -> None:
    """Delete a task by id."""
    async with SupabaseClient() as client:
        try:
            await client.table(tasks_table()).delete().eq("id", task_id).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to delete task: {e}")


# Activity log table operations
async def insert_activity(entry_data: dict) -> dict:
    """Append an activity log entry."""
    async with SupabaseClient() as client:
        try:
            result = await client.table(activity_table()).insert(entry_data).execute()
        except Exception as e:
            raise SupabaseError(f"Failed to insert activity: {e}")
        if result.data and len(result.data) > 0:
            return result.data[0]
        raise SupabaseError("Failed to insert activity: no data returned")


async def get_activity_by_task(task_id: str, limit: int = 50) -> list[dict]:
    """Get the newest activity entries for a task."""
    async with SupabaseClient() as client:
        try:
            result = (
                await client.table(activity_table())
                .select("*")
                .eq("task_id", task_id)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
            return result.data if result.data else []
        except Exception as e:
            raise SupabaseError(f"Failed to get activity: {e}")


# Realtime
async def subscribe_task_changes(callback: Callable[[dict[str, Any]], None]):
    """Subscribe ``callback`` to every insert/update/delete on the tasks table."""
    try:
        client = await get_supabase_client()
        channel = client.channel(os.environ.get("KANBAN_REALTIME_CHANNEL", "tasks-channel"))
        channel.on_postgres_changes(
            "*",
            schema="public",
            table=tasks_table(),
            callback=callback,
        )
        await channel.subscribe()
    except SupabaseError:
        raise
    except Exception as e:
        raise SupabaseError(f"Failed to subscribe to task changes: {e}")
    
    logger.info("Subscribed to task changes", extra={"table": tasks_table()})
    return channel


async def unsubscribe_task_changes(channel) -> None:
    """Remove a realtime channel created by subscribe_task_changes."""
    try:
        client = await get_supabase_client()
        await client.remove_channel(channel)
    except Exception as e:
        raise SupabaseError(f"Failed to unsubscribe from task changes: {e}")
    logger.info("Unsubscribed from task changes")
