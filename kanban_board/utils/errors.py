"""Error handling utilities."""


class KanbanError(Exception):
    """Base exception for the kanban board core."""
    pass


class TaskValidationError(KanbanError):
    """Task input rejected locally before any backend call."""
    pass


class SupabaseError(KanbanError):
    """Supabase operation error."""
    pass


class RealtimeError(KanbanError):
    """Malformed realtime change notification."""
    pass


class RecurrenceError(KanbanError):
    """Recurrence successor could not be computed or created."""
    pass
