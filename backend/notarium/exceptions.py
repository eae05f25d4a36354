"""
Notarium Backend: Exception Hierarchy
=======================================

What:  Application exceptions raised by the services and mapped to HTTP
       responses by the handlers registered in main.py.
How:   Every exception carries a client-safe `message` and a `context` dict
       with debugging details. Handlers decide what part of the context is
       returned to the client.

Exception Hierarchy:
    NotariumError (base)
    ├── ValidationError        → 400 Bad Request
    ├── NotFoundError          → 404 Not Found
    ├── ForbiddenError         → 403 Forbidden
    ├── AlreadyPublishedError  → 400 Bad Request
    ├── OversizeError          → 413 Payload Too Large
    └── StorageError           → 500 Internal Server Error
"""

from typing import Any, Dict, List, Optional


class NotariumError(Exception):
    """
    Base exception for all Notarium application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, selectively returned)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(NotariumError):
    """
    Raised when input is malformed or a required value is missing.

    Always raised before any write, so a failed request leaves no trace.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(NotariumError):
    """Raised when a referenced note, subject or user does not exist."""

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id is not None:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = str(resource_id)
        super().__init__(message=message, context=ctx)
        self.resource = resource


class ForbiddenError(NotariumError):
    """Raised on an ownership or role mismatch (editing someone else's note)."""

    def __init__(
        self,
        message: str = "You are not allowed to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class AlreadyPublishedError(NotariumError):
    """
    Raised when publish is requested for a note that is not a draft.

    Guards the one-time counter increments: a second publish must not count
    the note again.
    """

    def __init__(self, note_id: Optional[int] = None, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        if note_id is not None:
            ctx["note_id"] = note_id
        super().__init__(message="Note is already published", context=ctx)
        self.note_id = note_id


class OversizeError(NotariumError):
    """
    Raised when one chunk of a submission exceeds the payload ceiling.

    Chunks persisted before the failing one remain committed; their ids are
    carried in `created_note_ids` so the caller can inspect what exists.
    """

    def __init__(
        self,
        actual_size: int,
        max_size: int,
        part_number: int = 1,
        created_note_ids: Optional[List[int]] = None,
    ):
        self.actual_size = actual_size
        self.max_size = max_size
        self.part_number = part_number
        self.created_note_ids = list(created_note_ids or [])
        super().__init__(
            message="Note data is too large. Please use smaller images.",
            context={
                "size": actual_size,
                "max_size": max_size,
                "part_number": part_number,
                "created_note_ids": self.created_note_ids,
            },
        )


class StorageError(NotariumError):
    """
    Raised when a grouped mutation fails.

    The whole group has been rolled back when this is raised: no counter was
    changed without its row change, and vice versa. It is not retried here;
    retry policy belongs to the caller.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
