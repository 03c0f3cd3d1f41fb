"""
RadioTrack Backend — Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions for the different error scenarios.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with the right HTTP status.
Who:   Raised by services; caught by global handlers or by the dispatcher.

Exception Hierarchy:
    RadioTrackError (base)
    ├── ValidationError      → 400 Bad Request (client can fix)
    ├── NotFoundError        → 404 Not Found
    ├── DatabaseError        → 500 Internal Server Error
    └── NotificationError    → never reaches the client; caught and logged
                               by the NotificationDispatcher
"""

from typing import Any, Dict, Optional


class RadioTrackError(Exception):
    """
    Base exception for all RadioTrack application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, only partially returned)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(RadioTrackError):
    """
    Raised when client input fails validation.

    When:    Unknown radiograph state, duplicate patient or radiograph code,
             malformed request body.
    HTTP:    400 Bad Request
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


class NotFoundError(RadioTrackError):
    """
    Raised when a requested resource does not exist.

    When:    Unknown patient id, or a radiograph id that is not part of the
             patient's collection.
    HTTP:    404 Not Found

    The message is the one shown to API consumers, e.g. "Paciente no encontrado".
    """

    def __init__(
        self,
        message: str = "Recurso no encontrado",
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)
        self.resource = resource
        self.resource_id = resource_id


class DatabaseError(RadioTrackError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    The store's own error text is kept in `context["original_error"]` and
    logged server-side.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotificationError(RadioTrackError):
    """
    Raised by a notification channel when a message could not be delivered.

    The dispatcher catches it per channel, so one failing channel never
    aborts the other channel or the state transition already applied.
    """

    def __init__(
        self,
        message: str = "Notification could not be delivered",
        channel: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if channel:
            ctx["channel"] = channel
        super().__init__(message=message, context=ctx)
        self.channel = channel
