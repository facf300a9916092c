"""
SchoolDesk Backend — Custom Exception Hierarchy
=================================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Custom exceptions enable targeted error handling with appropriate HTTP
       status codes and user-friendly messages, without leaking driver or
       file system details to the client.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return `{success: false, message, error}` bodies with the right status.
Who:   Raised by the validator, image stores and SchoolService; caught by
       global handlers.

Exception Hierarchy:
    SchoolDeskError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── DuplicateEmailError      → 400 Bad Request (email already registered)
    ├── NotFoundError            → 404 Not Found
    └── InternalError            → 500 Internal Server Error
        ├── FileStorageError     → image could not be written/uploaded
        └── DatabaseError        → repository operation failed
"""

from typing import Any, Dict, List, Optional


class SchoolDeskError(Exception):
    """
    Base exception for all SchoolDesk application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(SchoolDeskError):
    """
    Raised when client input fails validation.

    When:    Missing fields, rule violations from the validator, missing or
             unacceptable image upload, malformed record id.
    HTTP:    400 Bad Request

    `errors` keeps the individual rule messages; `message` is their
    comma-joined form, which is what the API returns.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        errors: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        if errors:
            ctx["errors"] = list(errors)
        super().__init__(message=message, context=ctx)
        self.field = field
        self.errors = list(errors) if errors else []


class DuplicateEmailError(SchoolDeskError):
    """
    Raised when a school with the same email_id already exists.

    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        email: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if email:
            ctx["email_id"] = email
        super().__init__(message="Email already exists", context=ctx)


class NotFoundError(SchoolDeskError):
    """
    Raised when a requested resource does not exist.

    HTTP:    404 Not Found

    Repositories return None for missing records; the service converts
    None → NotFoundError so HTTP concerns stay out of persistence code.
    """

    def __init__(
        self,
        resource: str = "School",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class InternalError(SchoolDeskError):
    """
    Raised when a storage, database or blob-service operation fails.

    HTTP:    500 Internal Server Error

    Security Note:
        The message returned to the client is always generic; details are
        logged server-side from `context`.
    """

    def __init__(
        self,
        message: str = "Internal server error",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class FileStorageError(InternalError):
    """
    Raised when an image cannot be written locally or uploaded remotely.

    Only uploads raise this; deletions are best-effort and never raise.
    """

    def __init__(
        self,
        message: str = "Failed to store the school image",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(InternalError):
    """Raised when a repository operation fails unexpectedly."""

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
