"""Custom exception classes for the dynamic model platform.

Every error carries the HTTP status it maps to; ``backend.main`` is the only
place that turns them into responses.
"""

from typing import List, Optional


class PlatformError(Exception):
    """Base exception for the platform."""

    status_code = 500

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class ValidationError(PlatformError):
    """Raised when a model or record payload is malformed or incomplete."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", errors: Optional[List[str]] = None):
        self.errors = list(errors or [])
        if self.errors:
            message = f"{message}: {', '.join(self.errors)}"
        super().__init__(message)


class MissingFieldError(ValidationError):
    """Raised when a required record field is absent."""

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"Field {field_name} is required")


class AuthenticationError(PlatformError):
    """Raised when authentication fails."""

    status_code = 401


class AuthorizationError(PlatformError):
    """Raised when the principal lacks permission."""

    status_code = 403


class InsufficientPermissionError(AuthorizationError):
    """The principal's role does not grant the operation on the model."""
    pass


class AccessDeniedError(AuthorizationError):
    """The principal holds the permission but does not own the record."""
    pass


class ResourceNotFoundError(PlatformError):
    """Raised when a requested model or record is not found."""

    status_code = 404


class ResourceConflictError(PlatformError):
    """Raised when a resource already exists."""

    status_code = 409


class StorageError(PlatformError):
    """Raised when a definition or record store operation fails."""

    status_code = 500
