"""Base exception taxonomy shared by the service modules.

Each service defines its own concrete errors on top of these; the API
layer maps the base class to an HTTP status.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base service error."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(ServiceError):
    """A referenced course, lesson, comment, user or enrollment does not exist."""


class ConflictError(ServiceError):
    """The operation collides with existing state."""


class PermissionDeniedError(ServiceError):
    """The principal may not perform this operation on this resource."""


class ValidationError(ServiceError):
    """Input passed schema validation but violates a domain rule."""
