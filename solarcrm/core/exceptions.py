"""Custom exceptions for the SolarCRM application.

Every exception carries an error ``code`` and the HTTP ``status_code`` the API
layer renders it with. Instances may override the class code (for example
``PROJECT_CLOSED`` or ``MISSING_DOCUMENTS``) and attach ``details``.
"""

from __future__ import annotations

from typing import Any


class SolarCRMException(Exception):
    """Base exception for SolarCRM application."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str = "", *, code: str | None = None, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message or self.__class__.__name__
        if code is not None:
            self.code = code
        self.details = details or {}


class ValidationError(SolarCRMException):
    """Raised when validation fails."""

    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(SolarCRMException):
    """Raised when a resource is not found."""

    code = "NOT_FOUND"
    status_code = 404


class ConflictError(SolarCRMException):
    """Raised when a write collides with an existing row."""

    code = "CONFLICT"
    status_code = 409


class InvalidTransitionError(SolarCRMException):
    """Raised when a disallowed state transition is attempted."""

    code = "INVALID_TRANSITION"
    status_code = 400


class InvalidStatusError(SolarCRMException):
    """Raised when an operation is attempted from the wrong status."""

    code = "INVALID_STATUS"
    status_code = 400


class PreconditionFailedError(SolarCRMException):
    """Raised when a business precondition (documents, assignment) is unmet."""

    code = "PRECONDITION_FAILED"
    status_code = 422


class DatabaseError(SolarCRMException):
    """Raised when a database operation fails."""

    code = "INTERNAL_ERROR"
    status_code = 500


class ServiceError(SolarCRMException):
    """Raised when a service operation fails."""

    code = "INTERNAL_ERROR"
    status_code = 500


class StorageError(SolarCRMException):
    """Raised when the object storage service rejects or fails a request."""

    code = "STORAGE_ERROR"
    status_code = 502


class ConfigurationError(SolarCRMException):
    """Raised when configuration is invalid."""

    code = "CONFIGURATION_ERROR"
    status_code = 500


class AuthenticationError(SolarCRMException):
    """Raised when authentication fails."""

    code = "UNAUTHORIZED"
    status_code = 401


class AuthorizationError(SolarCRMException):
    """Raised when an authenticated user may not perform an action."""

    code = "FORBIDDEN"
    status_code = 403
