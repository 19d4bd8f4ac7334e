"""
Custom exception classes for the application.

This module defines domain-specific exceptions that provide better error handling
and clearer error messages throughout the application.
"""


class ApplicationError(Exception):
    """Base exception for all application errors"""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(ApplicationError):
    """Raised when there's a configuration issue"""

    def __init__(self, message: str, missing_keys: list[str] | None = None):
        details = {"missing_keys": missing_keys} if missing_keys else {}
        super().__init__(message, details)


class ValidationError(ApplicationError):
    """Raised when caller-supplied input is missing or malformed"""

    def __init__(self, field: str, message: str):
        details = {"invalid_fields": {field: message}}
        super().__init__(f"Validation failed for {field}: {message}", details)
        self.field = field


class ResourceNotFoundError(ApplicationError):
    """Raised when an aggregate, or an item inside one of its sections, does not exist"""

    def __init__(self, resource: str, resource_id: str):
        details = {"resource": resource, "id": resource_id}
        super().__init__(f"{resource} with ID {resource_id} not found", details)


class ConflictError(ApplicationError):
    """Raised when a conditional write finds the document changed since it was read"""

    def __init__(self, user_id: str, expected_version: int, message: str | None = None):
        details = {"user_id": user_id, "expected_version": expected_version}
        msg = message or (
            f"Profile data for {user_id} was modified concurrently "
            f"(expected version {expected_version}); retry the operation"
        )
        super().__init__(msg, details)


class StorageError(ApplicationError):
    """Raised when the document store fails to read or write"""

    def __init__(self, operation: str, message: str):
        details = {"operation": operation}
        super().__init__(message, details)


class WorkerPoolRejectedError(ApplicationError):
    """Raised when the worker pool refuses a unit of work"""

    def __init__(self, message: str, capacity: int | None = None):
        details = {"capacity": capacity} if capacity is not None else {}
        super().__init__(message, details)
