"""
Domain exceptions raised by the post workflow and media services.

Each subclass carries the HTTP status and error code the API layer renders.
"""


class DomainError(Exception):
    """Base class for errors reported back to the caller."""

    status_code = 400
    error_code = "BAD_REQUEST"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationFailed(DomainError):
    status_code = 422
    error_code = "VALIDATION_ERROR"


class NotFound(DomainError):
    status_code = 404
    error_code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource"):
        super().__init__(f"{resource} not found")


class Forbidden(DomainError):
    status_code = 403
    error_code = "FORBIDDEN"


class InvalidState(DomainError):
    """Transition attempted from a status that does not allow it."""

    status_code = 409
    error_code = "INVALID_STATE"


class StorageError(DomainError):
    """The object-storage provider failed or timed out."""

    status_code = 502
    error_code = "STORAGE_ERROR"
