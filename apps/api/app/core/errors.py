from __future__ import annotations


class DomainError(Exception):
    """Base error for engagement modification and commission operations.

    Every subclass carries the HTTP status the API layer maps it to; the
    services themselves never translate or swallow these.
    """

    status_code = 400

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class ValidationError(DomainError):
    """Raised when a payload does not match the shape its request type requires."""

    status_code = 422


class NotFoundError(DomainError):
    status_code = 404


class InvalidStateError(DomainError):
    """Raised when an operation is not permitted from the record's current status."""

    status_code = 409


class ExpiredTokenError(DomainError):
    status_code = 410


class ConcurrencyConflictError(DomainError):
    """Raised when another writer changed the record between read and write."""

    status_code = 409
