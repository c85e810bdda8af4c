"""
Error types raised by the storage layer and the auth service.
Each carries the HTTP status the API reports it with.
"""


class StoreError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StoreError, ValueError):
    """Malformed or out-of-range input. Also a ValueError so pydantic validators report it."""

    status_code = 400


class AuthError(StoreError):
    """Missing, invalid or expired credentials."""

    status_code = 401


class NotFoundError(StoreError):
    """The requested record does not exist or is no longer active."""

    status_code = 404


class TokenExpiredError(NotFoundError):
    """The token exists but is past its expiry time."""


class StorageError(StoreError):
    """Unexpected persistence failure."""

    status_code = 500
