"""
Storage error taxonomy.

Backends translate their vendor exceptions into these classes and chain
the original (``raise ... from exc``), so callers can branch on the kind
of failure without importing botocore.
"""

from typing import Optional


class StorageError(Exception):
    """Raised when storage operations fail."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.key = key
        self.code = code


class ObjectNotFound(StorageError):
    """Raised when the requested key does not exist."""
    pass


class AccessDenied(StorageError):
    """Raised when credentials or bucket policy reject the request."""
    pass


class TransportError(StorageError):
    """Raised on network failures and timeouts."""
    pass


class InvalidKey(StorageError, ValueError):
    """Raised for empty or malformed keys."""
    pass
