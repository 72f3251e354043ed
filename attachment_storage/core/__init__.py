"""
Core storage contract.

Everything here is backend-agnostic: the Storage protocol that every
backend implements, the UploadedFile handle, the error taxonomy and the
linter used to verify a backend against the contract.
"""

from .errors import AccessDenied, InvalidKey, ObjectNotFound, StorageError, TransportError
from .storage import PresignedPost, Storage, UploadedFile

__all__ = [
    "AccessDenied",
    "InvalidKey",
    "ObjectNotFound",
    "PresignedPost",
    "Storage",
    "StorageError",
    "TransportError",
    "UploadedFile",
]
