"""
Storage backends.

S3Storage is the production backend; MemoryStorage runs without
credentials for local development.
"""

from .factory import create_storage
from .memory import MemoryStorage
from .s3 import S3Config, S3Storage

__all__ = ["MemoryStorage", "S3Config", "S3Storage", "create_storage"]
