"""
attachment-storage - S3 storage backend for file attachments.

This package contains:
- core: Storage contract, uploaded-file handles, conformance linter
- infrastructure: Storage backends (S3, in-memory)
- api: FastAPI routes for direct uploads and file URLs
- config: Application configuration
"""

__version__ = "0.1.0"
