"""
Storage conformance checker.

Runs a backend through the Storage contract against whatever it is
configured to talk to: upload/download round trip, existence and
deletion, URL generation, clearing and (when supported) presigning.
Handy in a backend's test suite and as a smoke test against a real
bucket (see scripts/lint_storage.py).
"""

import logging
from contextlib import closing
from io import BytesIO
from typing import Any, BinaryIO, Callable, Optional
from uuid import uuid4

from .storage import Storage

logger = logging.getLogger(__name__)

LINT_CONTENT = b"attachment-storage linter"


class LintError(Exception):
    """Raised when a storage backend violates the Storage contract."""
    pass


class StorageLinter:
    """
    Check a storage backend against the Storage contract.

    With ``action="warn"`` violations are logged instead of raised, so a
    partially compliant backend can be inspected in one run.
    """

    def __init__(self, storage: Storage, action: str = "error") -> None:
        if action not in ("error", "warn"):
            raise ValueError(f"action must be 'error' or 'warn', got {action!r}")
        self.storage = storage
        self.action = action
        self.errors: list[str] = []

    def call(self, io_factory: Optional[Callable[[], BinaryIO]] = None) -> bool:
        """
        Run all checks. Returns True if the backend passed.

        ``io_factory`` must return a fresh stream with LINT_CONTENT-like
        bytes on every call; by default it returns a BytesIO.
        """
        io_factory = io_factory or (lambda: BytesIO(LINT_CONTENT))
        self.errors = []

        expected = io_factory().read()
        key = f"lint/{uuid4().hex}"

        self.storage.upload(io_factory(), key, {"mime_type": "text/plain", "filename": "lint.txt"})

        self._lint_download(key, expected)
        self._lint_exists(key)
        self._lint_url(key)
        self._lint_delete(key)

        self.storage.upload(io_factory(), key)
        self._lint_iter_keys(key)
        self._lint_clear(key)

        if hasattr(self.storage, "presign"):
            self._lint_presign(key)

        if self.errors:
            logger.warning(
                "Storage failed lint",
                extra={"storage": type(self.storage).__name__, "errors": self.errors}
            )
        else:
            logger.info("Storage passed lint", extra={"storage": type(self.storage).__name__})

        return not self.errors

    def _lint_download(self, key: str, expected: bytes) -> None:
        with closing(self.storage.download(key)) as stream:
            data = stream.read()
        if data != expected:
            self._error("download", f"returned {len(data)} bytes that differ from the {len(expected)} uploaded")

    def _lint_exists(self, key: str) -> None:
        if not self.storage.exists(key):
            self._error("exists", "returned False for an uploaded file")

    def _lint_url(self, key: str) -> None:
        url = self.storage.url(key)
        if url is not None and not isinstance(url, str):
            self._error("url", f"should return a string or None, got {type(url).__name__}")

    def _lint_delete(self, key: str) -> None:
        self.storage.delete(key)
        if self.storage.exists(key):
            self._error("delete", "file still exists after deletion")
        # deleting a missing file must not raise
        self.storage.delete(key)

    def _lint_iter_keys(self, key: str) -> None:
        keys = list(self.storage.iter_keys())
        if key not in keys:
            self._error("iter_keys", f"did not yield uploaded key {key!r}")

    def _lint_clear(self, key: str) -> None:
        self.storage.clear()
        if self.storage.exists(key):
            self._error("clear", "file still exists after clearing")

    def _lint_presign(self, key: str) -> None:
        result: Any = self.storage.presign(key)
        if not isinstance(getattr(result, "url", None), str):
            self._error("presign", "result should have a string url")
        if not isinstance(getattr(result, "fields", None), dict):
            self._error("presign", "result should have a dict of fields")

    def _error(self, check: str, message: str) -> None:
        full_message = f"{check}: {message}"
        if self.action == "error":
            raise LintError(full_message)
        logger.warning("Lint check failed", extra={"check": check, "error": message})
        self.errors.append(full_message)
