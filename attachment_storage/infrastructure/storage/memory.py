"""
In-memory storage for local development.

Enables running the API and the test suite without provisioning a
bucket. Objects live in a dictionary and URLs are ``memory://`` URIs.

Not suitable for production, but it implements the full Storage contract
and passes the linter, so it also serves as a second, non-S3 backend in
tests (uploads from it into S3 take the streaming path, not the copy
path).
"""

import logging
import threading
from contextlib import closing
from dataclasses import dataclass, field
from datetime import datetime, timezone
from io import BytesIO
from typing import Any, Iterator, Optional

from ...core.errors import InvalidKey, ObjectNotFound
from ...core.storage import PresignedPost, UploadedFile, UploadSource

logger = logging.getLogger(__name__)


@dataclass
class _StoredObject:
    data: bytes
    options: dict[str, Any] = field(default_factory=dict)
    last_modified: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class MemoryStorage:
    """Dictionary-backed storage: {key: _StoredObject}."""

    def __init__(self, prefix: Optional[str] = None) -> None:
        self.prefix = prefix
        self._objects: dict[str, _StoredObject] = {}
        self._lock = threading.Lock()
        logger.info("Initialized memory storage")

    def upload(
        self,
        io: UploadSource,
        key: str,
        metadata: Optional[dict[str, Any]] = None,
        **options: Any,
    ) -> None:
        """Store the bytes of ``io`` under ``key``."""
        if isinstance(io, UploadedFile):
            metadata = io.metadata if metadata is None else metadata
            with closing(io.open()) as stream:
                data = stream.read()
        else:
            data = io.read()

        metadata = metadata or {}
        mime_type = metadata.get("mime_type") or metadata.get("content_type")
        if mime_type:
            options.setdefault("content_type", mime_type)
        if metadata.get("filename"):
            options.setdefault("filename", metadata["filename"])

        with self._lock:
            self._objects[self.object_key(key)] = _StoredObject(data=data, options=options)

        logger.debug(
            "Stored object in memory storage",
            extra={"key": key, "size_bytes": len(data)}
        )

    def download(self, key: str, **options: Any) -> BytesIO:
        stored = self._objects.get(self.object_key(key))
        if stored is None:
            raise ObjectNotFound(f"Object not found: {key}", key=key)
        return BytesIO(stored.data)

    def exists(self, key: str) -> bool:
        return self.object_key(key) in self._objects

    def delete(self, key: str) -> None:
        with self._lock:
            self._objects.pop(self.object_key(key), None)

    def clear(self, older_than: Optional[datetime] = None) -> None:
        if older_than is not None and older_than.tzinfo is None:
            older_than = older_than.replace(tzinfo=timezone.utc)

        with self._lock:
            doomed = [
                object_key for object_key, stored in self._objects.items()
                if older_than is None or stored.last_modified < older_than
            ]
            for object_key in doomed:
                del self._objects[object_key]

        logger.debug("Cleared memory storage", extra={"count": len(doomed)})

    def iter_keys(self) -> Iterator[str]:
        # snapshot so concurrent writes don't break iteration
        for object_key in list(self._objects):
            if self.prefix:
                yield object_key[len(self.prefix) + 1:]
            else:
                yield object_key

    def url(self, key: str, **options: Any) -> str:
        return f"memory://{self.object_key(key)}"

    def presign(self, key: str, **options: Any) -> PresignedPost:
        # nothing enforces a policy in memory
        options.pop("expires_in", None)
        options.pop("content_length_range", None)

        fields = {name: str(value) for name, value in options.items()}
        fields["key"] = self.object_key(key)
        return PresignedPost(url="memory://", fields=fields)

    def object_key(self, key: str) -> str:
        if not key:
            raise InvalidKey("key must be a non-empty string", key=key)
        return f"{self.prefix}/{key}" if self.prefix else key
