"""
Storage contract shared by all backends.

The attachment layer talks to storage only through the Storage protocol,
so backends can be swapped (S3 in production, memory in development)
without touching calling code.
"""

from contextlib import closing
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, BinaryIO, Iterator, Optional, Protocol, Union


@dataclass(frozen=True)
class PresignedPost:
    """
    Direct upload descriptor.

    Clients POST a multipart form to ``url`` with ``fields`` followed by
    the file itself; the bytes never pass through our process.
    """
    url: str
    fields: dict[str, str]


@dataclass
class UploadedFile:
    """
    Handle to a file that already lives in a storage backend.

    Passing an UploadedFile to ``Storage.upload`` lets a backend copy the
    object server-side instead of streaming it through us.
    """
    id: str
    storage: "Storage"
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def size(self) -> Optional[int]:
        return self.metadata.get("size")

    @property
    def mime_type(self) -> Optional[str]:
        return self.metadata.get("mime_type") or self.metadata.get("content_type")

    @property
    def original_filename(self) -> Optional[str]:
        return self.metadata.get("filename")

    def open(self, **options: Any) -> BinaryIO:
        """Open a stream over the stored bytes. Caller closes it."""
        return self.storage.download(self.id, **options)

    def read(self) -> bytes:
        with closing(self.open()) as stream:
            return stream.read()

    def url(self, **options: Any) -> str:
        return self.storage.url(self.id, **options)

    def exists(self) -> bool:
        return self.storage.exists(self.id)

    def delete(self) -> None:
        self.storage.delete(self.id)


UploadSource = Union[BinaryIO, UploadedFile]


class Storage(Protocol):
    """
    Protocol for storage backends.

    ``presign`` is optional; callers should check with ``hasattr`` before
    relying on it.
    """

    def upload(
        self,
        io: UploadSource,
        key: str,
        metadata: Optional[dict[str, Any]] = None,
        **options: Any,
    ) -> None:
        """Write ``io`` to ``key``, overwriting any existing object."""
        ...

    def download(self, key: str, **options: Any) -> BinaryIO:
        """Return a readable stream of the object's bytes."""
        ...

    def exists(self, key: str) -> bool:
        ...

    def delete(self, key: str) -> None:
        ...

    def url(self, key: str, **options: Any) -> Optional[str]:
        ...

    def clear(self, older_than: Optional[datetime] = None) -> None:
        """Delete every object, or only those modified before ``older_than``."""
        ...

    def iter_keys(self) -> Iterator[str]:
        ...
