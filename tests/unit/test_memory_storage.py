"""
Unit tests for the in-memory backend and the UploadedFile handle.

MemoryStorage backs mock mode, so it has to honor the same contract as
S3Storage.
"""

from datetime import datetime, timedelta, timezone
from io import BytesIO

import pytest

from attachment_storage.core.errors import InvalidKey, ObjectNotFound
from attachment_storage.core.linter import StorageLinter
from attachment_storage.core.storage import UploadedFile
from attachment_storage.infrastructure.storage import MemoryStorage


class TestMemoryStorage:
    """Tests for MemoryStorage."""

    def test_passes_the_linter(self, memory):
        assert StorageLinter(memory).call()

    def test_passes_the_linter_with_prefix(self):
        assert StorageLinter(MemoryStorage(prefix="foo")).call()

    def test_round_trip(self, memory):
        memory.upload(BytesIO(b"file"), "foo")

        assert memory.download("foo").read() == b"file"

    def test_uploads_from_uploaded_files(self, memory):
        source = MemoryStorage()
        source.upload(BytesIO(b"file"), "foo")

        memory.upload(UploadedFile("foo", source), "bar")

        assert memory.download("bar").read() == b"file"

    def test_missing_key_raises_not_found(self, memory):
        with pytest.raises(ObjectNotFound):
            memory.download("missing")

    def test_rejects_empty_keys(self, memory):
        with pytest.raises(InvalidKey):
            memory.exists("")

    def test_clear_older_than(self, memory):
        memory.upload(BytesIO(b"file"), "foo")

        memory.clear(older_than=datetime.now(timezone.utc) - timedelta(hours=1))
        assert memory.exists("foo")

        memory.clear(older_than=datetime.now(timezone.utc) + timedelta(minutes=1))
        assert not memory.exists("foo")

    def test_iter_keys_strips_the_prefix(self):
        memory = MemoryStorage(prefix="cache")
        memory.upload(BytesIO(b"file"), "foo/bar")

        assert list(memory.iter_keys()) == ["foo/bar"]

    def test_presign_reports_the_prefixed_key(self):
        presign = MemoryStorage(prefix="cache").presign("foo", content_type="image/png", expires_in=60)

        assert presign.fields == {"key": "cache/foo", "content_type": "image/png"}


class TestUploadedFile:
    """UploadedFile delegates to its storage."""

    def test_metadata_accessors(self, memory):
        uploaded_file = UploadedFile(
            "foo",
            memory,
            {"filename": "photo.jpg", "size": 4, "mime_type": "image/jpeg"},
        )

        assert uploaded_file.original_filename == "photo.jpg"
        assert uploaded_file.size == 4
        assert uploaded_file.mime_type == "image/jpeg"

    def test_content_type_is_an_alias_for_mime_type(self, memory):
        assert UploadedFile("foo", memory, {"content_type": "image/png"}).mime_type == "image/png"

    def test_read_url_exists_delete(self, memory):
        memory.upload(BytesIO(b"file"), "foo")
        uploaded_file = UploadedFile("foo", memory)

        assert uploaded_file.read() == b"file"
        assert uploaded_file.url() == "memory://foo"
        assert uploaded_file.exists()

        uploaded_file.delete()
        assert not uploaded_file.exists()
