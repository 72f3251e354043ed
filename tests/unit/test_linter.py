"""
Unit tests for the storage linter.

A deliberately broken backend checks that violations are caught, either
raised or collected depending on the action.
"""

from io import BytesIO

import pytest

from attachment_storage.core.linter import LintError, StorageLinter
from attachment_storage.infrastructure.storage import MemoryStorage


class StickyStorage(MemoryStorage):
    """Claims every file exists, even after deletion."""

    def exists(self, key):
        return True


class CorruptingStorage(MemoryStorage):
    """Returns different bytes than were uploaded."""

    def download(self, key, **options):
        return BytesIO(b"garbage")


class TestStorageLinter:

    def test_passes_compliant_storage(self, memory):
        linter = StorageLinter(memory)

        assert linter.call()
        assert linter.errors == []

    def test_cleans_up_after_itself(self, memory):
        StorageLinter(memory).call()

        assert list(memory.iter_keys()) == []

    def test_raises_on_first_violation(self):
        with pytest.raises(LintError, match="delete"):
            StorageLinter(StickyStorage()).call()

    def test_warn_collects_all_violations(self):
        linter = StorageLinter(StickyStorage(), action="warn")

        assert not linter.call()
        assert [error.split(":")[0] for error in linter.errors] == ["delete", "clear"]

    def test_detects_corrupted_downloads(self):
        with pytest.raises(LintError, match="download"):
            StorageLinter(CorruptingStorage()).call()

    def test_custom_io_factory(self, memory):
        assert StorageLinter(memory).call(lambda: BytesIO(b"x" * 1024))

    def test_rejects_unknown_action(self, memory):
        with pytest.raises(ValueError):
            StorageLinter(memory, action="ignore")
