"""
Tests for the file store.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from tempstore.exceptions import (
    AllocationFailedError,
    NotFoundError,
    UnsupportedOperationError,
)
from tempstore.files.store import FileStore
from tempstore.types import generate_id


@pytest.fixture
def store(temp_dir: Path) -> FileStore:
    """Create an initialized file store for testing."""
    file_store = FileStore(temp_dir / "store")
    file_store.init()
    return file_store


class TestAllocation:
    """Test creating backing files."""

    def test_allocate_creates_empty_file(self, store: FileStore) -> None:
        """Test that allocation yields an empty file under the temp directory."""
        object_id = generate_id()
        path = store.allocate(object_id)

        assert path == store.files_dir / object_id
        assert path.is_file()
        assert store.size_of(object_id) == 0
        assert store.exists(object_id)

    def test_allocate_twice_fails(self, store: FileStore) -> None:
        """Test that an existing file is never reused."""
        object_id = generate_id()
        store.allocate(object_id)

        with pytest.raises(AllocationFailedError):
            store.allocate(object_id)

    def test_allocate_io_error(self, store: FileStore) -> None:
        """Test that I/O errors surface as AllocationFailedError."""
        # A regular file where the directory should be makes mkdir fail
        store.files_dir.rmdir()
        store.files_dir.write_bytes(b"")

        with pytest.raises(AllocationFailedError):
            store.allocate(generate_id())


class TestIdValidation:
    """Test that only canonical ids reach the filesystem."""

    @pytest.mark.parametrize(
        "bad_id",
        [
            "../escape",
            "..",
            "",
            "not-a-uuid",
            "12345678-1234-1234-1234-1234567890ab",
            "ABCDEF12-1234-4234-8234-1234567890AB",
            "../../etc/passwd",
            "a" * 36,
        ],
    )
    def test_malformed_ids_are_not_found(self, store: FileStore, bad_id: str) -> None:
        """Test that malformed ids behave as unknown ids."""
        with pytest.raises(NotFoundError):
            store.path_for(bad_id)
        with pytest.raises(NotFoundError):
            store.open(bad_id, "r")
        with pytest.raises(NotFoundError):
            store.size_of(bad_id)
        assert store.delete(bad_id) is False
        assert store.exists(bad_id) is False

    def test_traversal_does_not_touch_outside_files(
        self, store: FileStore, temp_dir: Path
    ) -> None:
        """Test that a traversal id cannot delete a sibling file."""
        victim = temp_dir / "victim"
        victim.write_bytes(b"keep me")

        assert store.delete("../../victim") is False
        assert victim.read_bytes() == b"keep me"


class TestStreams:
    """Test opening backing files."""

    def test_write_then_read(self, store: FileStore) -> None:
        """Test writing through one stream and reading through another."""
        object_id = generate_id()
        store.allocate(object_id)

        with store.open(object_id, "w") as f:
            f.write(b"x" * 1024)

        assert store.size_of(object_id) == 1024
        with store.open(object_id, "r") as f:
            assert f.read() == b"x" * 1024

    def test_append_mode(self, store: FileStore) -> None:
        """Test that "wa" appends."""
        object_id = generate_id()
        store.allocate(object_id)

        with store.open(object_id, "w") as f:
            f.write(b"abc")
        with store.open(object_id, "wa") as f:
            f.write(b"def")

        with store.open(object_id, "r") as f:
            assert f.read() == b"abcdef"

    def test_open_missing_does_not_create(self, store: FileStore) -> None:
        """Test that opening for write never creates a file."""
        object_id = generate_id()

        with pytest.raises(NotFoundError):
            store.open(object_id, "w")
        assert not store.exists(object_id)

    def test_unknown_mode(self, store: FileStore) -> None:
        """Test that unknown modes are rejected."""
        object_id = generate_id()
        store.allocate(object_id)

        with pytest.raises(UnsupportedOperationError):
            store.open(object_id, "x")


class TestDeletion:
    """Test removing backing files."""

    def test_delete_is_idempotent(self, store: FileStore) -> None:
        """Test that deleting a missing file is a no-op."""
        object_id = generate_id()
        store.allocate(object_id)

        assert store.delete(object_id) is True
        assert store.delete(object_id) is False
        with pytest.raises(NotFoundError):
            store.size_of(object_id)


class TestOrphanCandidates:
    """Test the directory scan used by compaction."""

    def test_only_old_valid_files(self, store: FileStore) -> None:
        """Test that only old files with id names are returned."""
        old_id, new_id = generate_id(), generate_id()
        store.allocate(old_id)
        store.allocate(new_id)
        (store.files_dir / "stray.txt").write_bytes(b"")

        long_ago = datetime.now(timezone.utc) - timedelta(days=2)
        os.utime(store.files_dir / old_id, (long_ago.timestamp(), long_ago.timestamp()))

        threshold = datetime.now(timezone.utc) - timedelta(days=1)
        assert store.orphan_candidates(threshold) == [old_id]

    def test_naive_threshold_is_utc(self, store: FileStore) -> None:
        """Test that a naive threshold is read as UTC, not local time."""
        old_id, new_id = generate_id(), generate_id()
        store.allocate(old_id)
        store.allocate(new_id)

        an_hour_ago = datetime.now(timezone.utc) - timedelta(hours=1)
        os.utime(store.files_dir / old_id, (an_hour_ago.timestamp(), an_hour_ago.timestamp()))

        threshold = (datetime.now(timezone.utc) - timedelta(minutes=30)).replace(tzinfo=None)
        assert store.orphan_candidates(threshold) == [old_id]
