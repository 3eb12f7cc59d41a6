"""
File store for temporary blobs.

Each object id owns exactly one file at ``<base_dir>/temp/<id>``. The id is
validated against the canonical id format before any path is built, so a
caller-supplied value can never point outside the reserved directory.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import BinaryIO

from tempstore.exceptions import (
    AllocationFailedError,
    NotFoundError,
    UnsupportedOperationError,
)
from tempstore.logging import get_logger, short_id
from tempstore.types import is_valid_id, to_epoch_ms

logger = get_logger(__name__)

# Descriptor-style modes mapped to Python file modes.
OPEN_MODES: dict[str, str] = {
    "r": "rb",
    "w": "wb",
    "wt": "wb",
    "wa": "ab",
    "rw": "r+b",
    "rwt": "w+b",
}


class FileStore:
    """Maps object ids to backing files. Knows nothing about metadata."""

    def __init__(self, base_dir: str | Path) -> None:
        """Initialize the file store.

        Args:
            base_dir: Base directory; blobs go into its ``temp`` subdirectory.
        """
        self.base_dir = Path(base_dir)
        self.files_dir = self.base_dir / "temp"

    def init(self) -> None:
        """Create the reserved directory."""
        self.files_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, object_id: str) -> Path:
        """Get the backing path for an id.

        Raises:
            NotFoundError: If the id is not well-formed.
        """
        if not is_valid_id(object_id):
            raise NotFoundError("No such temporary file")
        return self.files_dir / object_id

    def allocate(self, object_id: str) -> Path:
        """Create an empty backing file for a new id.

        Raises:
            AllocationFailedError: On any I/O error, including an existing file.
        """
        path = self.path_for(object_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("xb"):
                pass
        except OSError as e:
            raise AllocationFailedError(
                "Could not create backing file",
                context={"id": short_id(object_id), "reason": str(e)},
            ) from e

        logger.debug("Allocated backing file", id=short_id(object_id))
        return path

    def open(self, object_id: str, mode: str = "r") -> BinaryIO:
        """Open the backing file of an id.

        Opening never creates a file; an id without a file is NotFound.

        Args:
            object_id: The object id.
            mode: One of "r", "w", "wt", "wa", "rw", "rwt".

        Raises:
            NotFoundError: If the id is malformed or has no file.
            UnsupportedOperationError: If the mode is unknown.
        """
        file_mode = OPEN_MODES.get(mode)
        if file_mode is None:
            raise UnsupportedOperationError(
                "Unsupported open mode", context={"mode": mode}
            )

        path = self.path_for(object_id)
        if not path.is_file():
            raise NotFoundError("No such temporary file")

        try:
            return path.open(file_mode)
        except FileNotFoundError as e:
            raise NotFoundError("No such temporary file") from e

    def size_of(self, object_id: str) -> int:
        """Current length of the backing file in bytes.

        Raises:
            NotFoundError: If the id is malformed or has no file.
        """
        path = self.path_for(object_id)
        try:
            return path.stat().st_size
        except FileNotFoundError as e:
            raise NotFoundError("No such temporary file") from e

    def exists(self, object_id: str) -> bool:
        """Check whether an id has a backing file."""
        if not is_valid_id(object_id):
            return False
        return (self.files_dir / object_id).is_file()

    def delete(self, object_id: str) -> bool:
        """Remove the backing file of an id.

        Returns:
            True if a file existed and was removed. A missing file (or a
            malformed id) is a no-op returning False.
        """
        if not is_valid_id(object_id):
            return False
        try:
            (self.files_dir / object_id).unlink()
        except FileNotFoundError:
            return False
        return True

    def orphan_candidates(self, older_than: datetime) -> list[str]:
        """Ids of backing files last modified before the given instant.

        Only the retention sweeper calls this, to find files that lost
        their index row. Names that are not valid ids are ignored. A naive
        ``older_than`` is taken to be UTC, as everywhere else in the store.
        """
        if not self.files_dir.is_dir():
            return []

        threshold = to_epoch_ms(older_than) / 1000
        candidates: list[str] = []
        for path in self.files_dir.iterdir():
            if not is_valid_id(path.name) or not path.is_file():
                continue
            try:
                if path.stat().st_mtime < threshold:
                    candidates.append(path.name)
            except FileNotFoundError:
                continue
        return candidates
