"""
Capability gateway: the only surface external callers may reach.

Security:
- Ids are random UUID4 values, so predicting another caller's object is
  not feasible
- Every operation acts on exactly one object given by its bare id; there
  is no listing, no wildcard and no selection argument
- An id is only ever revealed as the return value of create(), so holding
  it is both necessary and sufficient to access that one object
"""

from __future__ import annotations

import sqlite3
from collections.abc import Mapping
from typing import Any, BinaryIO

from tempstore.exceptions import (
    AllocationFailedError,
    CreationFailedError,
    NotFoundError,
    UnsupportedOperationError,
)
from tempstore.files.store import FileStore
from tempstore.index.store import MetadataIndex
from tempstore.logging import get_logger, log_context, short_id
from tempstore.types import (
    DEFAULT_CONTENT_TYPE,
    ResolvedEntry,
    generate_id,
    is_valid_id,
    mime_matches,
    utc_now,
)

logger = get_logger(__name__)

CONTENT_TYPE_FIELD = "content_type"


def _require_bare_id(object_id: Any) -> None:
    """Reject anything that is not a single id string.

    None is treated as a listing request; mappings, sequences and other
    objects as filters.
    """
    if object_id is None:
        raise UnsupportedOperationError(
            "Listing temporary files is not allowed, only querying single files."
        )
    if not isinstance(object_id, str):
        raise UnsupportedOperationError(
            "Only a plain object id is accepted",
            context={"type": type(object_id).__name__},
        )


class CapabilityGateway:
    """Single-object access to the temporary store.

    Possession of an id is the only credential. Unknown and malformed ids
    both surface as NotFoundError so that neither reveals anything.
    """

    def __init__(self, index: MetadataIndex, files: FileStore) -> None:
        self._index = index
        self._files = files

    async def create(
        self,
        name: str | None = None,
        content_type: str | None = None,
    ) -> str:
        """Create a new empty entry.

        The index row is written first, then the backing file. If the file
        cannot be allocated the row is removed again before the error is
        raised, so a failed create leaves nothing behind.

        Args:
            name: Optional display name.
            content_type: Optional MIME type.

        Returns:
            The new object id.

        Raises:
            CreationFailedError: If the row or the file could not be created.
            DuplicateIdError: If the random id collided (integrity violation).
        """
        object_id = generate_id()

        with log_context(operation="create", component="gateway"):
            try:
                await self._index.insert(object_id, name, content_type, utc_now())
            except sqlite3.Error as e:
                logger.error("Index insert failed", id=short_id(object_id), error=str(e))
                raise CreationFailedError(
                    "Could not record temporary file", context={"reason": str(e)}
                ) from e

            try:
                self._files.allocate(object_id)
            except AllocationFailedError as e:
                try:
                    await self._index.delete_by_id(object_id)
                except sqlite3.Error as rollback_error:
                    logger.critical(
                        "Rollback of index row failed",
                        id=short_id(object_id),
                        error=str(rollback_error),
                    )
                    raise CreationFailedError(
                        "Could not create temporary file",
                        context={**e.context, "rolled_back": False},
                    ) from rollback_error
                logger.error(
                    "File allocation failed, rolled back index row",
                    id=short_id(object_id),
                    error=str(e),
                )
                raise CreationFailedError(
                    "Could not create temporary file", context=e.context
                ) from e

            logger.info("Created temporary file", id=short_id(object_id))

        return object_id

    async def resolve(self, object_id: str) -> ResolvedEntry:
        """Resolve an id to its metadata and a readable stream.

        The size is read from the backing file on every call. A row whose
        file has disappeared is removed and reported as not found.

        Raises:
            NotFoundError: If the id is unknown or malformed.
        """
        _require_bare_id(object_id)
        if not is_valid_id(object_id):
            raise NotFoundError("No such temporary file")

        entry = await self._index.lookup(object_id)
        if entry is None:
            raise NotFoundError("No such temporary file")

        try:
            stream = self._files.open(object_id, "r")
        except NotFoundError:
            await self._drop_orphan_row(object_id)
            raise

        try:
            size_bytes = self._files.size_of(object_id)
        except NotFoundError:
            stream.close()
            await self._drop_orphan_row(object_id)
            raise

        return ResolvedEntry(
            id=object_id,
            name=entry.name,
            content_type=entry.effective_content_type,
            size_bytes=size_bytes,
            path=self._files.path_for(object_id),
            stream=stream,
        )

    async def _drop_orphan_row(self, object_id: str) -> None:
        await self._index.delete_by_id(object_id)
        logger.warning("Removed index row without backing file", id=short_id(object_id))

    async def open_stream(self, object_id: str, mode: str = "r") -> BinaryIO:
        """Open the backing file of a known entry.

        Args:
            object_id: The object id.
            mode: "r", "w", "wt", "wa", "rw" or "rwt".

        Raises:
            NotFoundError: If the id is unknown or malformed.
            UnsupportedOperationError: If the mode is unknown.
        """
        _require_bare_id(object_id)
        if not is_valid_id(object_id) or not await self._index.contains(object_id):
            raise NotFoundError("No such temporary file")
        return self._files.open(object_id, mode)

    async def get_content_type(self, object_id: str) -> str:
        """Get the content type of an entry.

        Unknown, malformed and untyped ids all yield the default type, so
        this call never reveals whether an id exists.
        """
        _require_bare_id(object_id)
        if not is_valid_id(object_id):
            return DEFAULT_CONTENT_TYPE

        entry = await self._index.lookup(object_id)
        if entry is None:
            return DEFAULT_CONTENT_TYPE
        return entry.effective_content_type

    async def get_stream_types(self, object_id: str, mime_filter: str) -> list[str] | None:
        """Return the entry's type if it matches the filter, else None."""
        content_type = await self.get_content_type(object_id)
        if mime_matches(content_type, mime_filter):
            return [content_type]
        return None

    async def update(
        self,
        object_id: str,
        values: Mapping[str, Any],
        selection: Any = None,
    ) -> bool:
        """Apply a mutation to one entry.

        Only one shape is accepted: exactly one value, the content type,
        addressed by a plain id.

        Raises:
            UnsupportedOperationError: For any other request shape.
            NotFoundError: If no entry was affected.
        """
        _require_bare_id(object_id)
        if selection is not None:
            raise UnsupportedOperationError("Update supported only for a plain id")
        if not isinstance(values, Mapping) or set(values) != {CONTENT_TYPE_FIELD}:
            raise UnsupportedOperationError(
                "Update supported only for the content type field",
                context={"fields": sorted(values) if isinstance(values, Mapping) else None},
            )

        content_type = values[CONTENT_TYPE_FIELD]
        if content_type is not None and not isinstance(content_type, str):
            raise UnsupportedOperationError("Content type must be a string")

        if not is_valid_id(object_id):
            raise NotFoundError("No such temporary file")

        if not await self._index.update_content_type(object_id, content_type):
            raise NotFoundError("No such temporary file")

        logger.info("Updated content type", id=short_id(object_id), content_type=content_type)
        return True

    async def update_content_type(self, object_id: str, content_type: str) -> bool:
        """Set the content type of an entry."""
        return await self.update(object_id, {CONTENT_TYPE_FIELD: content_type})

    async def delete_one(self, object_id: str) -> int:
        """Delete one entry.

        The file goes first, then the row. The row is removed even when the
        file was already gone or could not be removed: a stray file is
        harmless garbage for compaction, a row without a file is not.

        Returns:
            Number of rows removed (0 or 1).
        """
        _require_bare_id(object_id)
        if not is_valid_id(object_id):
            return 0

        with log_context(operation="delete", component="gateway"):
            try:
                self._files.delete(object_id)
            except OSError as e:
                logger.warning(
                    "Could not remove backing file", id=short_id(object_id), error=str(e)
                )

            removed = await self._index.delete_by_id(object_id)
            if removed:
                logger.info("Deleted temporary file", id=short_id(object_id))

        return 1 if removed else 0
