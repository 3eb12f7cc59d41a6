"""
Metadata index for temporary files.

Maps object id -> {name, content type, creation time} in a single SQLite
table. Rows are only ever addressed by their exact id; the one bulk
operation, delete_older_than(), exists for the retention sweeper.
"""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime
from pathlib import Path

import aiosqlite

from tempstore.exceptions import DuplicateIdError
from tempstore.index.migrations import TABLE_FILES, migrate
from tempstore.logging import get_logger, short_id
from tempstore.types import Entry, from_epoch_ms, to_epoch_ms

logger = get_logger(__name__)


class MetadataIndex:
    """SQLite-backed metadata table keyed by object id.

    The gateway and the periodic sweeper share one connection, and so one
    transaction. Every unit of work (statements plus their commit or
    rollback) runs under ``_lock``, so a rollback in one caller can never
    discard another caller's uncommitted statement.
    """

    def __init__(self, db_path: str | Path) -> None:
        """Initialize the index.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = Path(db_path)
        self._db: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def init(self) -> None:
        """Open the database and apply pending migrations."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(self.db_path)
        self._db.row_factory = aiosqlite.Row

        version = await migrate(self._db)
        logger.info("Metadata index initialized", db_path=str(self.db_path), version=version)

    async def close(self) -> None:
        """Close the database connection."""
        if self._db:
            async with self._lock:
                await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if not self._db:
            raise RuntimeError("MetadataIndex not initialized. Call init() first.")
        return self._db

    async def _write(self, sql: str, params: tuple) -> int:
        """Run one statement and commit it; return the affected row count."""
        async with self._lock:
            try:
                cursor = await self.db.execute(sql, params)
                await self.db.commit()
            except sqlite3.Error:
                await self.db.rollback()
                raise
            return cursor.rowcount

    async def insert(
        self,
        object_id: str,
        name: str | None,
        content_type: str | None,
        created_at: datetime,
    ) -> None:
        """Insert a new row.

        Args:
            object_id: The new object id.
            name: Optional display name.
            content_type: Optional MIME type.
            created_at: Creation time.

        Raises:
            DuplicateIdError: If the id is already present.
        """
        try:
            await self._write(
                f"""
                INSERT INTO {TABLE_FILES} (id, name, content_type, created_at)
                VALUES (?, ?, ?, ?)
                """,
                (object_id, name, content_type, to_epoch_ms(created_at)),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateIdError(
                "Object id already present in index",
                context={"id": short_id(object_id)},
            ) from e

    async def lookup(self, object_id: str) -> Entry | None:
        """Get the row for one id, or None."""
        async with self._lock:
            async with self.db.execute(
                f"SELECT id, name, content_type, created_at FROM {TABLE_FILES} WHERE id = ?",
                (object_id,),
            ) as cursor:
                row = await cursor.fetchone()

        if not row:
            return None

        return self._row_to_entry(row)

    async def contains(self, object_id: str) -> bool:
        """Check whether a row exists for the id."""
        async with self._lock:
            async with self.db.execute(
                f"SELECT 1 FROM {TABLE_FILES} WHERE id = ?", (object_id,)
            ) as cursor:
                return await cursor.fetchone() is not None

    async def update_content_type(self, object_id: str, content_type: str | None) -> bool:
        """Set the content type of one row.

        Returns:
            True if a row was affected.
        """
        rowcount = await self._write(
            f"UPDATE {TABLE_FILES} SET content_type = ? WHERE id = ?",
            (content_type, object_id),
        )
        return rowcount > 0

    async def delete_by_id(self, object_id: str) -> bool:
        """Delete one row. Deleting a missing row is not an error.

        Returns:
            True if a row was removed.
        """
        rowcount = await self._write(f"DELETE FROM {TABLE_FILES} WHERE id = ?", (object_id,))
        return rowcount > 0

    async def delete_older_than(self, cutoff: datetime) -> set[str]:
        """Remove every row created strictly before the cutoff.

        Candidates are selected and deleted one by one in a single
        transaction, and only ids whose row this call actually removed are
        returned. On error the whole transaction is rolled back and nothing
        is reported as removed.

        Args:
            cutoff: Rows with created_at < cutoff are removed.

        Returns:
            The ids of the removed rows.
        """
        cutoff_ms = to_epoch_ms(cutoff)
        removed: set[str] = set()

        async with self._lock:
            try:
                async with self.db.execute(
                    f"SELECT id FROM {TABLE_FILES} WHERE created_at < ?", (cutoff_ms,)
                ) as cursor:
                    candidates = [row["id"] for row in await cursor.fetchall()]

                for object_id in candidates:
                    cursor = await self.db.execute(
                        f"DELETE FROM {TABLE_FILES} WHERE id = ? AND created_at < ?",
                        (object_id, cutoff_ms),
                    )
                    if cursor.rowcount > 0:
                        removed.add(object_id)

                await self.db.commit()
            except sqlite3.Error:
                await self.db.rollback()
                raise

        return removed

    def _row_to_entry(self, row: aiosqlite.Row) -> Entry:
        """Convert a database row to an Entry."""
        return Entry(
            id=row["id"],
            name=row["name"],
            content_type=row["content_type"],
            created_at=from_epoch_ms(row["created_at"]),
        )
