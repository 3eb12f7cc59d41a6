"""
Retention sweeper: reclaims expired entries without knowing their ids.

A sweep invalidates the credential first (index row) and only then removes
the file, the reverse of a caller-initiated delete. A concurrent resolve
thus sees NotFound rather than metadata pointing at a vanishing file.
"""

from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime, timedelta

from tempstore.exceptions import SweepFailedError
from tempstore.files.store import FileStore
from tempstore.index.store import MetadataIndex
from tempstore.logging import get_logger, log_context, short_id
from tempstore.types import utc_now

logger = get_logger(__name__)


class RetentionSweeper:
    """Deletes entries older than a fixed TTL, plus orphaned files."""

    def __init__(self, index: MetadataIndex, files: FileStore, ttl: timedelta) -> None:
        """Initialize the sweeper.

        Args:
            index: Metadata index to scan.
            files: File store holding the blobs.
            ttl: Default time-to-live of an entry.
        """
        self._index = index
        self._files = files
        self.ttl = ttl

    async def sweep(
        self,
        now: datetime | None = None,
        ttl: timedelta | None = None,
    ) -> int:
        """Remove every entry created before ``now - ttl``.

        Per-file deletion errors are logged and skipped.

        Args:
            now: Reference time (defaults to current UTC time).
            ttl: Time-to-live (defaults to the configured one).

        Returns:
            Number of index rows removed.

        Raises:
            SweepFailedError: If the index could not be queried. No file is
                touched in that case.
        """
        now = now or utc_now()
        cutoff = now - (ttl if ttl is not None else self.ttl)

        with log_context(operation="sweep", component="sweeper"):
            try:
                expired = await self._index.delete_older_than(cutoff)
            except sqlite3.Error as e:
                logger.error("Index scan failed", error=str(e))
                raise SweepFailedError(
                    "Could not query expired entries",
                    context={"cutoff": cutoff.isoformat(), "reason": str(e)},
                ) from e

            for object_id in expired:
                try:
                    self._files.delete(object_id)
                except OSError as e:
                    logger.warning(
                        "Could not remove expired file",
                        id=short_id(object_id),
                        error=str(e),
                    )

            if expired:
                logger.info("Swept expired entries", removed=len(expired), cutoff=cutoff.isoformat())

        return len(expired)

    async def compact(
        self,
        now: datetime | None = None,
        ttl: timedelta | None = None,
    ) -> int:
        """Remove backing files that no longer have an index row.

        Only files older than the sweep cutoff are considered, so a file
        whose row is still being written by create() is left alone.

        Returns:
            Number of files removed.
        """
        now = now or utc_now()
        cutoff = now - (ttl if ttl is not None else self.ttl)
        removed = 0

        with log_context(operation="compact", component="sweeper"):
            for object_id in self._files.orphan_candidates(cutoff):
                if await self._index.contains(object_id):
                    continue
                try:
                    if self._files.delete(object_id):
                        removed += 1
                except OSError as e:
                    logger.warning(
                        "Could not remove orphan file", id=short_id(object_id), error=str(e)
                    )

            if removed:
                logger.info("Removed orphan files", removed=removed)

        return removed

    async def run_periodic(
        self,
        interval: float,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        """Sweep and compact every ``interval`` seconds until stopped.

        A failed pass is logged; the loop carries on with the next one.
        """
        stop_event = stop_event or asyncio.Event()

        while not stop_event.is_set():
            try:
                await self.sweep()
                await self.compact()
            except (SweepFailedError, sqlite3.Error, OSError) as e:
                logger.error("Sweep pass failed", error=str(e))

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
