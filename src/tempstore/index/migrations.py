"""
Additive schema migrations for the metadata index.

The schema version lives in ``PRAGMA user_version``. Each step only adds
tables, columns or indexes; no step ever drops or recreates the files
table, so ids stored by an older version survive every upgrade.
"""

from __future__ import annotations

import aiosqlite

from tempstore.exceptions import SchemaVersionError
from tempstore.logging import get_logger

logger = get_logger(__name__)

TABLE_FILES = "files"

MIGRATIONS: tuple[tuple[str, ...], ...] = (
    # 1: base table
    (
        f"""
        CREATE TABLE IF NOT EXISTS {TABLE_FILES} (
            id TEXT PRIMARY KEY,
            name TEXT,
            created_at INTEGER NOT NULL
        )
        """,
    ),
    # 2: content type
    (f"ALTER TABLE {TABLE_FILES} ADD COLUMN content_type TEXT",),
    # 3: cutoff scans used by the sweeper
    (
        f"CREATE INDEX IF NOT EXISTS idx_files_created_at ON {TABLE_FILES}(created_at)",
    ),
)

SCHEMA_VERSION = len(MIGRATIONS)


async def get_schema_version(db: aiosqlite.Connection) -> int:
    """Read the schema version stored in the database."""
    async with db.execute("PRAGMA user_version") as cursor:
        row = await cursor.fetchone()
    return int(row[0]) if row else 0


async def _column_names(db: aiosqlite.Connection, table: str) -> set[str]:
    async with db.execute(f"PRAGMA table_info({table})") as cursor:
        rows = await cursor.fetchall()
    return {row[1] for row in rows}


async def migrate(db: aiosqlite.Connection) -> int:
    """Bring the schema up to SCHEMA_VERSION.

    Args:
        db: Open connection to the index database.

    Returns:
        The schema version after migrating.

    Raises:
        SchemaVersionError: If the database is newer than this code.
    """
    current = await get_schema_version(db)

    if current > SCHEMA_VERSION:
        raise SchemaVersionError(
            "Metadata database was written by a newer version",
            context={"found": current, "supported": SCHEMA_VERSION},
        )

    if current == SCHEMA_VERSION:
        return current

    for version in range(current + 1, SCHEMA_VERSION + 1):
        for statement in MIGRATIONS[version - 1]:
            # ADD COLUMN has no IF NOT EXISTS form
            if statement.lstrip().upper().startswith("ALTER TABLE"):
                column = statement.split("ADD COLUMN", 1)[1].split()[0]
                if column in await _column_names(db, TABLE_FILES):
                    continue
            await db.execute(statement)
        # PRAGMA does not accept bound parameters
        await db.execute(f"PRAGMA user_version = {version:d}")

    await db.commit()
    logger.info("Migrated metadata index", from_version=current, to_version=SCHEMA_VERSION)
    return SCHEMA_VERSION
