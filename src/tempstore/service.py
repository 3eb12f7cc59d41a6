"""
TemporaryStorage: explicitly constructed owner of the store's components.

Holds the metadata index handle and the base directory, and exposes the
capability gateway and the retention sweeper built on top of them. Open it
at startup and close it at shutdown, or use it as an async context manager.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from types import TracebackType

from tempstore.config import Settings
from tempstore.files.store import FileStore
from tempstore.gateway.provider import CapabilityGateway
from tempstore.index.store import MetadataIndex
from tempstore.logging import get_logger
from tempstore.sweeper.retention import RetentionSweeper

logger = get_logger(__name__)

DB_NAME = "tempstorage.db"


class TemporaryStorage:
    """Service object wiring index, file store, gateway and sweeper."""

    def __init__(self, base_dir: str | Path, ttl: timedelta) -> None:
        """Initialize the service.

        Args:
            base_dir: Directory for the database and the blob directory.
            ttl: Time-to-live applied by the sweeper.
        """
        self.base_dir = Path(base_dir)
        self.index = MetadataIndex(self.base_dir / DB_NAME)
        self.files = FileStore(self.base_dir)
        self.gateway = CapabilityGateway(self.index, self.files)
        self.sweeper = RetentionSweeper(self.index, self.files, ttl)
        self._opened = False

    @classmethod
    def from_settings(cls, settings: Settings) -> TemporaryStorage:
        """Build a service from application settings."""
        return cls(settings.STORE_DIR, settings.ttl)

    @property
    def is_open(self) -> bool:
        return self._opened

    async def open(self) -> None:
        """Create directories and open the index. Safe to call twice."""
        if self._opened:
            return
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.files.init()
        await self.index.init()
        self._opened = True
        logger.info("Temporary storage opened", base_dir=str(self.base_dir))

    async def close(self) -> None:
        """Close the index handle."""
        if not self._opened:
            return
        await self.index.close()
        self._opened = False

    async def __aenter__(self) -> TemporaryStorage:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
