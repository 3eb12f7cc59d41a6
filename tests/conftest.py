"""
Pytest configuration and fixtures for temporary storage tests.
"""

from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import AsyncGenerator, Generator
from unittest.mock import patch

import pytest

from tempstore.config import Settings, clear_settings_cache
from tempstore.files.store import FileStore
from tempstore.gateway.provider import CapabilityGateway
from tempstore.index.store import MetadataIndex
from tempstore.service import TemporaryStorage


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide environment variables pointing the store at temp_dir."""
    env_vars = {
        "TEMPSTORE_STORE_DIR": str(temp_dir / "store"),
        "TEMPSTORE_TTL_SECONDS": "600",
        "TEMPSTORE_SWEEP_INTERVAL_SECONDS": "30",
        "TEMPSTORE_LOG_LEVEL": "WARNING",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str]) -> Generator[Settings, None, None]:
    """Provide a Settings instance with mock configuration."""
    from tempstore.config import get_settings

    settings = get_settings()
    settings.ensure_directories()
    yield settings
    clear_settings_cache()


@pytest.fixture
async def storage(temp_dir: Path) -> AsyncGenerator[TemporaryStorage, None]:
    """Provide an opened TemporaryStorage with a one-hour TTL."""
    service = TemporaryStorage(temp_dir / "store", ttl=timedelta(hours=1))
    await service.open()
    yield service
    await service.close()


@pytest.fixture
def gateway(storage: TemporaryStorage) -> CapabilityGateway:
    """Provide the gateway of the opened storage."""
    return storage.gateway


@pytest.fixture
def index(storage: TemporaryStorage) -> MetadataIndex:
    """Provide the metadata index of the opened storage."""
    return storage.index


@pytest.fixture
def file_store(storage: TemporaryStorage) -> FileStore:
    """Provide the file store of the opened storage."""
    return storage.files


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
