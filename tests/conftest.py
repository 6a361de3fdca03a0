"""
Pytest configuration and fixtures for image cache tests.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import AsyncGenerator, Generator
from unittest.mock import AsyncMock, patch

import pytest

from imgcache.cache.directory import CacheDirectory
from imgcache.cache.downloader import Downloader
from imgcache.cache.index_store import IndexStore
from imgcache.cache.policy import EvictionPolicy, ExpiryPolicy
from imgcache.cache.service import CacheService
from imgcache.config import Settings, clear_settings_cache

IMAGE_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 22  # 30 bytes


class FakeClock:
    """Manually advanced clock for expiry and eviction ordering."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def image_bytes() -> bytes:
    """Payload written by the fake downloader."""
    return IMAGE_BYTES


@pytest.fixture
def mock_env_vars() -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "CACHE_DIR": ".test_cache",
        "MAX_CACHE_SIZE": "1048576",
        "CACHE_EXPIRY_SECONDS": "3600",
        "EVICTION_LOW_WATER_RATIO": "0.5",
        "DOWNLOAD_TIMEOUT_S": "5",
        "DOWNLOAD_MAX_ATTEMPTS": "2",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(
    mock_env_vars: dict[str, str], temp_dir: Path
) -> Generator[Settings, None, None]:
    """Provide a Settings instance rooted in temp_dir."""
    with patch.dict(os.environ, {"CACHE_DIR": str(temp_dir / "cache")}):
        clear_settings_cache()
        from imgcache.config import get_settings

        yield get_settings()
        clear_settings_cache()


@pytest.fixture
def cache_directory(temp_dir: Path) -> CacheDirectory:
    return CacheDirectory(temp_dir / "cache" / "image_cache")


@pytest.fixture
def index_store(temp_dir: Path) -> IndexStore:
    return IndexStore(temp_dir / "cache" / "storage.db")


@pytest.fixture
def downloader() -> Generator[Downloader, None, None]:
    """Downloader whose fetch writes IMAGE_BYTES instead of hitting the network."""
    downloader = Downloader()

    async def write_image(url: str, dest_path: Path) -> int:
        Path(dest_path).write_bytes(IMAGE_BYTES)
        return len(IMAGE_BYTES)

    with patch.object(
        downloader, "fetch", new_callable=AsyncMock
    ) as mock_fetch:
        mock_fetch.side_effect = write_image
        yield downloader


@pytest.fixture
async def service(
    cache_directory: CacheDirectory,
    index_store: IndexStore,
    downloader: Downloader,
    clock: FakeClock,
) -> AsyncGenerator[CacheService, None]:
    """CacheService with a fake downloader, 1 hour expiry and a 100 byte ceiling."""
    svc = CacheService(
        directory=cache_directory,
        index_store=index_store,
        downloader=downloader,
        expiry_policy=ExpiryPolicy(timedelta(hours=1)),
        eviction_policy=EvictionPolicy(0.8),
        max_cache_size=100,
        clock=clock,
    )
    yield svc
    await svc.close()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
