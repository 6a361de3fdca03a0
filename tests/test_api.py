"""
Tests for the application-facing cache functions.
"""

from __future__ import annotations

from pathlib import Path
from typing import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest

import imgcache
from imgcache.api import get_cache_service, reset_cache_service
from imgcache.config import Settings
from imgcache.exceptions import DownloadError, DownloadErrorKind

URL = "https://img.example.com/artists/7/avatar.png"


@pytest.fixture
async def shared_service(
    mock_settings: Settings, image_bytes: bytes
) -> AsyncGenerator[AsyncMock, None]:
    """Shared service built from settings, with its downloader faked."""
    await reset_cache_service()
    service = get_cache_service()

    async def write_image(url: str, dest_path: Path) -> int:
        Path(dest_path).write_bytes(image_bytes)
        return len(image_bytes)

    with patch.object(
        service.downloader, "fetch", new_callable=AsyncMock
    ) as mock_fetch:
        mock_fetch.side_effect = write_image
        yield mock_fetch

    await reset_cache_service()


class TestPublicApi:
    """Test get_cached_image, get_cache_stats and clear_image_cache."""

    @pytest.mark.asyncio
    async def test_service_uses_settings(self, mock_settings: Settings) -> None:
        await reset_cache_service()
        service = get_cache_service()

        assert service.directory.root == mock_settings.image_dir
        assert service.index_store.db_path == mock_settings.index_db_path
        assert service.max_cache_size == mock_settings.MAX_CACHE_SIZE
        assert service.eviction_policy.low_water_ratio == 0.5
        assert get_cache_service() is service

        await reset_cache_service()

    @pytest.mark.asyncio
    async def test_get_cached_image_returns_file_uri(
        self, shared_service: AsyncMock, mock_settings: Settings
    ) -> None:
        uri = await imgcache.get_cached_image(URL)

        assert uri is not None
        assert uri.startswith("file://")
        assert uri.endswith(imgcache.cache.derive_key(URL))
        assert str(mock_settings.image_dir.resolve().as_uri()) in uri

    @pytest.mark.asyncio
    async def test_get_cached_image_none_on_failure(
        self, shared_service: AsyncMock
    ) -> None:
        shared_service.side_effect = DownloadError(
            "Image download timed out", kind=DownloadErrorKind.TIMEOUT
        )

        assert await imgcache.get_cached_image(URL) is None

    @pytest.mark.asyncio
    async def test_resolve_image_source_falls_back_to_url(
        self, shared_service: AsyncMock
    ) -> None:
        shared_service.side_effect = DownloadError(
            "Network unavailable", kind=DownloadErrorKind.NETWORK_UNAVAILABLE
        )

        assert await imgcache.resolve_image_source(URL) == URL

    @pytest.mark.asyncio
    async def test_resolve_image_source_prefers_cache(
        self, shared_service: AsyncMock
    ) -> None:
        source = await imgcache.resolve_image_source(URL)
        assert source.startswith("file://")

    @pytest.mark.asyncio
    async def test_stats_and_clear(
        self, shared_service: AsyncMock, image_bytes: bytes
    ) -> None:
        await imgcache.get_cached_image(URL)

        stats = await imgcache.get_cache_stats()
        assert stats == {
            "totalSizeBytes": len(image_bytes),
            "totalFiles": 1,
            "formattedSize": "0.00 MB",
        }

        assert await imgcache.clear_image_cache() is True
        stats = await imgcache.get_cache_stats()
        assert stats["totalFiles"] == 0
        assert stats["totalSizeBytes"] == 0

        await imgcache.get_cached_image(URL)
        assert shared_service.await_count == 2
