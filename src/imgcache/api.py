"""
Application-facing functions backed by a process-wide CacheService.

These are what an image component calls: a ``None`` from get_cached_image()
means "render the original URL".
"""

from __future__ import annotations

from typing import Any

from imgcache.cache.service import CacheService

_service: CacheService | None = None


def get_cache_service() -> CacheService:
    """Get the shared service, building it from settings on first use."""
    global _service
    if _service is None:
        _service = CacheService.from_settings()
    return _service


async def reset_cache_service() -> None:
    """Close and drop the shared service (useful for testing)."""
    global _service
    if _service is not None:
        await _service.close()
        _service = None


async def get_cached_image(url: str) -> str | None:
    """Return a ``file://`` URI for the cached image, or None to use url directly."""
    path = await get_cache_service().get(url)
    if path is None:
        return None
    return path.resolve().as_uri()


async def resolve_image_source(url: str) -> str:
    """Return the cached URI when available, otherwise the original URL."""
    return await get_cached_image(url) or url


async def get_cache_stats() -> dict[str, Any]:
    """Return totalSizeBytes, totalFiles and formattedSize for the cache."""
    stats = await get_cache_service().stats()
    return stats.to_dict()


async def clear_image_cache() -> bool:
    """Delete all cached images. Returns True on success."""
    return await get_cache_service().clear()
