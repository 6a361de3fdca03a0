"""
Persistent image cache.

Disk-backed, content-addressable cache for remotely fetched images with
time-based expiry and size-bounded eviction.

Example:
    >>> import asyncio
    >>> from imgcache import get_cached_image
    >>> uri = asyncio.run(get_cached_image("https://cdn.example.com/cover.jpg"))
    >>> # None means "render the remote URL"
"""

__version__ = "0.1.0"

from imgcache.api import (
    clear_image_cache,
    get_cache_service,
    get_cache_stats,
    get_cached_image,
    reset_cache_service,
    resolve_image_source,
)
from imgcache.cache.service import CacheService
from imgcache.types import CacheEntry, CacheStats

__all__ = [
    "__version__",
    "CacheEntry",
    "CacheService",
    "CacheStats",
    "clear_image_cache",
    "get_cache_service",
    "get_cache_stats",
    "get_cached_image",
    "reset_cache_service",
    "resolve_image_source",
]
