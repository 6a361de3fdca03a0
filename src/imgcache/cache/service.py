"""
CacheService: the façade that answers "give me a local file for this URL".

Per-URL lifecycle:
    Uncached -> Downloading -> Cached
    Cached -> Expired -> Uncached   (next access past the expiry)
    Cached -> Evicted -> Uncached   (size-triggered cleanup)

Concurrency:
- One asyncio.Lock guards every load -> mutate -> save of the index. It is
  never held across a network fetch.
- Concurrent get() calls for the same key share one in-flight task, so a
  cold URL is downloaded once. Callers await the task through
  asyncio.shield(); a caller that goes away does not cancel the download.

Every cache-layer error is logged and turned into a miss (None) or False.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from imgcache.cache.directory import CacheDirectory
from imgcache.cache.downloader import Downloader
from imgcache.cache.index_store import IndexStore
from imgcache.cache.keys import derive_key
from imgcache.cache.policy import EvictionPolicy, ExpiryPolicy
from imgcache.config import Settings, get_settings
from imgcache.exceptions import DownloadError, ImageCacheError
from imgcache.logging import get_logger, log_context
from imgcache.types import CacheEntry, CacheStats, utc_now

logger = get_logger(__name__)

DEFAULT_MAX_CACHE_SIZE = 100 * 1024 * 1024


class CacheService:
    """Disk-backed image cache with expiry and size-bounded eviction."""

    def __init__(
        self,
        directory: CacheDirectory,
        index_store: IndexStore,
        downloader: Downloader,
        expiry_policy: ExpiryPolicy | None = None,
        eviction_policy: EvictionPolicy | None = None,
        max_cache_size: int = DEFAULT_MAX_CACHE_SIZE,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the service.

        Args:
            directory: Where image files live.
            index_store: Persistence for the metadata index.
            downloader: Fetches image bytes into files.
            expiry_policy: Age check; defaults to 7 days.
            eviction_policy: Size check; defaults to an 0.8 low-water mark.
            max_cache_size: Ceiling in bytes for the summed file sizes.
            clock: Source of "now", injectable for tests.
        """
        self.directory = directory
        self.index_store = index_store
        self.downloader = downloader
        self.expiry_policy = expiry_policy or ExpiryPolicy()
        self.eviction_policy = eviction_policy or EvictionPolicy()
        self.max_cache_size = max_cache_size
        self._clock = clock
        self._index_lock = asyncio.Lock()
        self._in_flight: dict[str, asyncio.Task[Path | None]] = {}

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> CacheService:
        """Build a service wired from configuration."""
        settings = settings or get_settings()
        return cls(
            directory=CacheDirectory(settings.image_dir),
            index_store=IndexStore(settings.index_db_path, settings.INDEX_STORAGE_KEY),
            downloader=Downloader(
                timeout=settings.DOWNLOAD_TIMEOUT_S,
                max_attempts=settings.DOWNLOAD_MAX_ATTEMPTS,
                user_agent=settings.USER_AGENT,
            ),
            expiry_policy=ExpiryPolicy(settings.cache_expiry),
            eviction_policy=EvictionPolicy(settings.EVICTION_LOW_WATER_RATIO),
            max_cache_size=settings.MAX_CACHE_SIZE,
        )

    async def __aenter__(self) -> CacheService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the downloader's HTTP client."""
        await self.downloader.close()

    @property
    def in_flight_count(self) -> int:
        """Number of downloads currently shared between callers."""
        return len(self._in_flight)

    async def get(self, url: str) -> Path | None:
        """Get a local file for url, downloading it on a miss.

        Args:
            url: Remote image URL.

        Returns:
            Path to the cached file, or None meaning "use the remote URL".
        """
        if not url or not url.strip():
            return None

        key = derive_key(url)
        task = self._in_flight.get(key)
        if task is None:
            with log_context(cache_key=key, operation="get"):
                task = asyncio.create_task(self._resolve(url, key))
            self._in_flight[key] = task
            task.add_done_callback(lambda t: self._forget(key, t))
        else:
            logger.debug("Joining in-flight request", cache_key=key)

        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Task[Path | None]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]

    async def _resolve(self, url: str, key: str) -> Path | None:
        try:
            cached = await self._lookup(key)
            if cached is not None:
                logger.debug("Cache hit", path=str(cached))
                return cached
            return await self._download_and_store(url, key)
        except DownloadError as e:
            logger.warning(
                "Image download failed, falling back to remote URL",
                url=url[:80],
                kind=e.kind.value,
                status_code=e.status_code,
            )
            return None
        except ImageCacheError as e:
            logger.error("Image cache unavailable, falling back to remote URL", error=str(e))
            return None

    async def _lookup(self, key: str) -> Path | None:
        """Return the cached path for key, dropping stale or dangling entries."""
        async with self._index_lock:
            index = await self.index_store.load()
            entry = index.get(key)
            if entry is None:
                return None

            if self.expiry_policy.is_expired(entry, self._clock()):
                del index[key]
                await self.index_store.save(index)
                await self._discard_file(entry.file_path)
                logger.info("Cache entry expired", cached_at=entry.cached_at.isoformat())
                return None

            path = Path(entry.file_path)
            if not await asyncio.to_thread(path.exists):
                del index[key]
                await self.index_store.save(index)
                logger.info("Cached file missing, dropping entry", path=entry.file_path)
                return None

            return path

    async def _download_and_store(self, url: str, key: str) -> Path | None:
        await self.directory.ensure_exists()
        dest_path = self.directory.path_for(key)
        bytes_written = await self.downloader.fetch(url, dest_path)

        entry = CacheEntry(
            url=url,
            file_path=str(dest_path),
            cached_at=self._clock(),
            size_bytes=bytes_written,
        )

        async with self._index_lock:
            index = await self.index_store.load()
            index[key] = entry
            await self.index_store.save(index)

            result = self.eviction_policy.maybe_evict(index, self.max_cache_size)
            if result.evicted:
                await self.index_store.save(result.index)
                for file_path in result.removed_files:
                    await self._discard_file(file_path)
                logger.info(
                    "Evicted cached images",
                    count=len(result.removed_files),
                    remaining=len(result.index),
                )

        logger.info("Cached image", url=url[:80], bytes=bytes_written)

        if entry.file_path in result.removed_files:
            logger.warning(
                "Image larger than the eviction target, not kept",
                bytes=bytes_written,
                max_cache_size=self.max_cache_size,
            )
            return None
        return dest_path

    async def _discard_file(self, file_path: str) -> None:
        # Callers save the index first; a file left behind is an orphan, not a dangling entry.
        try:
            await self.directory.remove_file(file_path)
        except ImageCacheError as e:
            logger.warning("Could not delete cached file", error=str(e))

    async def stats(self) -> CacheStats:
        """Summarize the index. Never raises; an unreadable index reads as empty."""
        index = await self.index_store.load()
        return CacheStats.from_index(index)

    async def clear(self) -> bool:
        """Delete every cached file and the persisted index.

        Returns:
            True on success, False if any step failed.
        """
        with log_context(operation="clear"):
            async with self._index_lock:
                try:
                    await self.directory.remove_all()
                    await self.index_store.delete()
                    await self.directory.ensure_exists()
                except ImageCacheError as e:
                    logger.error("Failed to clear image cache", error=str(e))
                    return False
            logger.info("Cleared image cache", path=str(self.directory.root))
            return True
