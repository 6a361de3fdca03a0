"""
Invalidation policies: time-based expiry and size-based eviction.

Both are pure. Eviction sorts the full index on every run, O(n log n); fine
for a few thousand images, not for arbitrarily large indexes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from imgcache.types import CacheEntry, CacheIndex

DEFAULT_CACHE_EXPIRY = timedelta(days=7)
DEFAULT_LOW_WATER_RATIO = 0.8


class ExpiryPolicy:
    """Decides whether an entry is too old to trust."""

    def __init__(self, expiry: timedelta = DEFAULT_CACHE_EXPIRY) -> None:
        self.expiry = expiry

    def is_expired(self, entry: CacheEntry, now: datetime) -> bool:
        return now - entry.cached_at > self.expiry


@dataclass
class EvictionResult:
    """Pruned index plus the files the caller must delete."""

    index: CacheIndex
    removed_files: list[str] = field(default_factory=list)

    @property
    def evicted(self) -> bool:
        return bool(self.removed_files)


class EvictionPolicy:
    """Oldest-first eviction with a low-water mark.

    Once the total exceeds the ceiling, entries are removed until the total
    is at most ``max_size * low_water_ratio``, so a cache sitting near its
    limit does not evict on every write.
    """

    def __init__(self, low_water_ratio: float = DEFAULT_LOW_WATER_RATIO) -> None:
        if not 0.0 < low_water_ratio <= 1.0:
            raise ValueError(f"low_water_ratio must be in (0, 1], got {low_water_ratio}")
        self.low_water_ratio = low_water_ratio

    def maybe_evict(self, index: CacheIndex, max_size: int) -> EvictionResult:
        """Select entries to evict.

        Args:
            index: Current index. Not mutated.
            max_size: Ceiling in bytes.

        Returns:
            EvictionResult with a new index and the paths of removed files.
        """
        total_size = sum(entry.size_bytes for entry in index.values())
        if total_size <= max_size:
            return EvictionResult(index=index)

        target = max_size * self.low_water_ratio
        # Key breaks timestamp ties so runs are deterministic
        ordered = sorted(index.items(), key=lambda item: (item[1].cached_at, item[0]))

        pruned = dict(index)
        removed_files: list[str] = []
        current_size = total_size
        for key, entry in ordered:
            if current_size <= target:
                break
            del pruned[key]
            removed_files.append(entry.file_path)
            current_size -= entry.size_bytes

        return EvictionResult(index=pruned, removed_files=removed_files)
