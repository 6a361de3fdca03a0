"""
Core types for the image cache.

- CacheEntry: one record per cached image (frozen, replace-or-delete)
- CacheIndex: mapping of cache key to CacheEntry
- CacheStats: aggregate size/count figures reported to callers
- Helpers for timestamps and size formatting
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

BYTES_PER_MB = 1024 * 1024


def utc_now() -> datetime:
    """Get current UTC time with timezone info."""
    return datetime.now(timezone.utc)


def format_size(size_bytes: int) -> str:
    """Render a byte count as megabytes with two decimals, e.g. ``"1.50 MB"``."""
    return f"{size_bytes / BYTES_PER_MB:.2f} MB"


@dataclass(frozen=True)
class CacheEntry:
    """Metadata for a single cached image.

    Attributes:
        url: Original remote URL (kept for bookkeeping).
        file_path: Path of the cached file on local storage.
        cached_at: When the download completed; drives expiry and eviction order.
        size_bytes: Size of the stored file, used for capacity accounting.
    """

    url: str
    file_path: str
    cached_at: datetime
    size_bytes: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted representation."""
        return {
            "url": self.url,
            "filePath": self.file_path,
            "cachedAt": self.cached_at.isoformat(),
            "size": self.size_bytes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CacheEntry:
        """Build an entry from its persisted representation.

        Raises:
            KeyError, TypeError, ValueError: If the record is malformed.
        """
        cached_at = datetime.fromisoformat(str(data["cachedAt"]).replace("Z", "+00:00"))
        if cached_at.tzinfo is None:
            cached_at = cached_at.replace(tzinfo=timezone.utc)
        return cls(
            url=str(data["url"]),
            file_path=str(data["filePath"]),
            cached_at=cached_at,
            size_bytes=int(data.get("size") or 0),
        )


CacheIndex = dict[str, CacheEntry]


@dataclass(frozen=True)
class CacheStats:
    """Aggregate figures for the cache."""

    total_size_bytes: int = 0
    total_files: int = 0

    @property
    def formatted_size(self) -> str:
        return format_size(self.total_size_bytes)

    @classmethod
    def from_index(cls, index: CacheIndex) -> CacheStats:
        return cls(
            total_size_bytes=sum(entry.size_bytes for entry in index.values()),
            total_files=len(index),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalSizeBytes": self.total_size_bytes,
            "totalFiles": self.total_files,
            "formattedSize": self.formatted_size,
        }
