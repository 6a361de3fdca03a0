"""
On-disk lifecycle of the image directory.

The directory is flat: one file per cached image, named by its cache key.
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

from imgcache.exceptions import CacheIOError
from imgcache.logging import get_logger

logger = get_logger(__name__)


class CacheDirectory:
    """Owns the cache root and maps keys to file paths."""

    def __init__(self, root: str | Path) -> None:
        """Initialize the directory handle. No I/O happens here.

        Args:
            root: Directory that holds cached image files.
        """
        self.root = Path(root)

    def path_for(self, key: str) -> Path:
        """Get the file path for a cache key. Pure, no I/O."""
        return self.root / key

    async def ensure_exists(self) -> None:
        """Create the cache root (and parents) if absent.

        Raises:
            CacheIOError: If the directory cannot be created.
        """
        try:
            await asyncio.to_thread(self.root.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise CacheIOError(
                "Failed to create cache directory",
                context={"path": str(self.root), "operation": "mkdir", "error": str(e)},
            ) from e

    async def remove_file(self, path: str | Path) -> bool:
        """Delete one cached file.

        Returns:
            True if a file was removed, False if it was already gone.

        Raises:
            CacheIOError: If the file exists but cannot be removed.
        """
        path = Path(path)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise CacheIOError(
                "Failed to delete cached file",
                context={"path": str(path), "operation": "unlink", "error": str(e)},
            ) from e
        logger.debug("Deleted cached file", path=str(path))
        return True

    async def remove_all(self) -> None:
        """Recursively delete the cache root. A missing root is not an error.

        Raises:
            CacheIOError: If the tree cannot be removed.
        """
        try:
            await asyncio.to_thread(shutil.rmtree, self.root)
        except FileNotFoundError:
            return
        except OSError as e:
            raise CacheIOError(
                "Failed to remove cache directory",
                context={"path": str(self.root), "operation": "rmtree", "error": str(e)},
            ) from e
