"""
Persistence for the cache index.

The whole index is one orjson blob stored under a single key in a small
SQLite key/value table, so every save replaces the previous version. The
store enforces no invariants; callers serialize load -> mutate -> save.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import aiosqlite
import orjson

from imgcache.exceptions import CacheIOError, IndexCorruptError
from imgcache.logging import get_logger
from imgcache.types import CacheEntry, CacheIndex

logger = get_logger(__name__)

DEFAULT_STORAGE_KEY = "imageCacheIndex"

_SCHEMA = """
    CREATE TABLE IF NOT EXISTS kv_store (
        key TEXT PRIMARY KEY,
        value BLOB NOT NULL
    )
"""


def encode_index(index: CacheIndex) -> bytes:
    """Serialize an index to its persisted blob."""
    return orjson.dumps({key: entry.to_dict() for key, entry in index.items()})


def decode_index(blob: bytes | str) -> CacheIndex:
    """Deserialize a persisted blob.

    Malformed entries are dropped; a blob that is not a JSON object at all
    raises IndexCorruptError.
    """
    try:
        raw: Any = orjson.loads(blob)
    except orjson.JSONDecodeError as e:
        raise IndexCorruptError("Index blob is not valid JSON", context={"error": str(e)}) from e

    if not isinstance(raw, dict):
        raise IndexCorruptError(
            "Index blob is not an object", context={"type": type(raw).__name__}
        )

    index: CacheIndex = {}
    for key, data in raw.items():
        try:
            index[key] = CacheEntry.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Dropping malformed index entry", key=key, error=str(e))
    return index


class IndexStore:
    """Loads and saves the cache index as a single blob.

    Each call opens its own connection so the store can be shared across
    event loops (the CLI runs one loop per command).
    """

    def __init__(self, db_path: str | Path, storage_key: str = DEFAULT_STORAGE_KEY) -> None:
        """Initialize index store.

        Args:
            db_path: SQLite database file for the key/value table.
            storage_key: Key the index blob is stored under.
        """
        self.db_path = Path(db_path)
        self.storage_key = storage_key

    async def _connect(self) -> aiosqlite.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(self.db_path)
        try:
            await db.execute(_SCHEMA)
        except aiosqlite.Error:
            await db.close()
            raise
        return db

    async def load(self) -> CacheIndex:
        """Load the persisted index.

        Returns:
            The index, or an empty one if nothing is stored or the blob is
            unreadable. Never raises.
        """
        try:
            db = await self._connect()
            try:
                async with db.execute(
                    "SELECT value FROM kv_store WHERE key = ?", (self.storage_key,)
                ) as cursor:
                    row = await cursor.fetchone()
            finally:
                await db.close()
        except (OSError, aiosqlite.Error) as e:
            logger.warning("Could not read cache index, starting cold", error=str(e))
            return {}

        if row is None:
            return {}

        try:
            return decode_index(row[0])
        except IndexCorruptError as e:
            logger.warning("Cache index corrupt, starting cold", error=str(e))
            return {}

    async def save(self, index: CacheIndex) -> None:
        """Persist the full index, overwriting the previous version.

        Raises:
            CacheIOError: If the blob cannot be written.
        """
        blob = encode_index(index)
        try:
            db = await self._connect()
            try:
                await db.execute(
                    "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
                    (self.storage_key, blob),
                )
                await db.commit()
            finally:
                await db.close()
        except (OSError, aiosqlite.Error) as e:
            raise CacheIOError(
                "Failed to save cache index",
                context={"path": str(self.db_path), "operation": "save", "error": str(e)},
            ) from e
        logger.debug("Saved cache index", entries=len(index), bytes=len(blob))

    async def delete(self) -> None:
        """Remove the persisted index blob.

        Raises:
            CacheIOError: If the row cannot be removed.
        """
        if not self.db_path.exists():
            return
        try:
            db = await self._connect()
            try:
                await db.execute("DELETE FROM kv_store WHERE key = ?", (self.storage_key,))
                await db.commit()
            finally:
                await db.close()
        except (OSError, aiosqlite.Error) as e:
            raise CacheIOError(
                "Failed to delete cache index",
                context={"path": str(self.db_path), "operation": "delete", "error": str(e)},
            ) from e
