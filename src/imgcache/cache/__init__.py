"""
Image cache engine.

- keys: URL -> cache key
- directory: image directory lifecycle and key -> path mapping
- index_store: persisted metadata index (single blob)
- downloader: HTTP fetch into local files
- policy: expiry and eviction
- service: the CacheService façade tying them together
"""

from imgcache.cache.directory import CacheDirectory
from imgcache.cache.downloader import Downloader
from imgcache.cache.index_store import IndexStore
from imgcache.cache.keys import derive_key
from imgcache.cache.policy import EvictionPolicy, EvictionResult, ExpiryPolicy
from imgcache.cache.service import CacheService

__all__ = [
    "CacheDirectory",
    "CacheService",
    "Downloader",
    "EvictionPolicy",
    "EvictionResult",
    "ExpiryPolicy",
    "IndexStore",
    "derive_key",
]
