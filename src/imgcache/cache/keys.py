"""Cache key derivation."""

from __future__ import annotations

import hashlib


def derive_key(url: str) -> str:
    """Hash a URL into a fixed-length cache key.

    128-bit MD5 digest rendered as 32 hex characters. Used as a file name, so
    it must stay filesystem-safe.
    """
    return hashlib.md5(url.encode("utf-8")).hexdigest()
