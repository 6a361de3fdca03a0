"""
Custom exception hierarchy for the image cache.

All exceptions inherit from ImageCacheError, which provides optional context
for structured error handling and logging. The cache façade catches
ImageCacheError and turns it into a cache miss, so none of these ever reach
code that renders images.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ImageCacheError(Exception):
    """Base exception for all image cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(ImageCacheError):
    """Raised when configuration is invalid or missing."""

    pass


class CacheIOError(ImageCacheError):
    """Raised when a filesystem or storage operation fails.

    Context should include:
        - path: The file, directory or database involved
        - operation: What was being attempted (mkdir, unlink, save, ...)
        - error: The underlying OS error message
    """

    pass


class IndexCorruptError(ImageCacheError):
    """Raised when the persisted index blob cannot be decoded.

    Never escapes IndexStore.load(); the store recovers by starting cold.
    """

    pass


class DownloadErrorKind(str, Enum):
    """Why a download failed."""

    NETWORK_UNAVAILABLE = "network_unavailable"
    HTTP_ERROR = "http_error"
    TIMEOUT = "timeout"
    INVALID_REQUEST = "invalid_request"


class DownloadError(ImageCacheError):
    """Raised when fetching remote image bytes fails.

    Context should include:
        - url: The URL that was being fetched
        - status_code: HTTP status code for HTTP_ERROR, when a response arrived
    """

    def __init__(
        self,
        message: str,
        kind: DownloadErrorKind,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context)
        self.kind = kind
        self.status_code = status_code

    @property
    def is_transient(self) -> bool:
        """Whether retrying the same request could succeed."""
        return self.kind in (DownloadErrorKind.NETWORK_UNAVAILABLE, DownloadErrorKind.TIMEOUT)
