"""
Image downloader.

Streams a URL into a temporary sibling of the destination and renames it into
place only after the whole body arrived, so a partial download never sits at
the path the index points to.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from imgcache.exceptions import CacheIOError, DownloadError, DownloadErrorKind
from imgcache.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT_S = 30.0
DEFAULT_MAX_ATTEMPTS = 3
CHUNK_SIZE = 64 * 1024


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, DownloadError) and exc.is_transient


def _log_retry(retry_state: RetryCallState) -> None:
    url = retry_state.args[0] if retry_state.args else ""
    logger.debug(
        "Retrying download",
        url=str(url)[:80],
        attempt=retry_state.attempt_number + 1,
    )


class Downloader:
    """Fetches image bytes over HTTP into local files."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_S,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        user_agent: str | None = None,
        backoff_multiplier: float = 0.5,
    ) -> None:
        """Initialize downloader.

        Args:
            client: HTTP client to use. Created lazily when omitted; a client
                passed in is not closed by close().
            timeout: Per-request timeout in seconds.
            max_attempts: Attempts for transient failures (timeouts, network).
            user_agent: User-Agent header for requests.
            backoff_multiplier: Exponential backoff multiplier between attempts.
        """
        self._client = client
        self._owns_client = client is None
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.user_agent = user_agent
        self.backoff_multiplier = backoff_multiplier

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client with proper headers."""
        if self._client is None:
            headers = {"Accept": "image/*,*/*;q=0.8"}
            if self.user_agent:
                headers["User-Agent"] = self.user_agent
            self._client = httpx.AsyncClient(
                headers=headers,
                timeout=self.timeout,
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this downloader created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str, dest_path: str | Path) -> int:
        """Download url into dest_path, retrying transient failures.

        Args:
            url: Remote image URL.
            dest_path: Final location of the file.

        Returns:
            Number of bytes written.

        Raises:
            DownloadError: If the download fails after retries.
            CacheIOError: If the file cannot be written.
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_multiplier, max=10),
            before_sleep=_log_retry,
            reraise=True,
        )
        return await retrying(self._fetch_once, url, Path(dest_path))

    async def _fetch_once(self, url: str, dest_path: Path) -> int:
        client = await self._get_client()
        try:
            fd, tmp_name = tempfile.mkstemp(dir=str(dest_path.parent), prefix=".", suffix=".part")
        except OSError as e:
            raise CacheIOError(
                "Failed to create download file",
                context={"path": str(dest_path), "operation": "mkstemp", "error": str(e)},
            ) from e
        tmp_path = Path(tmp_name)
        try:
            bytes_written = 0
            with os.fdopen(fd, "wb") as f:
                async with client.stream("GET", url) as response:
                    if response.status_code != 200:
                        raise DownloadError(
                            f"Image request returned HTTP {response.status_code}",
                            kind=DownloadErrorKind.HTTP_ERROR,
                            status_code=response.status_code,
                            context={"url": url, "status_code": response.status_code},
                        )
                    async for chunk in response.aiter_bytes(CHUNK_SIZE):
                        f.write(chunk)
                        bytes_written += len(chunk)
            tmp_path.replace(dest_path)
        except httpx.TimeoutException as e:
            raise DownloadError(
                "Image download timed out",
                kind=DownloadErrorKind.TIMEOUT,
                context={"url": url, "error": str(e)},
            ) from e
        except (httpx.UnsupportedProtocol, httpx.InvalidURL) as e:
            raise DownloadError(
                "Image URL cannot be requested",
                kind=DownloadErrorKind.INVALID_REQUEST,
                context={"url": url, "error": str(e)},
            ) from e
        except httpx.TransportError as e:
            raise DownloadError(
                "Network unavailable",
                kind=DownloadErrorKind.NETWORK_UNAVAILABLE,
                context={"url": url, "error": str(e)},
            ) from e
        except httpx.HTTPError as e:
            # Redirect loops and undecodable bodies.
            raise DownloadError(
                "Image response could not be read",
                kind=DownloadErrorKind.HTTP_ERROR,
                context={"url": url, "error": str(e)},
            ) from e
        except OSError as e:
            raise CacheIOError(
                "Failed to write downloaded image",
                context={"path": str(dest_path), "operation": "write", "error": str(e)},
            ) from e
        finally:
            tmp_path.unlink(missing_ok=True)

        logger.debug("Downloaded image", url=url[:80], bytes=bytes_written)
        return bytes_written
