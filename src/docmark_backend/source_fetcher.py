"""Download source assets that clients uploaded directly to storage."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import httpx

from .errors import MalformedRequestError, StorageError

logger = logging.getLogger(__name__)


class SourceFetcher:
    """
    Fetches a source asset by URL.

    Args:
        client: Shared httpx client (created per process, closed on shutdown)
        max_bytes: Largest accepted download
        allowed_prefixes: When non-empty, URLs must start with one of these
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        max_bytes: int = 50 * 1024 * 1024,
        allowed_prefixes: Sequence[str] = (),
        timeout: float = 30.0,
    ) -> None:
        self.client = client or httpx.Client(timeout=timeout, follow_redirects=True, max_redirects=5)
        self.max_bytes = max_bytes
        self.allowed_prefixes = tuple(allowed_prefixes)

    def _check_url(self, url: str) -> None:
        if not url.startswith(("http://", "https://")):
            raise MalformedRequestError("blobUrl must be an http(s) URL")
        if self.allowed_prefixes and not url.startswith(self.allowed_prefixes):
            logger.warning(f"Rejected source URL outside allowed prefixes: {url!r}")
            raise MalformedRequestError("blobUrl is not an allowed source location")

    def fetch(self, url: str) -> bytes:
        """
        Download ``url`` and return its body.

        Raises:
            MalformedRequestError: For disallowed URLs or oversized sources
            StorageError: If the download fails
        """
        self._check_url(url)
        logger.info(f"Fetching source asset {url!r}")
        try:
            with self.client.stream("GET", url) as response:
                response.raise_for_status()
                chunks = []
                received = 0
                for chunk in response.iter_bytes():
                    received += len(chunk)
                    if received > self.max_bytes:
                        raise MalformedRequestError(f"Source file exceeds {self.max_bytes} bytes")
                    chunks.append(chunk)
        except httpx.TimeoutException as e:
            logger.error(f"Source fetch timed out: {url!r}")
            raise StorageError("Failed to download uploaded file: timed out") from e
        except httpx.HTTPStatusError as e:
            logger.error(f"Source fetch HTTP {e.response.status_code}: {url!r}")
            raise StorageError(f"Failed to download uploaded file (HTTP {e.response.status_code})") from e
        except httpx.HTTPError as e:
            logger.error(f"Source fetch error: {e}")
            raise StorageError(f"Failed to download uploaded file: {e}") from e
        return b"".join(chunks)

    def close(self) -> None:
        self.client.close()
