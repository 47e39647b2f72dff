"""Fetchers that retrieve collection files by relative path.

A fetcher only distinguishes "got a response" from "could not reach the
resource". Status handling is left to the caller so that each load site
can apply its own leniency.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol

import httpx
import msgspec

from studyindex.core.exceptions import FetchError
from studyindex.core.paths import split_path

logger = logging.getLogger(__name__)


class FetchResponse(msgspec.Struct, frozen=True):
    """Status and body of a fetched resource."""

    status: int
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class Fetcher(Protocol):
    """Protocol for collection file sources."""

    async def fetch(self, path: str) -> FetchResponse:
        """Fetch a file relative to the collections root.

        Raises:
            FetchError: If the resource cannot be reached
        """
        ...

    async def aclose(self) -> None:
        """Release resources held by the fetcher."""
        ...


class HttpFetcher:
    """Fetch collection files from a web server."""

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        """Initialize with base URL.

        Args:
            base_url: URL of the collections root
            client: Optional shared client; created and owned if omitted
            timeout: Request timeout for an owned client
        """
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def fetch(self, path: str) -> FetchResponse:
        url = f"{self.base_url}/{'/'.join(split_path(path))}"
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            raise FetchError(path, str(e) or type(e).__name__) from e
        logger.debug("GET %s -> %d", url, response.status_code)
        return FetchResponse(status=response.status_code, text=response.text)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


class FileSystemFetcher:
    """Fetch collection files from a local directory."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _resolve(self, path: str) -> Path | None:
        parts = split_path(path)
        if not parts or any(part in (".", "..") for part in parts):
            return None
        return self.root.joinpath(*parts)

    async def fetch(self, path: str) -> FetchResponse:
        target = self._resolve(path)
        if target is None or not target.is_file():
            return FetchResponse(status=404)
        try:
            text = await asyncio.to_thread(target.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise FetchError(path, str(e)) from e
        return FetchResponse(status=200, text=text)

    async def aclose(self) -> None:
        pass


def open_fetcher(source: str | Path, timeout: float = 30.0) -> Fetcher:
    """Create a fetcher for a URL or a local directory."""
    text = str(source)
    if text.startswith(("http://", "https://")):
        return HttpFetcher(text, timeout=timeout)
    return FileSystemFetcher(Path(text))
