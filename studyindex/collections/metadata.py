"""Folder metadata inheritance.

A folder's effective metadata is its own ``_metadata.json`` declaration,
or else the effective metadata of its parent folder. Unreadable
declarations count as absent so partially authored folders keep working.
"""

from __future__ import annotations

import asyncio
import logging

import msgspec

from studyindex.core.config import EngineConfig
from studyindex.core.exceptions import FetchError, MetadataLookupFailure
from studyindex.core.models import FolderMetadata
from studyindex.core.paths import dirname, join_path, normalize_folder_path
from studyindex.core.singleflight import cancel_pending, single_flight
from studyindex.storage.fetchers import Fetcher

logger = logging.getLogger(__name__)


class FolderMetadataResolver:
    """Resolves and caches inherited folder metadata."""

    def __init__(
        self,
        fetcher: Fetcher,
        folder_metadata_map: dict[str, str] | None = None,
        config: EngineConfig | None = None,
    ):
        """Initialize resolver.

        Args:
            fetcher: Source of metadata files
            folder_metadata_map: Folder -> metadata file map from the
                manifest; when None, well-known filenames are probed
            config: Engine configuration
        """
        self.fetcher = fetcher
        self.folder_metadata_map = folder_metadata_map
        self.config = config or EngineConfig()
        self._cache: dict[str, FolderMetadata | None] = {}
        self._pending: dict[str, asyncio.Task] = {}

    @property
    def cached_folders(self) -> list[str]:
        return list(self._cache)

    @property
    def pending_folders(self) -> list[str]:
        return list(self._pending)

    async def cancel_in_flight(self) -> None:
        await cancel_pending(self._pending)

    async def resolve(self, folder: str) -> FolderMetadata | None:
        """Get the effective metadata of a folder.

        Args:
            folder: Folder path, ``""`` for the root

        Returns:
            Nearest declared metadata, or None if no ancestor declares any
        """
        folder = normalize_folder_path(folder)
        if folder in self._cache:
            return self._cache[folder]
        return await single_flight(folder, self._pending, lambda: self._resolve(folder))

    async def _resolve(self, folder: str) -> FolderMetadata | None:
        result = await self._load_declaration(folder)
        if result is None and folder:
            result = await self.resolve(dirname(folder))
        self._cache[folder] = result
        return result

    def _declaration_paths(self, folder: str) -> list[str]:
        candidates = [join_path(folder, name) for name in self.config.metadata_filenames]
        if self.folder_metadata_map is None:
            return candidates

        rel = self.folder_metadata_map.get(folder)
        if not rel:
            # Manifests may key a metadata file by an ancestor folder
            rel = next(
                (v for v in self.folder_metadata_map.values() if v in candidates),
                None,
            )
        return [rel] if rel else []

    async def _load_declaration(self, folder: str) -> FolderMetadata | None:
        for path in self._declaration_paths(folder):
            try:
                metadata = await self._read(path)
            except MetadataLookupFailure as e:
                logger.warning("%s; falling back to parent folder", e)
                return None
            if metadata is not None:
                logger.debug("Folder %r declares metadata in %s", folder, path)
                return metadata
        return None

    async def _read(self, path: str) -> FolderMetadata | None:
        """Read one declaration; None when it is absent.

        Raises:
            MetadataLookupFailure: If the file exists but is malformed
        """
        try:
            response = await self.fetcher.fetch(path)
        except FetchError as e:
            logger.debug("Metadata fetch failed: %s", e)
            return None
        if not response.ok or not response.text.strip():
            return None

        try:
            return FolderMetadata.from_document(msgspec.json.decode(response.text))
        except (msgspec.DecodeError, TypeError) as e:
            raise MetadataLookupFailure(path, str(e)) from e
