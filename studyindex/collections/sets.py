"""Collection sets: named virtual collections declared per folder.

A folder may carry a ``_collectionSets.json`` declaration. Each set in it
becomes a virtual collection addressed as
``<folder>/__collectionSets/<set id>``. Sets list either explicit terms,
looked up in the folder's entry index, or filter clauses evaluated against
every loaded entry of the top-level folder.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import msgspec

from studyindex.collections.entry_index import FolderEntryIndex
from studyindex.collections.filters import FilterQuery, ProgressLookup
from studyindex.collections.metadata import FolderMetadataResolver
from studyindex.collections.registry import CollectionRegistry
from studyindex.core.config import EngineConfig
from studyindex.core.exceptions import FetchError, LoadError, SetNotFoundError
from studyindex.core.models import (
    CollectionMetadata,
    CollectionRecord,
    CollectionSet,
    CollectionSetFile,
    FieldSpec,
    RecordStatus,
)
from studyindex.core.paths import (
    join_path,
    normalize_folder_path,
    split_path,
    title_from_filename,
    top_folder,
)
from studyindex.core.singleflight import cancel_pending, single_flight
from studyindex.core.tasks import BackgroundTasks
from studyindex.storage.events import ChangePublisher, ChangeSignal
from studyindex.storage.fetchers import Fetcher
from studyindex.storage.manifest import Manifest

if TYPE_CHECKING:
    from studyindex.collections.loader import CollectionLoader

logger = logging.getLogger(__name__)

DEFAULT_SETS_DIRNAME = "__collectionSets"


def virtual_key(base_folder: str, set_id: str, dirname: str = DEFAULT_SETS_DIRNAME) -> str:
    """Key of the virtual collection for a set."""
    return join_path(base_folder, f"{dirname}/{set_id}")


def parse_virtual_key(key: str, dirname: str = DEFAULT_SETS_DIRNAME) -> tuple[str, str] | None:
    """Split a virtual key into base folder and set id.

    Returns:
        ``(base_folder, set_id)``, or None if the key is not virtual
    """
    parts = split_path(key)
    if dirname not in parts:
        return None
    index = len(parts) - 1 - parts[::-1].index(dirname)
    if index >= len(parts) - 1:
        return None
    return "/".join(parts[:index]), parts[index + 1]


def is_sets_dir(path: str, dirname: str = DEFAULT_SETS_DIRNAME) -> bool:
    """Check whether a directory path is a virtual sets pseudo-folder."""
    folder = normalize_folder_path(path)
    return folder == dirname or folder.endswith(f"/{dirname}")


class CollectionSetResolver(ChangePublisher):
    """Loads set declarations and resolves virtual collections."""

    def __init__(
        self,
        fetcher: Fetcher,
        manifest: Manifest,
        registry: CollectionRegistry,
        metadata: FolderMetadataResolver,
        entry_index: FolderEntryIndex,
        signal: ChangeSignal,
        tasks: BackgroundTasks,
        config: EngineConfig | None = None,
        progress_lookup: ProgressLookup | None = None,
    ):
        super().__init__(signal)
        self.fetcher = fetcher
        self.manifest = manifest
        self.registry = registry
        self.metadata = metadata
        self.entry_index = entry_index
        self.tasks = tasks
        self.config = config or EngineConfig()
        self.progress_lookup = progress_lookup
        self._cache: dict[str, CollectionSetFile | None] = {}
        self._pending: dict[str, asyncio.Task] = {}
        self._resolving: dict[str, asyncio.Task] = {}

        # Wired by the engine once all components exist
        self.loader: CollectionLoader | None = None

    def parse_key(self, key: str) -> tuple[str, str] | None:
        return parse_virtual_key(key, self.config.collection_sets_dirname)

    def virtual_key(self, base_folder: str, set_id: str) -> str:
        return virtual_key(base_folder, set_id, self.config.collection_sets_dirname)

    def sets_file_path(self, folder: str) -> str:
        return join_path(folder, self.config.collection_sets_file)

    def has_sets_file(self, folder: str) -> bool:
        """Check whether the manifest lists a set declaration for a folder."""
        return self.sets_file_path(folder) in self.manifest

    @property
    def cached_folders(self) -> list[str]:
        """Folders whose declaration was looked up, with or without a result."""
        return list(self._cache)

    async def cancel_in_flight(self) -> None:
        """Cancel declaration loads still in flight."""
        await cancel_pending(self._pending)

    def cached(self, folder: str) -> CollectionSetFile | None:
        """Already loaded declaration of a folder, without fetching."""
        return self._cache.get(normalize_folder_path(folder))

    async def load_sets(self, folder: str) -> CollectionSetFile | None:
        """Load a folder's set declaration.

        Args:
            folder: Folder path

        Returns:
            Parsed declaration, or None if the folder has none

        Raises:
            LoadError: If the declaration cannot be fetched or parsed
        """
        folder = normalize_folder_path(folder)
        if folder in self._cache:
            return self._cache[folder]
        return await single_flight(folder, self._pending, lambda: self._load_sets(folder))

    async def _load_sets(self, folder: str) -> CollectionSetFile | None:
        if not self.has_sets_file(folder):
            self._cache[folder] = None
            return None

        path = self.sets_file_path(folder)
        try:
            response = await self.fetcher.fetch(path)
        except FetchError as e:
            raise LoadError(path, str(e)) from e
        if not response.ok:
            logger.debug("No collection sets for %r (status %d)", folder, response.status)
            self._cache[folder] = None
            return None
        if not response.text:
            raise LoadError(path, "empty response")

        try:
            data = msgspec.json.decode(response.text)
        except msgspec.DecodeError as e:
            raise LoadError(path, f"invalid JSON: {e}") from e

        set_file = CollectionSetFile.from_document(data)
        self._cache[folder] = set_file
        logger.debug("Loaded %d collection sets for %r", len(set_file.sets), folder)
        return set_file

    async def open(
        self, key: str, base_folder: str, set_id: str, *, notify: bool = True
    ) -> CollectionRecord:
        """Register a placeholder record for a set and resolve it in the background.

        Returns:
            The pending record; it is filled in place once resolved

        Raises:
            SetNotFoundError: If the folder declares no such set
            LoadError: If the declaration cannot be loaded
        """
        base_folder = normalize_folder_path(base_folder)
        set_file = await self.load_sets(base_folder)
        if set_file is None:
            raise SetNotFoundError(
                base_folder,
                set_id,
                f"collection sets not available for folder {base_folder or '(root)'}",
            )
        item = set_file.find(set_id)
        if item is None:
            raise SetNotFoundError(base_folder, set_id)

        record = CollectionRecord(
            key=key,
            metadata=CollectionMetadata(
                name=item.label or title_from_filename(item.id),
                description=item.description or set_file.description,
                category=top_folder(base_folder) or None,
                fields=[FieldSpec(key="kanji", label="Kanji")],
            ),
            status=RecordStatus.PENDING,
            virtual=True,
        )
        self.registry.register(record)

        task = self.tasks.spawn(
            self._resolve_record(record, base_folder, item), name=f"resolve:{key}"
        )
        self._resolving[key] = task
        task.add_done_callback(lambda _: self._resolving.pop(key, None))

        if notify:
            self._emit(f"opened {key}")
        return record

    async def wait_resolved(self, key: str) -> None:
        """Wait for the background resolution of a virtual record, if any."""
        task = self._resolving.get(key)
        if task is not None:
            await asyncio.shield(task)

    async def _resolve_record(
        self, record: CollectionRecord, base_folder: str, item: CollectionSet
    ) -> None:
        try:
            entries = await self.resolve_entries(base_folder, item)
            folder_metadata = await self.metadata.resolve(base_folder)

            record.entries = entries
            if folder_metadata is not None and folder_metadata.fields:
                record.metadata = msgspec.structs.replace(
                    record.metadata, fields=list(folder_metadata.fields)
                )
            record.status = RecordStatus.READY
            logger.info("Resolved collection set %s: %d entries", record.key, len(entries))
        except Exception as e:
            record.status = RecordStatus.FAILED
            record.error = str(e)
            logger.warning("Failed to resolve collection set %s: %s", record.key, e)
        self._emit(f"resolved {record.key}")

    async def resolve_entries(self, base_folder: str, item: CollectionSet) -> list[dict[str, Any]]:
        """Compute the entry list of a set.

        Filter sets evaluate every loaded entry of the base folder's
        top-level folder. Term sets look each term up in the base folder's
        entry index; unknown terms yield ``{"kanji": term, "text": term}``.
        """
        if self.loader is None:
            raise RuntimeError("collection set resolver is not wired to a loader")
        base_folder = normalize_folder_path(base_folder)

        if item.is_filter:
            top = top_folder(base_folder)
            await self.loader.ensure_loaded_in_folder(top)
            query = FilterQuery(item.kanji_filter or [], self.config.progress_prefix)
            return [
                entry
                for record in self.registry.records_under(top, include_virtual=False)
                for entry in record.entries
                if query.matches(entry, self.progress_lookup)
            ]

        await self.loader.ensure_loaded_in_folder(base_folder)
        self.entry_index.invalidate(base_folder)
        index = self.entry_index.get(base_folder)

        entries = []
        for raw in item.kanji:
            term = raw.strip()
            if not term:
                continue
            found = index.get(term)
            entries.append(found if found is not None else {"kanji": term, "text": term})
        return entries
