"""Collection document loading.

The loader turns manifest keys into registered :class:`CollectionRecord`
objects. Every load is single-flight per key and failed loads are never
cached, so a later call retries.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import msgspec

from studyindex.collections.entry_index import FolderEntryIndex
from studyindex.collections.metadata import FolderMetadataResolver
from studyindex.collections.registry import CollectionRegistry
from studyindex.collections.sentences import SentenceStore, attach_to_local_entries
from studyindex.core.config import EngineConfig
from studyindex.core.exceptions import FetchError, LoadError
from studyindex.core.models import CollectionMetadata, CollectionRecord, FolderMetadata
from studyindex.core.paths import (
    basename,
    dirname,
    normalize_folder_path,
    title_from_filename,
    top_folder,
)
from studyindex.core.singleflight import cancel_pending, single_flight
from studyindex.core.tasks import BackgroundTasks
from studyindex.storage.events import ChangePublisher, ChangeSignal
from studyindex.storage.fetchers import Fetcher
from studyindex.storage.manifest import Manifest

if TYPE_CHECKING:
    from studyindex.collections.sentences import SentenceAssociationIndex
    from studyindex.collections.sets import CollectionSetResolver

logger = logging.getLogger(__name__)


class CollectionLoader(ChangePublisher):
    """Loads, parses and registers collection documents."""

    def __init__(
        self,
        fetcher: Fetcher,
        manifest: Manifest,
        registry: CollectionRegistry,
        metadata: FolderMetadataResolver,
        store: SentenceStore,
        entry_index: FolderEntryIndex,
        signal: ChangeSignal,
        tasks: BackgroundTasks,
        config: EngineConfig | None = None,
    ):
        super().__init__(signal)
        self.fetcher = fetcher
        self.manifest = manifest
        self.registry = registry
        self.metadata = metadata
        self.store = store
        self.entry_index = entry_index
        self.tasks = tasks
        self.config = config or EngineConfig()
        self._pending: dict[str, asyncio.Task] = {}

        # Wired by the engine once all components exist
        self.set_resolver: CollectionSetResolver | None = None
        self.associations: SentenceAssociationIndex | None = None

    @property
    def pending_keys(self) -> list[str]:
        return list(self._pending)

    async def cancel_in_flight(self) -> None:
        """Cancel loads still in flight."""
        await cancel_pending(self._pending)

    async def load(self, key: str, *, notify: bool = True) -> CollectionRecord:
        """Load a collection by key.

        Args:
            key: Manifest path or virtual collection-set key
            notify: Emit a change notification once registered

        Returns:
            Registered record; the same object for every call

        Raises:
            LoadError: If the key is unknown or the document cannot be loaded
        """
        if not key:
            raise LoadError("", "collection key required")
        record = self.registry.get(key)
        if record is not None:
            return record
        return await single_flight(key, self._pending, lambda: self._load(key, notify))

    async def _load(self, key: str, notify: bool) -> CollectionRecord:
        if self.set_resolver is not None:
            virtual = self.set_resolver.parse_key(key)
            if virtual is not None:
                base, set_id = virtual
                return await self.set_resolver.open(key, base, set_id, notify=notify)

        if key not in self.manifest:
            raise LoadError(key, "not found in collections index")

        document = await self._fetch_document(key)
        record = await self._build_record(key, document)

        self.registry.register(record)
        self.entry_index.invalidate_containing(key)
        logger.debug("Loaded %s: %d entries", key, len(record.entries))

        if notify:
            self._emit(f"loaded {key}")

        top = top_folder(key)
        if top and self.associations is not None:
            if not (self.associations.is_finalized(top) or self.associations.is_building(top)):
                self.tasks.spawn(
                    self.associations.ensure_built(top), name=f"associate:{top}"
                )
        return record

    async def _fetch_document(self, key: str) -> dict[str, Any]:
        try:
            response = await self.fetcher.fetch(key)
        except FetchError as e:
            raise LoadError(key, str(e)) from e
        if not response.ok:
            raise LoadError(key, "request failed", status=response.status)
        if not response.text:
            raise LoadError(key, "empty response")

        try:
            data = msgspec.json.decode(response.text)
        except msgspec.DecodeError as e:
            raise LoadError(key, f"invalid JSON: {e}") from e

        if isinstance(data, list):
            # Legacy sentence-only documents are bare arrays
            return {"metadata": {}, "sentences": data}
        if not isinstance(data, dict):
            raise LoadError(key, f"expected a JSON object, got {type(data).__name__}")
        return data

    async def _build_record(self, key: str, document: dict[str, Any]) -> CollectionRecord:
        folder = dirname(key)
        folder_metadata = await self.metadata.resolve(folder) or FolderMetadata(
            category=top_folder(folder) or None
        )

        metadata = CollectionMetadata.from_document(document.get("metadata"))
        metadata = metadata.with_folder_metadata(folder_metadata)
        if not metadata.name:
            metadata = msgspec.structs.replace(
                metadata, name=title_from_filename(basename(key))
            )

        raw_entries = document.get("entries")
        entries = []
        if isinstance(raw_entries, list):
            entries = [e for e in raw_entries if isinstance(e, dict)]

        raw_sentences = document.get("sentences")
        if not isinstance(raw_sentences, list):
            raw_sentences = None
            if isinstance(raw_entries, list) and self.config.examples_marker in key:
                # Example files keep sentences under "entries"
                raw_sentences = list(raw_entries)
                entries = []

        sentences = None
        if raw_sentences is not None:
            sentences = self.store.ingest(key, raw_sentences)
            if entries:
                attach_to_local_entries(entries, sentences)

        return CollectionRecord(
            key=key, entries=entries, metadata=metadata, sentences=sentences
        )

    async def _load_quietly(self, key: str) -> CollectionRecord | None:
        try:
            return await self.load(key, notify=False)
        except Exception as e:
            logger.warning("Background load of %s failed: %s", key, e)
            return None

    def unloaded_keys(self, folder: str, *, exclude_collection_sets: bool = True) -> list[str]:
        """Manifest keys below a folder that are not registered yet."""
        exclude = (self.config.collection_sets_file,) if exclude_collection_sets else ()
        return [
            key
            for key in self.manifest.keys_under(normalize_folder_path(folder), exclude)
            if key not in self.registry
        ]

    async def ensure_loaded_in_folder(
        self, folder: str, *, exclude_collection_sets: bool = True
    ) -> int:
        """Load every collection below a folder without notifying.

        Individual failures are logged and skipped.

        Returns:
            Number of collections loaded by this call
        """
        keys = self.unloaded_keys(folder, exclude_collection_sets=exclude_collection_sets)
        if not keys:
            return 0
        results = await asyncio.gather(*(self._load_quietly(key) for key in keys))
        loaded = sum(1 for record in results if record is not None)
        logger.debug("Loaded %d/%d collections under %r", loaded, len(keys), folder)
        return loaded

    def prefetch_folder(
        self,
        folder: str,
        *,
        notify: bool = False,
        exclude_collection_sets: bool = True,
    ) -> asyncio.Task:
        """Start loading a folder in the background.

        Args:
            folder: Folder path, ``""`` for everything
            notify: Emit one change notification when done, if anything loaded
            exclude_collection_sets: Skip collection-set declaration files

        Returns:
            The background task
        """

        async def run() -> int:
            loaded = await self.ensure_loaded_in_folder(
                folder, exclude_collection_sets=exclude_collection_sets
            )
            if loaded and notify:
                self._emit(f"prefetched {folder or '(root)'}")
            return loaded

        return self.tasks.spawn(run(), name=f"prefetch:{folder}")
