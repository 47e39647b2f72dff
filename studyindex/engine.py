"""The collection engine: one object owning all index and cache state.

Typical use::

    async with CollectionEngine.from_source("collections/") as engine:
        record = await engine.load_collection("japanese/words/verbs.json")
        listing = engine.list_collection_dir("japanese")

The host subscribes to change notifications and re-reads the getters
whenever one fires.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

import msgspec

from studyindex.collections.controller import ActiveCollectionController, Route
from studyindex.collections.entry_index import FolderEntryIndex
from studyindex.collections.filters import ProgressLookup
from studyindex.collections.loader import CollectionLoader
from studyindex.collections.metadata import FolderMetadataResolver
from studyindex.collections.registry import CollectionRegistry
from studyindex.collections.sentences import SentenceAssociationIndex, SentenceStore
from studyindex.collections.sets import CollectionSetResolver, is_sets_dir
from studyindex.collections.tree import DirListing, FileItem, FolderItem, PathTree
from studyindex.core.config import EngineConfig
from studyindex.core.exceptions import FetchError, ManifestError, StudyIndexError
from studyindex.core.models import CollectionRecord, CollectionSetFile, FolderMetadata
from studyindex.core.paths import (
    dirname,
    join_path,
    normalize_folder_path,
    title_from_filename,
)
from studyindex.core.tasks import BackgroundTasks
from studyindex.storage.events import ChangeHandler, ChangePublisher, ChangeSignal
from studyindex.storage.fetchers import Fetcher, open_fetcher
from studyindex.storage.manifest import Manifest, ManifestItem

logger = logging.getLogger(__name__)


class EngineStats(msgspec.Struct, frozen=True, kw_only=True):
    """Snapshot of the engine's caches."""

    available: int = 0
    loaded: int = 0
    virtual: int = 0
    pending_loads: int = 0
    metadata_folders: int = 0
    set_files: int = 0
    sentences: dict[str, int] = msgspec.field(default_factory=dict)
    ref_keys: dict[str, int] = msgspec.field(default_factory=dict)
    entry_indices: dict[str, int] = msgspec.field(default_factory=dict)
    associated: list[str] = msgspec.field(default_factory=list)
    background_tasks: int = 0

    def to_summary(self) -> str:
        """Generate human-readable summary.

        Returns:
            Summary string
        """
        lines = [
            f"Collections: {self.loaded} loaded of {self.available} available",
            f"Virtual collections: {self.virtual}",
            f"Pending loads: {self.pending_loads}",
            f"Folder metadata cached: {self.metadata_folders}",
            f"Collection set files: {self.set_files}",
        ]

        if self.sentences:
            lines.append("\nSentences:")
            for top, count in sorted(self.sentences.items()):
                refs = self.ref_keys.get(top, 0)
                status = "associated" if top in self.associated else "pending"
                lines.append(f"  {top or '(root)'}: {count} sentences, {refs} ref keys ({status})")

        if self.entry_indices:
            lines.append("\nEntry Indices:")
            for folder, terms in sorted(self.entry_indices.items()):
                lines.append(f"  {folder or '(root)'}: {terms} terms")

        return "\n".join(lines)


class CollectionEngine(ChangePublisher):
    """Discovers, loads and cross-references JSON study collections."""

    def __init__(
        self,
        fetcher: Fetcher,
        *,
        config: EngineConfig | None = None,
        progress_lookup: ProgressLookup | None = None,
    ):
        """Initialize engine.

        Call :meth:`start` (or use ``async with``) before anything else.

        Args:
            fetcher: Source of the manifest and collection files
            config: Engine configuration
            progress_lookup: Study key -> progress record, for
                ``kanji_progress.*`` filter clauses
        """
        super().__init__(ChangeSignal())
        self.fetcher = fetcher
        self.config = config or EngineConfig()
        self.tasks = BackgroundTasks()
        self._progress_lookup = progress_lookup

        self.manifest: Manifest | None = None
        self.tree: PathTree | None = None
        self._registry: CollectionRegistry | None = None
        self._metadata: FolderMetadataResolver | None = None
        self._store: SentenceStore | None = None
        self._entry_index: FolderEntryIndex | None = None
        self._loader: CollectionLoader | None = None
        self._sets: CollectionSetResolver | None = None
        self._associations: SentenceAssociationIndex | None = None
        self._controller: ActiveCollectionController | None = None

    @classmethod
    def from_source(
        cls,
        source: str | Path,
        *,
        config: EngineConfig | None = None,
        progress_lookup: ProgressLookup | None = None,
    ) -> CollectionEngine:
        """Create an engine for a URL or a local collections directory."""
        config = config or EngineConfig()
        return cls(
            open_fetcher(source, timeout=config.http_timeout),
            config=config,
            progress_lookup=progress_lookup,
        )

    async def __aenter__(self) -> CollectionEngine:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    @property
    def started(self) -> bool:
        return self.manifest is not None

    async def start(self) -> None:
        """Read the manifest and set up all components.

        Raises:
            ManifestError: If the manifest is missing or unreadable
        """
        path = self.config.manifest_path
        try:
            response = await self.fetcher.fetch(path)
        except FetchError as e:
            raise ManifestError(path, str(e)) from e
        if not response.ok:
            raise ManifestError(path, f"status {response.status}")

        self._wire(Manifest.from_text(response.text, path))
        logger.info(
            "Loaded collections manifest: %d collections in %d top-level folders",
            len(self.manifest),
            len(self.manifest.top_folders()),
        )
        self._emit("manifest loaded")

        if self.config.prefetch:
            self.prefetch_all()

    def _wire(self, manifest: Manifest) -> None:
        config = self.config
        self.manifest = manifest
        self.tree = PathTree.from_paths(manifest.paths)
        self._registry = CollectionRegistry(manifest.order_of)
        self._metadata = FolderMetadataResolver(
            self.fetcher, manifest.folder_metadata, config
        )
        self._store = SentenceStore()
        self._entry_index = FolderEntryIndex(self._registry, self._store)
        self._loader = CollectionLoader(
            self.fetcher,
            manifest,
            self._registry,
            self._metadata,
            self._store,
            self._entry_index,
            self.signal,
            self.tasks,
            config,
        )
        self._sets = CollectionSetResolver(
            self.fetcher,
            manifest,
            self._registry,
            self._metadata,
            self._entry_index,
            self.signal,
            self.tasks,
            config,
            self._progress_lookup,
        )
        self._associations = SentenceAssociationIndex(
            self._store,
            self._entry_index,
            manifest,
            self._loader.ensure_loaded_in_folder,
            self.signal,
            config,
        )
        self._controller = ActiveCollectionController(
            self._registry, self._loader, self._associations, self.signal, self.tasks
        )

        self._loader.set_resolver = self._sets
        self._loader.associations = self._associations
        self._sets.loader = self._loader

    def _require(self) -> Manifest:
        if self.manifest is None:
            raise StudyIndexError("Collection engine is not started")
        return self.manifest

    # Collections

    @property
    def collections(self) -> list[CollectionRecord]:
        """Loaded collections in manifest order, virtual ones last."""
        self._require()
        return self._registry.records

    def available_collections(self) -> list[ManifestItem]:
        """Display hints for every manifest path, loaded or not."""
        return list(self._require().items)

    def get_collection(self, key: str) -> CollectionRecord | None:
        """Loaded record for a key, without loading."""
        self._require()
        return self._registry.get(key)

    async def load_collection(self, key: str) -> CollectionRecord:
        """Load a collection (or open a virtual one) by key.

        Raises:
            LoadError: If the collection cannot be loaded
        """
        self._require()
        return await self._loader.load(key)

    def prefetch_folder(
        self, folder: str, *, notify: bool = False, exclude_collection_sets: bool = True
    ) -> asyncio.Task:
        """Load every collection below a folder in the background."""
        self._require()
        return self._loader.prefetch_folder(
            folder, notify=notify, exclude_collection_sets=exclude_collection_sets
        )

    def prefetch_all(self) -> None:
        """Prefetch every collection and each top folder's set declaration."""
        manifest = self._require()
        self._loader.prefetch_folder("", notify=True)
        for top in manifest.top_folders():
            if self._sets.has_sets_file(top):
                self.tasks.spawn(self._prefetch_sets(top), name=f"sets:{top}")

    async def _prefetch_sets(self, folder: str) -> None:
        try:
            await self._sets.load_sets(folder)
        except StudyIndexError as e:
            logger.warning("Prefetch of collection sets for %r failed: %s", folder, e)

    # Directory listing

    def list_collection_dir(self, dir_path: str) -> DirListing:
        """Immediate children of a folder, for browsing.

        Args:
            dir_path: Folder path; a ``__collectionSets`` path lists the
                folder's cached collection sets

        Returns:
            Listing with folders and files sorted by label
        """
        self._require()
        folder = normalize_folder_path(dir_path)
        parent = dirname(folder) if folder else None
        sets_dirname = self.config.collection_sets_dirname

        if is_sets_dir(folder, sets_dirname):
            base = dirname(folder)
            set_file = self._sets.cached(base)
            files = []
            for item in set_file.sets if set_file else []:
                key = self._sets.virtual_key(base, item.id)
                files.append(
                    FileItem(
                        filename=item.id,
                        key=key,
                        label=item.label or title_from_filename(item.id),
                        loaded=key in self._registry,
                    )
                )
            files.sort(key=lambda f: f.label.casefold())
            return DirListing(dir=folder, parent_dir=base, files=files)

        node = self.tree.find(folder)
        if node is None:
            return DirListing(dir=folder, parent_dir=parent)

        folders = [
            FolderItem(name=child.name, path=child.path, label=child.name)
            for child in node.dirs.values()
        ]
        files = []
        for filename, key in node.files.items():
            if filename == self.config.collection_sets_file:
                folders.append(
                    FolderItem(
                        name=sets_dirname,
                        path=join_path(folder, sets_dirname),
                        label=self.config.collection_sets_label,
                        virtual=True,
                    )
                )
                continue
            record = self._registry.get(key)
            label = record.name if record is not None and record.name else None
            files.append(
                FileItem(
                    filename=filename,
                    key=key,
                    label=label or title_from_filename(filename),
                    loaded=record is not None,
                )
            )

        folders.sort(key=lambda f: f.label.casefold())
        files.sort(key=lambda f: f.label.casefold())
        return DirListing(dir=folder, parent_dir=parent, folders=folders, files=files)

    # Metadata and sets

    async def get_inherited_folder_metadata(self, target: str | None) -> FolderMetadata | None:
        """Effective folder metadata for a collection key or folder path.

        Virtual keys resolve against their base folder, collection keys
        against their containing folder, anything else is taken as a folder.
        """
        manifest = self._require()
        text = str(target or "").strip()
        if not text:
            return None

        virtual = self._sets.parse_key(text)
        if virtual is not None:
            folder = virtual[0]
        elif text in manifest or text.endswith(".json"):
            folder = dirname(text)
        else:
            folder = normalize_folder_path(text)
        return await self._metadata.resolve(folder)

    async def load_collection_sets(self, folder: str) -> CollectionSetFile | None:
        """Load a folder's collection-set declaration.

        Raises:
            LoadError: If the declaration exists but cannot be loaded
        """
        self._require()
        return await self._sets.load_sets(folder)

    def cached_collection_sets(self, folder: str) -> CollectionSetFile | None:
        """Already loaded collection-set declaration, without fetching."""
        self._require()
        return self._sets.cached(folder)

    async def resolve_collection_set(
        self, base_folder: str, set_id: str, *, wait: bool = False
    ) -> CollectionRecord:
        """Open the virtual collection of a set.

        Args:
            base_folder: Folder declaring the set
            set_id: Set id
            wait: Also wait until the entries are resolved

        Returns:
            The virtual record, pending unless ``wait`` is set

        Raises:
            SetNotFoundError: If the folder declares no such set
        """
        self._require()
        key = self._sets.virtual_key(normalize_folder_path(base_folder), set_id)
        record = await self._loader.load(key)
        if wait:
            await self._sets.wait_resolved(key)
        return record

    def set_progress_lookup(self, lookup: ProgressLookup | None) -> None:
        """Replace the progress lookup used by filter sets resolved from now on."""
        self._progress_lookup = lookup
        if self._sets is not None:
            self._sets.progress_lookup = lookup

    async def ensure_associations(self, top: str, *, force: bool = False) -> None:
        """Build the word <-> sentence association of a top folder."""
        self._require()
        await self._associations.ensure_built(top, force=force)

    # Active collection

    @property
    def active_collection_id(self) -> str | None:
        return self._controller.active_id if self._controller else None

    @property
    def active_collection(self) -> CollectionRecord | None:
        return self._controller.active_collection if self._controller else None

    @property
    def route(self) -> Route | None:
        return self._controller.route if self._controller else None

    async def set_active_collection_id(self, collection_id: str | None) -> None:
        """Select the active collection, loading it if needed.

        Raises:
            LoadError: If it cannot be loaded; the selection is unchanged
        """
        self._require()
        await self._controller.set_active(collection_id)

    async def sync_from_route(self, route: Route | str) -> bool:
        """Activate the collection named by a hash route."""
        self._require()
        return await self._controller.sync_from_route(route)

    # Notifications and lifecycle

    def subscribe(self, handler: ChangeHandler) -> Callable[[], None]:
        """Subscribe to change notifications.

        Returns:
            Callable that removes the subscription
        """
        return self.signal.subscribe(handler)

    def stats(self) -> EngineStats:
        """Snapshot of cache and index state."""
        manifest = self._require()
        records = self._registry.records
        return EngineStats(
            available=len(manifest),
            loaded=sum(1 for r in records if not r.virtual),
            virtual=sum(1 for r in records if r.virtual),
            pending_loads=len(self._loader.pending_keys),
            metadata_folders=len(self._metadata.cached_folders),
            set_files=sum(
                1 for folder in self._sets.cached_folders if self._sets.cached(folder)
            ),
            sentences={top: len(self._store.sentences(top)) for top in self._store.tops()},
            ref_keys={top: len(self._store.ref_index(top)) for top in self._store.tops()},
            entry_indices=self._entry_index.cached_folders(),
            associated=self._associations.finalized,
            background_tasks=len(self.tasks),
        )

    async def wait_idle(self) -> None:
        """Wait for all background work (prefetch, resolution, association)."""
        await self.tasks.wait_idle()

    async def aclose(self) -> None:
        """Cancel background work and in-flight loads, then release the fetcher."""
        await self.tasks.cancel_all()
        for component in (self._associations, self._sets, self._loader, self._metadata):
            if component is not None:
                await component.cancel_in_flight()
        await self.tasks.cancel_all()
        await self.fetcher.aclose()
