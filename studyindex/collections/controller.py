"""Active collection selection and hash-route synchronization."""

from __future__ import annotations

import logging
from urllib.parse import parse_qsl, urlencode

import msgspec

from studyindex.collections.loader import CollectionLoader
from studyindex.collections.registry import CollectionRegistry
from studyindex.collections.sentences import SentenceAssociationIndex
from studyindex.core.exceptions import LoadError
from studyindex.core.models import CollectionRecord
from studyindex.core.paths import top_folder
from studyindex.core.tasks import BackgroundTasks
from studyindex.storage.events import ChangePublisher, ChangeSignal

logger = logging.getLogger(__name__)

COLLECTION_PARAM = "collection"


class Route(msgspec.Struct, frozen=True):
    """A parsed ``#/path?query`` hash route."""

    path: str = "/"
    query: dict[str, str] = {}

    @property
    def collection(self) -> str | None:
        return self.query.get(COLLECTION_PARAM) or None

    def with_collection(self, collection_id: str | None) -> Route:
        """Copy with the ``collection`` parameter set, or removed for None."""
        query = dict(self.query)
        if collection_id:
            query[COLLECTION_PARAM] = collection_id
        else:
            query.pop(COLLECTION_PARAM, None)
        return Route(path=self.path, query=query)


def parse_route(hash_route: str | None) -> Route:
    """Parse a hash route; anything not starting with ``/`` maps to ``/``."""
    raw = str(hash_route or "")
    if raw.startswith("#"):
        raw = raw[1:]
    if not raw.startswith("/"):
        return Route()
    path, _, search = raw.partition("?")
    return Route(path=path, query=dict(parse_qsl(search, keep_blank_values=True)))


def build_route(route: Route) -> str:
    """Format a route back into ``#/path?query`` form."""
    search = urlencode(route.query)
    return f"#{route.path or '/'}?{search}" if search else f"#{route.path or '/'}"


class ActiveCollectionController(ChangePublisher):
    """Tracks which collection the host is showing."""

    def __init__(
        self,
        registry: CollectionRegistry,
        loader: CollectionLoader,
        associations: SentenceAssociationIndex,
        signal: ChangeSignal,
        tasks: BackgroundTasks,
    ):
        super().__init__(signal)
        self.registry = registry
        self.loader = loader
        self.associations = associations
        self.tasks = tasks
        self.active_id: str | None = None
        self.route: Route | None = None

    @property
    def active_collection(self) -> CollectionRecord | None:
        return self.registry.get(self.active_id)

    async def set_active(self, collection_id: str | None) -> None:
        """Make a collection active, loading it first if needed.

        Args:
            collection_id: Collection key, or None to clear

        Raises:
            LoadError: If the collection cannot be loaded; the previous
                selection is kept
        """
        next_id = collection_id or None
        changed = next_id != self.active_id

        if changed and next_id and next_id not in self.registry:
            try:
                await self.loader.load(next_id)
            except LoadError as e:
                logger.warning("Could not activate %s: %s", next_id, e)
                raise

        top = top_folder(next_id)
        if top and not self.associations.is_finalized(top):
            self.tasks.spawn(self.associations.ensure_built(top), name=f"associate:{top}")

        if changed:
            self.active_id = next_id
        if self.route is not None:
            self.route = self.route.with_collection(next_id)
        if changed:
            logger.debug("Active collection: %s", next_id)
            self._emit(f"active collection {next_id}")

    async def sync_from_route(self, route: Route | str) -> bool:
        """Activate the collection named by a route.

        Load failures are logged and leave the selection unchanged.

        Returns:
            True if the active collection changed
        """
        if isinstance(route, str):
            route = parse_route(route)
        self.route = route
        wanted = route.collection
        if not wanted or wanted == self.active_id:
            return False
        try:
            await self.set_active(wanted)
        except LoadError:
            return False
        return True
