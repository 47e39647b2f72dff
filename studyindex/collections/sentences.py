"""Example sentence indexing and word <-> sentence association.

Sentences found in any loaded document are given a stable source id
(``<collection key>#<position>``) and indexed per top-level folder by the
reference keys in their chunks. Vocabulary entries whose surface form
matches a reference key get the sentence attached. Every step is
deduplicated by source id, so reloading files or rebuilding indices never
attaches a sentence twice.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from studyindex.core.config import EngineConfig
from studyindex.core.models import Sentence
from studyindex.core.paths import join_path, normalize_folder_path, top_folder
from studyindex.core.singleflight import cancel_pending, single_flight
from studyindex.storage.events import ChangePublisher, ChangeSignal
from studyindex.storage.manifest import Manifest

if TYPE_CHECKING:
    from studyindex.collections.entry_index import FolderEntryIndex

logger = logging.getLogger(__name__)


def sentence_key(item: Any) -> str:
    """Deduplication key of a sentence.

    The source id when known, otherwise the ``ja``/``en`` text pair.
    Returns ``""`` when neither is available.
    """
    if isinstance(item, Sentence):
        if item.source_id:
            return item.source_id
        ja, en = item.ja, item.en
    elif isinstance(item, Mapping):
        ja = item.get("ja").strip() if isinstance(item.get("ja"), str) else ""
        en = item.get("en").strip() if isinstance(item.get("en"), str) else ""
    else:
        return ""
    return f"{ja}\n{en}" if ja or en else ""


def attach_sentences(entry: dict[str, Any], sentences: Iterable[Any]) -> int:
    """Append sentences to ``entry["sentences"]`` unless already present.

    Args:
        entry: Vocabulary entry, modified in place
        sentences: Sentence objects or raw sentence dicts

    Returns:
        Number of sentences actually added
    """
    current = entry.get("sentences")
    if not isinstance(current, list):
        current = []
        entry["sentences"] = current

    seen = {key for key in map(sentence_key, current) if key}
    added = 0
    for sentence in sentences:
        if not isinstance(sentence, (Sentence, Mapping)):
            continue
        key = sentence_key(sentence)
        if key:
            if key in seen:
                continue
            seen.add(key)
        elif any(existing is sentence for existing in current):
            continue
        current.append(sentence)
        added += 1
    return added


def attach_to_local_entries(entries: list[dict[str, Any]], sentences: list[Sentence]) -> int:
    """Attach sentences to entries of the same document by ``kanji`` match.

    Returns:
        Number of attachments made
    """
    by_kanji: dict[str, dict[str, Any]] = {}
    for entry in entries:
        term = str(entry.get("kanji") or "").strip()
        if term:
            by_kanji.setdefault(term, entry)

    added = 0
    for sentence in sentences:
        for ref in sentence.refs():
            entry = by_kanji.get(ref)
            if entry is not None:
                added += attach_sentences(entry, [sentence])
    return added


class SentenceStore:
    """Per top-folder sentence lists and reference-key indices."""

    def __init__(self):
        self._sentences: dict[str, list[Sentence]] = {}
        self._seen_sources: dict[str, set[str]] = {}
        self._refs: dict[str, dict[str, list[Sentence]]] = {}
        self._seen_refs: dict[str, dict[str, set[str]]] = {}

    def ingest(self, key: str, raw_sentences: list[Any]) -> list[Sentence]:
        """Index the sentences of one document.

        Non-object items are skipped but still occupy their position, so
        source ids stay stable when a file is reloaded.

        Args:
            key: Collection key the sentences come from
            raw_sentences: Raw sentence objects in document order

        Returns:
            Sentence objects for this document
        """
        top = top_folder(key)
        seen_sources = self._seen_sources.setdefault(top, set())
        cached = self._sentences.setdefault(top, [])
        refs = self._refs.setdefault(top, {})
        seen_refs = self._seen_refs.setdefault(top, {})

        sentences = []
        for position, raw in enumerate(raw_sentences):
            if not isinstance(raw, dict):
                continue
            sentence = Sentence(source_id=f"{key}#{position}", data=raw)
            sentences.append(sentence)

            if sentence.source_id not in seen_sources:
                seen_sources.add(sentence.source_id)
                cached.append(sentence)

            for ref in sentence.refs():
                sources = seen_refs.setdefault(ref, set())
                if sentence.source_id in sources:
                    continue
                sources.add(sentence.source_id)
                refs.setdefault(ref, []).append(sentence)

        logger.debug("Indexed %d sentences from %s", len(sentences), key)
        return sentences

    def sentences(self, top: str) -> list[Sentence]:
        """All distinct sentences seen under a top folder."""
        return list(self._sentences.get(top, []))

    def ref_index(self, top: str) -> Mapping[str, list[Sentence]]:
        """Reference key -> sentences for a top folder (read only)."""
        return self._refs.get(top, {})

    def tops(self) -> list[str]:
        return list(self._sentences)


class SentenceAssociationIndex(ChangePublisher):
    """One-shot, coalesced association build per top folder."""

    def __init__(
        self,
        store: SentenceStore,
        entry_index: FolderEntryIndex,
        manifest: Manifest,
        load_folder: Callable[[str], Awaitable[None]],
        signal: ChangeSignal,
        config: EngineConfig | None = None,
    ):
        """Initialize association index.

        Args:
            store: Sentence store filled by the loader
            entry_index: Folder entry index to rebuild after loading
            manifest: Collections manifest
            load_folder: Coroutine function loading every collection of a folder
            signal: Change signal
            config: Engine configuration
        """
        super().__init__(signal)
        self.store = store
        self.entry_index = entry_index
        self.manifest = manifest
        self.load_folder = load_folder
        self.config = config or EngineConfig()
        self._finalized: set[str] = set()
        self._pending: dict[str, asyncio.Task] = {}

    def is_finalized(self, top: str) -> bool:
        return normalize_folder_path(top) in self._finalized

    def is_building(self, top: str) -> bool:
        return normalize_folder_path(top) in self._pending

    async def cancel_in_flight(self) -> None:
        """Cancel association builds still in flight."""
        await cancel_pending(self._pending)

    @property
    def finalized(self) -> list[str]:
        return sorted(self._finalized)

    def areas(self, top: str) -> list[str]:
        """Folders to load before associating a top folder."""
        areas = [
            join_path(top, area)
            for area in self.config.association_areas
            if self.manifest.has_any_under(join_path(top, area))
        ]
        return areas or [top]

    async def ensure_built(self, top: str, *, force: bool = False) -> None:
        """Build the association for a top folder once.

        Args:
            top: Top-level folder name
            force: Rebuild even if already finalized
        """
        top = normalize_folder_path(top)
        if not top:
            return
        if not force and top in self._finalized:
            return

        if force and top in self._pending:
            # Data may have changed after the running build started
            await asyncio.shield(self._pending[top])

        await single_flight(top, self._pending, lambda: self._build(top))

    async def _build(self, top: str) -> None:
        try:
            for folder in self.areas(top):
                await self.load_folder(folder)

            self.entry_index.invalidate(top)
            index = self.entry_index.get(top)
            self._finalized.add(top)
            logger.info(
                "Associated sentences for %r: %d terms, %d reference keys",
                top,
                len(index),
                len(self.store.ref_index(top)),
            )
            self._emit(f"associations built for {top}")
        except Exception:
            logger.warning("Association build for %r failed", top, exc_info=True)
