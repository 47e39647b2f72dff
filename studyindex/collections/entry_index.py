"""Per-folder surface form -> entry lookup."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from studyindex.collections.registry import CollectionRegistry
from studyindex.collections.sentences import SentenceStore, attach_sentences
from studyindex.core.models import RICHNESS_KEYS, SURFACE_KEYS, Sentence
from studyindex.core.paths import ancestor_folders, normalize_folder_path, top_folder

logger = logging.getLogger(__name__)

EntryIndex = dict[str, dict[str, Any]]


def _has_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def richness_score(entry: Any) -> int:
    """Count populated descriptive fields, plus sentence coverage.

    One point per non-blank field in :data:`RICHNESS_KEYS`, one more if any
    attached sentence has Japanese text and one more if any has English.
    """
    if not isinstance(entry, Mapping):
        return 0

    score = sum(1 for key in RICHNESS_KEYS if _has_text(entry.get(key)))

    sentences = entry.get("sentences")
    if isinstance(sentences, list) and sentences:
        has_ja = has_en = False
        for sentence in sentences:
            if isinstance(sentence, Sentence):
                ja, en = sentence.ja, sentence.en
            elif isinstance(sentence, Mapping):
                ja, en = sentence.get("ja"), sentence.get("en")
            else:
                continue
            has_ja = has_ja or _has_text(ja)
            has_en = has_en or _has_text(en)
            if has_ja and has_en:
                break
        score += int(has_ja) + int(has_en)

    return score


class FolderEntryIndex:
    """Builds and caches entry indices of loaded collections per folder."""

    def __init__(self, registry: CollectionRegistry, store: SentenceStore):
        self.registry = registry
        self.store = store
        self._cache: dict[str, EntryIndex] = {}

    def cached_folders(self) -> dict[str, int]:
        """Cached folder -> number of indexed terms."""
        return {folder: len(index) for folder, index in self._cache.items()}

    def get(self, folder: str) -> EntryIndex:
        """Cached index of a folder, built on first access."""
        folder = normalize_folder_path(folder)
        index = self._cache.get(folder)
        if index is None:
            index = self.build(folder)
        return index

    def build(self, folder: str) -> EntryIndex:
        """Index every loaded, non-virtual entry below a folder.

        When several entries share a surface form the richest one wins;
        ties keep the first indexed. Known sentences referencing an
        indexed term are then attached to its entry.

        Args:
            folder: Folder path, ``""`` for everything

        Returns:
            Surface form -> entry
        """
        folder = normalize_folder_path(folder)
        index: EntryIndex = {}
        scores: dict[str, int] = {}

        for record in self.registry.records_under(folder, include_virtual=False):
            for entry in record.entries:
                if not isinstance(entry, dict):
                    continue
                score = richness_score(entry)
                for key in SURFACE_KEYS:
                    value = entry.get(key)
                    if not isinstance(value, str):
                        continue
                    term = value.strip()
                    if not term:
                        continue
                    previous = scores.get(term)
                    if previous is None or score > previous:
                        index[term] = entry
                        scores[term] = score

        self._cache[folder] = index

        attached = 0
        if folder:
            for ref, sentences in self.store.ref_index(top_folder(folder)).items():
                entry = index.get(ref)
                if entry is not None:
                    attached += attach_sentences(entry, sentences)

        logger.debug(
            "Built entry index for %r: %d terms, %d sentences attached",
            folder,
            len(index),
            attached,
        )
        return index

    def invalidate(self, folder: str) -> None:
        """Drop the cached index of one folder."""
        self._cache.pop(normalize_folder_path(folder), None)

    def invalidate_containing(self, key: str) -> None:
        """Drop cached indices of every folder containing a key."""
        for folder in ancestor_folders(key):
            self._cache.pop(folder, None)
