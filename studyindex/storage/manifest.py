"""Collections manifest (``index.json``) parsing.

The manifest is read once at startup. It lists every collection path in
display order, optional lightweight display hints per path, and an
optional folder -> metadata file map.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import msgspec

from studyindex.core.exceptions import ManifestError
from studyindex.core.paths import basename, is_under, join_path, normalize_folder_path


class ManifestItem(msgspec.Struct, frozen=True):
    """Display hints for a collection that may not be loaded yet."""

    path: str
    name: str | None = None
    description: str | None = None
    entries: int | None = None


def normalize_index_path(path: Any) -> str:
    """Strip ``./`` and ``collections/`` prefixes from a manifest path."""
    text = str(path or "").strip()
    if text.startswith("./"):
        text = text[2:]
    if text.startswith("collections/"):
        text = text[len("collections/") :]
    return text


def build_folder_metadata_map(raw: Any) -> dict[str, str] | None:
    """Normalize the manifest's ``folderMetadata`` object.

    Bare filenames are made relative to their folder. Subpaths that are not
    already under the folder, and are neither ``../`` nor ``/`` rooted, are
    prefixed with it, so ``{"japanese": "words/_metadata.json"}`` maps to
    ``japanese/words/_metadata.json``.

    Returns:
        Folder -> metadata file path, or None when the manifest has no map
    """
    if not isinstance(raw, Mapping):
        return None

    mapping: dict[str, str] = {}
    for raw_folder, raw_file in raw.items():
        folder = normalize_folder_path(raw_folder)
        if folder == ".":
            folder = ""
        file_rel = normalize_index_path(raw_file)
        if not file_rel:
            continue

        if "/" not in file_rel:
            file_rel = join_path(folder, file_rel)
        elif folder and not (
            file_rel.startswith(f"{folder}/")
            or file_rel.startswith("../")
            or file_rel.startswith("/")
        ):
            file_rel = f"{folder}/{file_rel}"

        mapping[folder] = file_rel

    return mapping


class Manifest:
    """Immutable view of the collections manifest."""

    def __init__(
        self,
        items: list[ManifestItem],
        folder_metadata: dict[str, str] | None = None,
    ):
        self.items: list[ManifestItem] = []
        self._by_path: dict[str, ManifestItem] = {}
        for item in items:
            if item.path and item.path not in self._by_path:
                self._by_path[item.path] = item
                self.items.append(item)
        self.paths: list[str] = [item.path for item in self.items]
        self._order = {path: i for i, path in enumerate(self.paths)}
        self.folder_metadata = folder_metadata

    @classmethod
    def from_document(cls, data: Any, source: str = "index.json") -> Manifest:
        """Build from a parsed manifest document.

        Raises:
            ManifestError: If the document is not a JSON object
        """
        if not isinstance(data, Mapping):
            raise ManifestError(source, "expected a JSON object")

        raw_collections = data.get("collections")
        items = []
        for raw in raw_collections if isinstance(raw_collections, list) else []:
            if isinstance(raw, str):
                items.append(ManifestItem(path=raw))
            elif isinstance(raw, Mapping) and isinstance(raw.get("path"), str):
                entries = raw.get("entries")
                items.append(
                    ManifestItem(
                        path=raw["path"],
                        name=raw.get("name") or None,
                        description=raw.get("description") or None,
                        entries=entries
                        if isinstance(entries, int) and not isinstance(entries, bool)
                        else None,
                    )
                )

        return cls(items, build_folder_metadata_map(data.get("folderMetadata")))

    @classmethod
    def from_text(cls, text: str, source: str = "index.json") -> Manifest:
        """Parse manifest JSON text.

        Raises:
            ManifestError: If the text is empty or not valid JSON
        """
        if not text or not text.strip():
            raise ManifestError(source, "manifest is empty")
        try:
            data = msgspec.json.decode(text)
        except msgspec.DecodeError as e:
            raise ManifestError(source, f"invalid JSON: {e}") from e
        return cls.from_document(data, source)

    def __contains__(self, path: str) -> bool:
        return path in self._by_path

    def __len__(self) -> int:
        return len(self.paths)

    def item(self, path: str) -> ManifestItem:
        """Display hints for a path, empty hints for unknown paths."""
        return self._by_path.get(path) or ManifestItem(path=path)

    def order_of(self, path: str) -> int:
        """Position of a path in the manifest; unknown paths sort last."""
        return self._order.get(path, len(self._order))

    def keys_under(self, folder: str, exclude_names: tuple[str, ...] = ()) -> list[str]:
        """Manifest paths below a folder, in manifest order."""
        return [
            path
            for path in self.paths
            if is_under(path, folder) and basename(path) not in exclude_names
        ]

    def has_any_under(self, folder: str) -> bool:
        """Check whether any manifest path lives below a non-root folder."""
        folder = normalize_folder_path(folder)
        return bool(folder) and any(is_under(path, folder) for path in self.paths)

    def top_folders(self) -> list[str]:
        """Distinct first path segments of nested paths, in manifest order."""
        tops: dict[str, None] = {}
        for path in self.paths:
            if "/" in path.strip("/"):
                tops.setdefault(path.strip("/").split("/")[0], None)
        return list(tops)
