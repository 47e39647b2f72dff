"""Build the collections manifest from a directory tree.

Walks ``<root>/**/*.json`` and produces the ``index.json`` document the
engine reads at startup:

- ``folderMetadata``: folder -> its ``_metadata.json`` path
- ``collections``: one object per collection file with display name,
  description and entry count

Collection files themselves are only read, never rewritten.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any

import msgspec

from studyindex.core.config import EngineConfig
from studyindex.core.paths import dirname

logger = logging.getLogger(__name__)


class ScannedCollection(msgspec.Struct, frozen=True):
    """Facts read from one collection file."""

    path: str
    parent: str
    stem: str
    meta_name: str | None = None
    description: str | None = None
    entry_count: int | None = None

    @property
    def base_name(self) -> str:
        return self.meta_name or self.stem


def _scan(root: Path, rel: str) -> ScannedCollection:
    path = root / rel
    meta_name = description = entry_count = None
    try:
        data = msgspec.json.decode(path.read_bytes())
    except (OSError, msgspec.DecodeError) as e:
        logger.warning("Could not read %s: %s", rel, e)
        data = None

    if isinstance(data, dict):
        metadata = data.get("metadata")
        if isinstance(metadata, dict):
            if isinstance(metadata.get("name"), str):
                meta_name = metadata["name"].strip() or None
            if isinstance(metadata.get("description"), str):
                description = metadata["description"].strip() or None
        if isinstance(data.get("entries"), list):
            entry_count = len(data["entries"])

    return ScannedCollection(
        path=rel,
        parent=dirname(rel) or ".",
        stem=path.stem,
        meta_name=meta_name,
        description=description,
        entry_count=entry_count,
    )


def _has_underscore_segment(folder: str) -> bool:
    return folder != "." and any(seg.startswith("_") for seg in folder.split("/"))


def build_manifest(root: Path, config: EngineConfig | None = None) -> dict[str, Any]:
    """Scan a collections directory and build the manifest document.

    Args:
        root: Collections root directory
        config: Engine configuration for special file names

    Returns:
        Manifest document ready to be serialized
    """
    config = config or EngineConfig()
    root = Path(root)

    folder_metadata: dict[str, str] = {}
    collection_paths: list[str] = []
    for path in sorted(root.rglob("*.json")):
        if not path.is_file():
            continue
        rel = path.relative_to(root).as_posix()
        name = path.name

        if name == config.metadata_filenames[0]:
            folder_metadata[dirname(rel) or "."] = rel
            continue
        if rel == config.manifest_path:
            continue
        # Tooling files are hidden, collection sets are not
        if name.startswith("_") and name != config.collection_sets_file:
            continue
        collection_paths.append(rel)

    scanned = [_scan(root, rel) for rel in collection_paths]

    for parent in sorted({s.parent for s in scanned}):
        if _has_underscore_segment(parent):
            continue
        if parent not in folder_metadata:
            logger.warning(
                "Folder %r contains collections but no %s",
                parent,
                config.metadata_filenames[0],
            )

    name_counts = Counter((s.parent, s.base_name) for s in scanned)
    collections = []
    for s in scanned:
        display = s.base_name
        if name_counts[(s.parent, s.base_name)] > 1:
            display = f"{s.base_name} ({s.stem})"
        collections.append(
            {
                "path": s.path,
                "name": display,
                "description": s.description,
                "entries": s.entry_count,
            }
        )

    collections.sort(key=lambda c: c["path"])
    logger.info("Indexed %d collections under %s", len(collections), root)
    return {"folderMetadata": folder_metadata, "collections": collections}


def write_manifest(root: Path, config: EngineConfig | None = None) -> Path:
    """Rebuild and atomically write the manifest into ``root``.

    Returns:
        Path of the written manifest
    """
    config = config or EngineConfig()
    root = Path(root)
    manifest = build_manifest(root, config)

    path = root / config.manifest_path
    temp_path = path.with_suffix(".tmp")
    temp_path.write_text(
        json.dumps(manifest, indent=2, ensure_ascii=False), encoding="utf-8"
    )
    temp_path.replace(path)
    return path
