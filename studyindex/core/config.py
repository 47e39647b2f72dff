"""Engine configuration."""

from __future__ import annotations

from typing import Any

import msgspec


class EngineConfig(msgspec.Struct, frozen=True, kw_only=True):
    """Tunable names and behaviour of a collection engine.

    The defaults match the layout produced by ``studyindex rebuild-index``.
    """

    manifest_path: str = "index.json"
    collection_sets_file: str = "_collectionSets.json"
    collection_sets_dirname: str = "__collectionSets"
    collection_sets_label: str = "tags"
    metadata_filenames: tuple[str, ...] = ("_metadata.json", "metadata.json")
    examples_marker: str = "/examples/"
    association_areas: tuple[str, ...] = ("words", "sentences", "examples")
    progress_prefix: str = "kanji_progress."
    http_timeout: float = 30.0
    prefetch: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> EngineConfig:
        """Build from a configuration mapping, ignoring unknown keys.

        Raises:
            ValueError: If a known key has a value of the wrong type
        """
        if not data:
            return cls()
        known = {k: v for k, v in data.items() if k in cls.__struct_fields__}
        try:
            return msgspec.convert(known, cls)
        except msgspec.ValidationError as e:
            raise ValueError(f"Invalid engine configuration: {e}") from e
