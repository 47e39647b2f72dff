"""Data models for collections, folder metadata and collection sets.

Entries and raw sentence payloads are kept as plain dictionaries: they are
open documents whose fields vary per collection. Everything the engine
derives from them is modelled with msgspec structs.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

import msgspec

# Fields, in priority order, that identify an entry for indexing and for
# progress lookups.
SURFACE_KEYS: tuple[str, ...] = ("kanji", "character", "text", "word", "kana", "reading")

# Fields counted by the richness score.
RICHNESS_KEYS: tuple[str, ...] = (
    "kanji",
    "character",
    "text",
    "word",
    "reading",
    "kana",
    "meaning",
    "definition",
    "gloss",
    "type",
)


def entry_study_key(entry: Any) -> str:
    """Identity of an entry: its first populated surface field, stripped."""
    if not isinstance(entry, Mapping):
        return ""
    for key in SURFACE_KEYS:
        value = entry.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


def _text(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    return value.strip() or None


class RecordStatus(Enum):
    """Resolution state of a collection record."""

    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class FieldSpec(msgspec.Struct, frozen=True, omit_defaults=True):
    """Schema entry describing one entry field."""

    key: str
    label: str | None = None
    type: str | None = None

    @classmethod
    def from_raw(cls, raw: Any) -> FieldSpec | None:
        """Build a field spec from a JSON object, ``None`` if it has no key."""
        if not isinstance(raw, Mapping):
            return None
        key = raw.get("key")
        if key is None or str(key) == "":
            return None
        label = raw.get("label")
        type_ = raw.get("type")
        return cls(
            key=str(key),
            label=str(label) if label is not None else None,
            type=str(type_) if type_ is not None else None,
        )


def parse_fields(raw: Any) -> list[FieldSpec]:
    """Parse a JSON ``fields`` array, skipping malformed items."""
    if not isinstance(raw, list):
        return []
    fields = []
    for item in raw:
        spec = FieldSpec.from_raw(item)
        if spec is not None:
            fields.append(spec)
    return fields


class FolderMetadata(msgspec.Struct, frozen=True):
    """Field schema and category declared by a folder."""

    fields: list[FieldSpec] = []
    category: str | None = None

    @classmethod
    def from_document(cls, data: Any) -> FolderMetadata:
        """Build from a parsed ``_metadata.json`` document.

        Args:
            data: Parsed JSON object

        Returns:
            Folder metadata; ``language`` stands in for a missing category

        Raises:
            TypeError: If the document is not a JSON object
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"expected JSON object, got {type(data).__name__}")
        category = _text(data.get("category")) or _text(data.get("language"))
        return cls(fields=parse_fields(data.get("fields")), category=category)


class CollectionMetadata(msgspec.Struct, kw_only=True):
    """Resolved metadata of a collection."""

    name: str | None = None
    description: str | None = None
    category: str | None = None
    fields: list[FieldSpec] = []
    extra: dict[str, Any] = {}

    @classmethod
    def from_document(cls, raw: Any) -> CollectionMetadata:
        """Build from a document's ``metadata`` object."""
        if not isinstance(raw, Mapping):
            return cls()
        known = {"name", "description", "category", "fields"}
        return cls(
            name=_text(raw.get("name")),
            description=_text(raw.get("description")),
            category=_text(raw.get("category")),
            fields=parse_fields(raw.get("fields")),
            extra={k: v for k, v in raw.items() if k not in known},
        )

    def with_folder_metadata(self, folder: FolderMetadata) -> CollectionMetadata:
        """Merge inherited folder metadata into this metadata.

        Inherited fields come first and are only added for keys the
        collection does not declare itself. The folder category applies
        when the collection has none.
        """
        local_keys = {f.key for f in self.fields}
        merged = [f for f in folder.fields if f.key not in local_keys]
        merged.extend(self.fields)
        return msgspec.structs.replace(
            self, fields=merged, category=self.category or folder.category
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            **self.extra,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "fields": msgspec.to_builtins(self.fields),
        }


class Sentence(msgspec.Struct, frozen=True):
    """An example sentence with its stable source identity.

    ``source_id`` is ``<collection key>#<position in document>`` and is
    what deduplicates the sentence across reloads and rebuilds.
    """

    source_id: str
    data: dict[str, Any]

    def text(self, field: str) -> str:
        """Stripped string value of a payload field."""
        return _text(self.data.get(field)) or ""

    @property
    def ja(self) -> str:
        return self.text("ja")

    @property
    def en(self) -> str:
        return self.text("en")

    def refs(self) -> list[str]:
        """Reference keys collected from the sentence's chunks, in order."""
        refs = []
        chunks = self.data.get("chunks")
        if not isinstance(chunks, list):
            return refs
        for chunk in chunks:
            if not isinstance(chunk, Mapping):
                continue
            chunk_refs = chunk.get("refs")
            if not isinstance(chunk_refs, list):
                continue
            for ref in chunk_refs:
                if ref is None:
                    continue
                key = str(ref).strip()
                if key:
                    refs.append(key)
        return refs


class CollectionRecord(msgspec.Struct, kw_only=True):
    """A loaded (or virtual) collection.

    Records are owned by the engine. Virtual records start ``PENDING`` and
    are filled in place once their entries are resolved.
    """

    key: str
    entries: list[dict[str, Any]] = []
    metadata: CollectionMetadata = msgspec.field(default_factory=CollectionMetadata)
    sentences: list[Sentence] | None = None
    status: RecordStatus = RecordStatus.READY
    virtual: bool = False
    error: str | None = None

    @property
    def name(self) -> str | None:
        return self.metadata.name

    @property
    def is_ready(self) -> bool:
        return self.status is RecordStatus.READY


class CollectionSet(msgspec.Struct, frozen=True, kw_only=True):
    """A named virtual collection declared in ``_collectionSets.json``."""

    id: str
    label: str | None = None
    description: str | None = None
    kanji_filter: list[str] | None = None
    kanji: list[str] = []

    @property
    def is_filter(self) -> bool:
        """Whether the set is resolved by filter predicates."""
        return bool(self.kanji_filter)

    @classmethod
    def from_raw(cls, raw: Any) -> CollectionSet | None:
        """Build from a JSON set object, ``None`` when it has no id."""
        if not isinstance(raw, Mapping):
            return None
        set_id = str(raw.get("id") or "").strip()
        if not set_id:
            return None
        kanji_filter = raw.get("kanjiFilter")
        kanji = raw.get("kanji")
        return cls(
            id=set_id,
            label=_text(raw.get("label")),
            description=_text(raw.get("description")),
            kanji_filter=[str(f) for f in kanji_filter]
            if isinstance(kanji_filter, list)
            else None,
            kanji=[str(t) for t in kanji if t is not None]
            if isinstance(kanji, list)
            else [],
        )


class CollectionSetFile(msgspec.Struct, frozen=True):
    """Contents of a folder's collection-set declaration."""

    name: str | None = None
    version: int | float | None = None
    description: str | None = None
    sets: list[CollectionSet] = []

    @classmethod
    def from_document(cls, data: Any) -> CollectionSetFile:
        """Build from a parsed document, dropping sets without an id."""
        if not isinstance(data, Mapping):
            data = {}
        version = data.get("version")
        if isinstance(version, bool) or not isinstance(version, (int, float)):
            version = None
        raw_sets = data.get("sets")
        sets = []
        for raw in raw_sets if isinstance(raw_sets, list) else []:
            item = CollectionSet.from_raw(raw)
            if item is not None:
                sets.append(item)
        return cls(
            name=_text(data.get("name")),
            version=version,
            description=_text(data.get("description")),
            sets=sets,
        )

    def find(self, set_id: str) -> CollectionSet | None:
        """Find a set by id."""
        for item in self.sets:
            if item.id == set_id:
                return item
        return None
