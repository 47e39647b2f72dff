"""Core types and helpers shared by the engine components."""

from .config import EngineConfig
from .exceptions import (
    FetchError,
    LoadError,
    ManifestError,
    MetadataLookupFailure,
    SetNotFoundError,
    StudyIndexError,
)
from .models import (
    CollectionMetadata,
    CollectionRecord,
    CollectionSet,
    CollectionSetFile,
    FieldSpec,
    FolderMetadata,
    RecordStatus,
    Sentence,
)
from .singleflight import single_flight

__all__ = [
    # Config
    "EngineConfig",
    # Errors
    "StudyIndexError",
    "FetchError",
    "ManifestError",
    "LoadError",
    "MetadataLookupFailure",
    "SetNotFoundError",
    # Models
    "CollectionMetadata",
    "CollectionRecord",
    "CollectionSet",
    "CollectionSetFile",
    "FieldSpec",
    "FolderMetadata",
    "RecordStatus",
    "Sentence",
    # Concurrency
    "single_flight",
]
