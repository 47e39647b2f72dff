"""Collection loading, indexing and resolution.

This package provides:
- Manifest-backed folder tree and directory listings
- Folder metadata inheritance
- Single-flight collection loading in manifest order
- Per-folder entry indices and word <-> sentence association
- Collection sets (virtual "tag" collections) and their filter language
- Active collection tracking with hash-route synchronization
"""

from .controller import ActiveCollectionController, Route, build_route, parse_route
from .entry_index import FolderEntryIndex, richness_score
from .filters import FilterClause, FilterOperator, FilterQuery, parse_filter
from .loader import CollectionLoader
from .metadata import FolderMetadataResolver
from .registry import CollectionRegistry
from .sentences import SentenceAssociationIndex, SentenceStore, attach_sentences
from .sets import CollectionSetResolver, is_sets_dir, parse_virtual_key, virtual_key
from .tree import DirListing, FileItem, FolderItem, PathTree

__all__ = [
    # Tree
    "PathTree",
    "DirListing",
    "FolderItem",
    "FileItem",
    # Loading
    "CollectionLoader",
    "CollectionRegistry",
    "FolderMetadataResolver",
    # Indices
    "FolderEntryIndex",
    "richness_score",
    "SentenceStore",
    "SentenceAssociationIndex",
    "attach_sentences",
    # Sets
    "CollectionSetResolver",
    "FilterClause",
    "FilterOperator",
    "FilterQuery",
    "parse_filter",
    "virtual_key",
    "parse_virtual_key",
    "is_sets_dir",
    # Active collection
    "ActiveCollectionController",
    "Route",
    "parse_route",
    "build_route",
]
