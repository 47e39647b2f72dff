"""Collection file access: fetchers, manifest, change notification.

- **Fetchers**: HTTP (httpx) and local directory sources
- **Manifest**: parsed ``index.json`` with display hints and folder metadata map
- **Indexer**: rebuild ``index.json`` from a collections directory
- **Events**: the engine's no-payload change signal
"""

from studyindex.storage.events import ChangePublisher, ChangeSignal
from studyindex.storage.fetchers import (
    Fetcher,
    FetchResponse,
    FileSystemFetcher,
    HttpFetcher,
    open_fetcher,
)
from studyindex.storage.indexer import build_manifest, write_manifest
from studyindex.storage.manifest import Manifest, ManifestItem

__all__ = [
    # Events
    "ChangeSignal",
    "ChangePublisher",
    # Fetchers
    "Fetcher",
    "FetchResponse",
    "FileSystemFetcher",
    "HttpFetcher",
    "open_fetcher",
    # Manifest
    "Manifest",
    "ManifestItem",
    "build_manifest",
    "write_manifest",
]
