"""Registry of loaded collection records in manifest order."""

from __future__ import annotations

from collections.abc import Callable, Iterator

from studyindex.core.models import CollectionRecord
from studyindex.core.paths import is_under


class CollectionRegistry:
    """Loaded collections, kept sorted by manifest position.

    Listing order therefore does not depend on which load finished first.
    Keys missing from the manifest (virtual collections) sort last, in
    registration order.
    """

    def __init__(self, order_of: Callable[[str], int]):
        self._order_of = order_of
        self._records: list[CollectionRecord] = []
        self._by_key: dict[str, CollectionRecord] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._by_key

    def __iter__(self) -> Iterator[CollectionRecord]:
        return iter(list(self._records))

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> list[CollectionRecord]:
        return list(self._records)

    def get(self, key: str | None) -> CollectionRecord | None:
        """Get a record by key."""
        if not key:
            return None
        return self._by_key.get(key)

    def register(self, record: CollectionRecord) -> None:
        """Add a record.

        Raises:
            ValueError: If a record with the same key is registered
        """
        if record.key in self._by_key:
            raise ValueError(f"Collection {record.key} is already registered")
        self._by_key[record.key] = record
        self._records.append(record)
        self._records.sort(key=lambda r: self._order_of(r.key))

    def records_under(self, folder: str, include_virtual: bool = True) -> list[CollectionRecord]:
        """Records whose key lies below a folder, in registry order."""
        return [
            record
            for record in self._records
            if is_under(record.key, folder) and (include_virtual or not record.virtual)
        ]
