"""Pytest configuration and fixtures."""

import asyncio
import json
import os
from pathlib import Path
from typing import Any

import pytest

from studyindex.core.exceptions import FetchError
from studyindex.storage.fetchers import FetchResponse


class StubFetcher:
    """In-memory fetcher that records every request.

    Paths can be gated behind an :class:`asyncio.Event` to hold responses
    open, given a fixed status, or made to fail at the transport level.
    """

    def __init__(self, files: dict[str, Any] | None = None):
        self.files: dict[str, str] = {}
        self.calls: list[str] = []
        self.gates: dict[str, asyncio.Event] = {}
        self.statuses: dict[str, int] = {}
        self.errors: dict[str, str] = {}
        self.closed = False
        for path, data in (files or {}).items():
            self.put(path, data)

    def put(self, path: str, data: Any) -> None:
        self.files[path] = data if isinstance(data, str) else json.dumps(data, ensure_ascii=False)

    def remove(self, path: str) -> None:
        self.files.pop(path, None)

    def gate(self, path: str) -> asyncio.Event:
        event = asyncio.Event()
        self.gates[path] = event
        return event

    def count(self, path: str) -> int:
        return self.calls.count(path)

    async def fetch(self, path: str) -> FetchResponse:
        self.calls.append(path)
        gate = self.gates.get(path)
        if gate is not None:
            await gate.wait()
        if path in self.errors:
            raise FetchError(path, self.errors[path])
        if path in self.statuses:
            return FetchResponse(status=self.statuses[path])
        text = self.files.get(path)
        if text is None:
            return FetchResponse(status=404)
        return FetchResponse(status=200, text=text)

    async def aclose(self) -> None:
        self.closed = True


def sample_collection_files() -> dict[str, Any]:
    """A small Japanese/Spanish collections tree."""
    return {
        "index.json": {
            "folderMetadata": {
                "japanese": "_metadata.json",
                "japanese/words": "_metadata.json",
            },
            "collections": [
                "japanese/_collectionSets.json",
                {"path": "japanese/words/basics.json", "name": "Basics", "entries": 3},
                "japanese/words/extra.json",
                "japanese/sentences/daily.json",
                "japanese/examples/legacy.json",
                "spanish/verbs.json",
            ],
        },
        "japanese/_metadata.json": {
            "category": "japanese",
            "fields": [
                {"key": "kanji", "label": "Kanji"},
                {"key": "meaning", "label": "Meaning"},
            ],
        },
        "japanese/words/_metadata.json": {
            "language": "ja",
            "fields": [
                {"key": "kanji", "label": "Word"},
                {"key": "reading", "label": "Reading"},
                {"key": "meaning", "label": "Meaning"},
            ],
        },
        "japanese/_collectionSets.json": {
            "name": "Japanese tags",
            "version": 1,
            "sets": [
                {"id": "elements", "label": "Elements", "kanji": ["火", "水", "未知語"]},
                {
                    "id": "kanji-new",
                    "label": "New kanji",
                    "kanjiFilter": ["type=kanji", "kanji_progress.state!=learned"],
                },
                {"label": "Missing id"},
            ],
        },
        "japanese/words/basics.json": {
            "metadata": {"name": "Basics"},
            "entries": [
                {"kanji": "火", "reading": "ひ", "meaning": "fire", "type": "kanji"},
                {"kanji": "水", "reading": "みず", "meaning": "water", "type": "kanji"},
                {"kanji": "学生", "reading": "がくせい", "meaning": "student", "type": "word"},
            ],
        },
        "japanese/words/extra.json": {
            "metadata": {"fields": [{"key": "meaning", "label": "Gloss"}]},
            "entries": [
                {"kanji": "火", "meaning": "flame"},
                {"kanji": "山", "reading": "やま", "meaning": "mountain", "type": "kanji"},
            ],
        },
        "japanese/sentences/daily.json": {
            "sentences": [
                {
                    "ja": "火が熱い",
                    "en": "The fire is hot",
                    "chunks": [{"text": "火", "refs": ["火"]}],
                },
                {
                    "ja": "水を飲む",
                    "en": "I drink water",
                    "chunks": [{"text": "水", "refs": ["水"]}, {"refs": [" 水 "]}],
                },
            ],
        },
        "japanese/examples/legacy.json": {
            "entries": [
                {
                    "ja": "山に登る",
                    "en": "I climb a mountain",
                    "chunks": [{"text": "山", "refs": ["山"]}],
                },
            ],
        },
        "spanish/verbs.json": {
            "entries": [
                {"word": "comer", "meaning": "to eat"},
                {"word": "beber", "meaning": "to drink"},
            ],
        },
    }


def write_collection_tree(root: Path, files: dict[str, Any]) -> Path:
    """Write a files mapping below ``root`` as real JSON files."""
    for rel, data in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        text = data if isinstance(data, str) else json.dumps(data, ensure_ascii=False)
        path.write_text(text, encoding="utf-8")
    return root


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch, tmp_path):
    """Isolate environment variables and config lookup for each test."""
    original_env = os.environ.copy()
    monkeypatch.delenv("STUDYINDEX_SOURCE", raising=False)
    monkeypatch.delenv("STUDYINDEX_PREFETCH", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def collection_files() -> dict[str, Any]:
    """Raw files of the sample collections tree."""
    return sample_collection_files()


@pytest.fixture
def stub_fetcher(collection_files) -> StubFetcher:
    """Fetcher serving the sample collections tree from memory."""
    return StubFetcher(collection_files)


@pytest.fixture
def collections_dir(tmp_path, collection_files) -> Path:
    """The sample collections tree written to disk."""
    return write_collection_tree(tmp_path / "collections", collection_files)


@pytest.fixture
def fetcher_factory():
    """The :class:`StubFetcher` class, for tests building their own trees."""
    return StubFetcher
