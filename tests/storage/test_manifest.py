"""Tests for collections manifest parsing."""

import pytest

from studyindex.core.exceptions import ManifestError
from studyindex.storage.manifest import (
    Manifest,
    build_folder_metadata_map,
    normalize_index_path,
)


class TestManifestParsing:
    """Test reading index.json documents."""

    def test_strings_and_objects(self) -> None:
        """Collections may be plain paths or objects with display hints."""
        manifest = Manifest.from_document(
            {
                "collections": [
                    "a/one.json",
                    {"path": "a/two.json", "name": "Two", "entries": 4},
                    {"name": "no path"},
                    {"path": "a/three.json", "entries": True},
                    "a/one.json",
                ]
            }
        )

        assert manifest.paths == ["a/one.json", "a/two.json", "a/three.json"]
        assert manifest.item("a/two.json").name == "Two"
        assert manifest.item("a/two.json").entries == 4
        assert manifest.item("a/three.json").entries is None
        assert manifest.folder_metadata is None

    def test_order_of_unknown_paths_is_last(self) -> None:
        """Unknown paths sort after every manifest path."""
        manifest = Manifest.from_document({"collections": ["b.json", "a.json"]})
        assert manifest.order_of("b.json") == 0
        assert manifest.order_of("a.json") == 1
        assert manifest.order_of("x/__collectionSets/y") == 2

    def test_invalid_text_raises(self) -> None:
        """Empty or malformed manifests are fatal."""
        with pytest.raises(ManifestError):
            Manifest.from_text("")
        with pytest.raises(ManifestError, match="invalid JSON"):
            Manifest.from_text("{not json")
        with pytest.raises(ManifestError):
            Manifest.from_text("[]")

    def test_keys_under_and_top_folders(self) -> None:
        """Folder queries follow manifest order."""
        manifest = Manifest.from_document(
            {
                "collections": [
                    "root.json",
                    "ja/_collectionSets.json",
                    "ja/words/a.json",
                    "es/b.json",
                ]
            }
        )

        assert manifest.keys_under("ja") == ["ja/_collectionSets.json", "ja/words/a.json"]
        assert manifest.keys_under("ja", ("_collectionSets.json",)) == ["ja/words/a.json"]
        assert manifest.has_any_under("ja/words")
        assert not manifest.has_any_under("ja/sentences")
        assert not manifest.has_any_under("")
        assert manifest.top_folders() == ["ja", "es"]


class TestFolderMetadataMap:
    """Test normalization of the folderMetadata map."""

    def test_bare_filenames_are_made_relative(self) -> None:
        """A bare filename lives in its folder."""
        mapping = build_folder_metadata_map(
            {".": "_metadata.json", "japanese": "_metadata.json"}
        )
        assert mapping == {"": "_metadata.json", "japanese": "japanese/_metadata.json"}

    def test_subpaths_are_prefixed(self) -> None:
        """Subpaths not already under the folder get the folder prefix."""
        mapping = build_folder_metadata_map(
            {
                "japanese": "words/_metadata.json",
                "spanish": "spanish/_metadata.json",
                "german": "../shared/_metadata.json",
            }
        )
        assert mapping["japanese"] == "japanese/words/_metadata.json"
        assert mapping["spanish"] == "spanish/_metadata.json"
        assert mapping["german"] == "../shared/_metadata.json"

    def test_missing_map(self) -> None:
        """A manifest without a map yields None."""
        assert build_folder_metadata_map(None) is None

    def test_index_paths_drop_prefixes(self) -> None:
        """``./`` and ``collections/`` prefixes are stripped."""
        assert normalize_index_path("./collections/ja/_metadata.json") == "ja/_metadata.json"
