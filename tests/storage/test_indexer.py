"""Tests for rebuilding the collections manifest from disk."""

import json

from studyindex.storage.indexer import build_manifest, write_manifest
from studyindex.storage.manifest import Manifest


class TestBuildManifest:
    """Test scanning a collections directory."""

    def test_scan_sample_tree(self, collections_dir) -> None:
        """Metadata files form the folder map; collections are sorted by path."""
        manifest = build_manifest(collections_dir)

        assert manifest["folderMetadata"] == {
            "japanese": "japanese/_metadata.json",
            "japanese/words": "japanese/words/_metadata.json",
        }
        paths = [c["path"] for c in manifest["collections"]]
        assert paths == sorted(paths)
        assert "japanese/_collectionSets.json" in paths
        assert "index.json" not in paths
        assert not any(p.endswith("_metadata.json") for p in paths)

        basics = next(c for c in manifest["collections"] if c["path"].endswith("basics.json"))
        assert basics["name"] == "Basics"
        assert basics["entries"] == 3

    def test_hidden_files_are_skipped(self, tmp_path) -> None:
        """Underscore files other than collection sets are tooling files."""
        (tmp_path / "ja").mkdir()
        (tmp_path / "ja" / "_draft.json").write_text("{}")
        (tmp_path / "ja" / "_collectionSets.json").write_text('{"sets": []}')

        paths = [c["path"] for c in build_manifest(tmp_path)["collections"]]

        assert paths == ["ja/_collectionSets.json"]

    def test_colliding_names_are_disambiguated(self, tmp_path) -> None:
        """Same display name in one folder gets the file stem appended."""
        (tmp_path / "ja").mkdir()
        for stem in ("one", "two"):
            (tmp_path / "ja" / f"{stem}.json").write_text(
                json.dumps({"metadata": {"name": "Verbs"}, "entries": []})
            )

        names = [c["name"] for c in build_manifest(tmp_path)["collections"]]

        assert names == ["Verbs (one)", "Verbs (two)"]

    def test_unreadable_files_are_still_listed(self, tmp_path, caplog) -> None:
        """Broken JSON is indexed by filename and logged."""
        (tmp_path / "broken.json").write_text("{oops")

        collections = build_manifest(tmp_path)["collections"]

        assert collections == [
            {"path": "broken.json", "name": "broken", "description": None, "entries": None}
        ]
        assert "broken.json" in caplog.text

    def test_written_manifest_round_trips(self, collections_dir) -> None:
        """The written file is a valid engine manifest."""
        path = write_manifest(collections_dir)

        manifest = Manifest.from_text(path.read_text(encoding="utf-8"))

        assert path.name == "index.json"
        assert "japanese/words/basics.json" in manifest
        assert manifest.folder_metadata["japanese/words"] == "japanese/words/_metadata.json"
