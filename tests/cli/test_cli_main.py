"""Tests for the command line interface."""

import json

from click.testing import CliRunner

from studyindex.cli.main import cli


class TestCLIEntryPoint:
    """Test global options and error handling."""

    def test_version_flag(self):
        result = CliRunner().invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "studyindex version" in result.output

    def test_help_lists_commands(self):
        result = CliRunner().invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("ls", "show", "meta", "sets", "tag", "stats", "rebuild-index"):
            assert command in result.output

    def test_missing_source_reports_manifest_error(self, tmp_path):
        result = CliRunner().invoke(cli, ["--no-color", "--source", str(tmp_path), "ls"])

        assert result.exit_code == 1
        assert "Failed to load collections manifest" in result.output

    def test_source_from_config_file(self, tmp_path, collections_dir):
        config = tmp_path / "config.yaml"
        config.write_text(f"source: {collections_dir}\n")

        result = CliRunner().invoke(cli, ["--no-color", "--config", str(config), "ls"])

        assert result.exit_code == 0
        assert "japanese/" in result.output

    def test_source_from_environment(self, monkeypatch, collections_dir):
        monkeypatch.setenv("STUDYINDEX_SOURCE", str(collections_dir))

        result = CliRunner().invoke(cli, ["--no-color", "ls"])

        assert result.exit_code == 0
        assert "spanish/" in result.output

    def test_invalid_config_file(self, tmp_path):
        config = tmp_path / "bad.yaml"
        config.write_text("source: [unclosed\n")

        result = CliRunner().invoke(cli, ["--no-color", "--config", str(config), "ls"])

        assert result.exit_code == 1
        assert "Error loading configuration" in result.output

    def test_invalid_engine_section(self, tmp_path):
        config = tmp_path / "bad.yaml"
        config.write_text("engine:\n  http_timeout: soon\n")

        result = CliRunner().invoke(cli, ["--no-color", "--config", str(config), "ls"])

        assert result.exit_code == 1
        assert "Invalid engine configuration" in result.output


class TestBrowseCommands:
    """Test browsing commands against the sample tree."""

    def test_ls_root(self, cli_runner):
        result = cli_runner.invoke(["ls"])

        assert result.exit_code == 0
        assert "japanese/" in result.output
        assert "spanish/" in result.output

    def test_ls_folder_shows_tags(self, cli_runner):
        result = cli_runner.invoke(["ls", "japanese"])

        assert result.exit_code == 0
        assert "tags/" in result.output
        assert "japanese/__collectionSets" in result.output

    def test_ls_sets_folder(self, cli_runner):
        result = cli_runner.invoke(["ls", "japanese/__collectionSets"])

        assert result.exit_code == 0
        assert "Elements" in result.output
        assert "New kanji" in result.output

    def test_ls_sets_folder_with_custom_dirname(self, cli_runner, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("engine:\n  collection_sets_dirname: _tags\n")

        result = cli_runner.invoke(["--config", str(config), "ls", "japanese/_tags"])

        assert result.exit_code == 0
        rows = [line.split() for line in result.output.splitlines() if "japanese/_tags/" in line]
        assert len(rows) == 2
        assert all("set" in row and "file" not in row for row in rows)

    def test_ls_shows_manifest_entry_counts(self, cli_runner):
        result = cli_runner.invoke(["ls", "japanese/words"])

        assert result.exit_code == 0
        lines = result.output.splitlines()
        basics = next(line for line in lines if "basics.json" in line)
        extra = next(line for line in lines if "extra.json" in line)
        assert "3" in basics.split()
        assert "3" not in extra.split()

    def test_ls_unknown_folder(self, cli_runner):
        result = cli_runner.invoke(["ls", "french"])

        assert result.exit_code == 0
        assert "Nothing found" in result.output

    def test_show_collection(self, cli_runner):
        result = cli_runner.invoke(["show", "japanese/words/basics.json"])

        assert result.exit_code == 0
        assert "Basics" in result.output
        assert "Category: ja" in result.output
        assert "Entries: 3" in result.output
        assert "Word" in result.output
        assert "student" in result.output

    def test_show_limit(self, cli_runner):
        result = cli_runner.invoke(["show", "japanese/words/basics.json", "-n", "1"])

        assert result.exit_code == 0
        assert "2 more entries" in result.output

    def test_show_sentence_file(self, cli_runner):
        result = cli_runner.invoke(["show", "japanese/sentences/daily.json"])

        assert result.exit_code == 0
        assert "Sentences: 2" in result.output

    def test_show_unknown_collection(self, cli_runner):
        result = cli_runner.invoke(["show", "japanese/nope.json"])

        assert result.exit_code == 1
        assert "not found in collections index" in result.output

    def test_meta(self, cli_runner):
        result = cli_runner.invoke(["meta", "japanese/words/basics.json"])

        assert result.exit_code == 0
        assert "Category: ja" in result.output
        assert "reading" in result.output

    def test_meta_nothing_declared(self, cli_runner):
        result = cli_runner.invoke(["meta", "spanish"])

        assert result.exit_code == 0
        assert "No folder metadata" in result.output

    def test_sets(self, cli_runner):
        result = cli_runner.invoke(["sets", "japanese"])

        assert result.exit_code == 0
        assert "Japanese tags" in result.output
        assert "kanji-new" in result.output
        assert "3 terms" in result.output

    def test_sets_none(self, cli_runner):
        result = cli_runner.invoke(["sets", "spanish"])

        assert result.exit_code == 0
        assert "No collection sets" in result.output

    def test_tag_term_set(self, cli_runner):
        result = cli_runner.invoke(["tag", "japanese", "elements"])

        assert result.exit_code == 0
        assert "Elements" in result.output
        assert "3 entries" in result.output
        assert "未知語" in result.output

    def test_tag_filter_set_with_progress(self, cli_runner, progress_file):
        result = cli_runner.invoke(
            ["tag", "japanese", "kanji-new", "--progress", str(progress_file)]
        )

        assert result.exit_code == 0
        assert "2 entries" in result.output
        assert "mountain" in result.output

    def test_tag_invalid_progress_file(self, cli_runner, tmp_path):
        progress = tmp_path / "progress.json"
        progress.write_text(json.dumps(["not", "a", "mapping"]))

        result = cli_runner.invoke(["tag", "japanese", "kanji-new", "--progress", str(progress)])

        assert result.exit_code == 2
        assert "JSON object" in result.output

    def test_tag_unknown_set(self, cli_runner):
        result = cli_runner.invoke(["tag", "japanese", "nope"])

        assert result.exit_code == 1
        assert "collection set not found" in result.output

    def test_stats(self, cli_runner):
        result = cli_runner.invoke(["stats", "--load", "japanese"])

        assert result.exit_code == 0
        assert "Collections: 4 loaded of 6 available" in result.output
        assert "associated" in result.output


class TestRebuildIndex:
    """Test manifest rebuilding."""

    def test_dry_run(self, cli_runner, collections_dir):
        before = (collections_dir / "index.json").read_text(encoding="utf-8")

        result = cli_runner.invoke(["rebuild-index", str(collections_dir), "--dry-run"])

        assert result.exit_code == 0
        assert "Would index 6 collections and 2 metadata folders" in result.output
        assert (collections_dir / "index.json").read_text(encoding="utf-8") == before

    def test_rebuild_uses_source_by_default(self, cli_runner, collections_dir):
        result = cli_runner.invoke(["rebuild-index"])

        assert result.exit_code == 0
        assert "Wrote" in result.output
        manifest = json.loads((collections_dir / "index.json").read_text(encoding="utf-8"))
        assert manifest["folderMetadata"]["japanese"] == "japanese/_metadata.json"

    def test_rebuilt_index_is_browsable(self, cli_runner, collections_dir):
        cli_runner.invoke(["rebuild-index"])

        result = cli_runner.invoke(["show", "japanese/words/extra.json"])

        assert result.exit_code == 0
        assert "Gloss" in result.output

    def test_missing_default_root(self, tmp_path):
        result = CliRunner().invoke(
            cli, ["--no-color", "--source", str(tmp_path / "missing"), "rebuild-index"]
        )

        assert result.exit_code == 2
        assert "Collections directory not found" in result.output
