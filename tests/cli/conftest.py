"""Pytest configuration and fixtures for CLI tests."""

import json

import pytest
from click.testing import CliRunner

from studyindex.cli.main import cli


class StudyIndexRunner:
    """CliRunner bound to a collections directory."""

    def __init__(self, source):
        self.runner = CliRunner()
        self.source = str(source)

    def invoke(self, args, **kwargs):
        return self.runner.invoke(
            cli, ["--no-color", "--source", self.source, *args], **kwargs
        )


@pytest.fixture
def cli_runner(collections_dir):
    """Runner whose commands read the sample collections tree."""
    return StudyIndexRunner(collections_dir)


@pytest.fixture
def progress_file(tmp_path):
    """Progress records for the sample kanji."""
    path = tmp_path / "progress.json"
    path.write_text(
        json.dumps(
            {"火": {"state": "learned"}, "水": {"state": "new"}}, ensure_ascii=False
        ),
        encoding="utf-8",
    )
    return path
