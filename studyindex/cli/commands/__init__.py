"""CLI command modules."""

from studyindex.cli.commands import browse, index

__all__ = ["browse", "index"]
