"""Study collection index CLI.

Browse, inspect and re-index JSON study collections from the terminal.
Built with Click and Rich.
"""

from studyindex.cli.main import cli

__all__ = ["cli"]
