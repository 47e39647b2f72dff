"""Main CLI entry point and application setup."""

import logging
from dataclasses import dataclass
from pathlib import Path

import click
from click.exceptions import Exit
from rich.console import Console

from studyindex import __version__
from studyindex.cli.commands import browse, index
from studyindex.cli.config import build_engine_config, load_config
from studyindex.core.config import EngineConfig

DEFAULT_SOURCE = "collections"


@dataclass
class Context:
    """CLI context that holds shared resources."""

    console: Console
    source: str
    engine_config: EngineConfig
    debug: bool = False


def setup_logging(verbose: bool = False, quiet: bool = False, debug: bool = False) -> None:
    """Configure logging based on CLI flags."""
    if quiet:
        level = logging.ERROR
    elif verbose or debug:
        level = logging.DEBUG
    else:
        level = logging.WARNING
    fmt = "%(levelname)s: %(message)s"
    if debug:
        fmt = "%(asctime)s %(name)s " + fmt
    logging.basicConfig(level=level, format=fmt)


def create_console(no_color: bool = False) -> Console:
    """Create Rich console; plain output when color is off."""
    return Console(no_color=no_color, width=120, color_system=None if no_color else "auto")


class StudyIndexGroup(click.Group):
    """Custom group that turns engine errors into clean messages."""

    def invoke(self, ctx):
        try:
            return super().invoke(ctx)
        except KeyboardInterrupt:
            console = getattr(ctx.obj, "console", None)
            if console:
                console.print("[yellow]Interrupted[/yellow]")
            ctx.exit(130)
        except (click.ClickException, click.Abort, Exit):
            raise
        except Exception as e:
            if getattr(ctx.obj, "debug", False):
                raise
            console = getattr(ctx.obj, "console", None)
            if console:
                console.print(f"[red]Error:[/red] {e}")
            else:
                click.echo(f"Error: {e}", err=True)
            ctx.exit(1)


@click.group(cls=StudyIndexGroup)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-error output")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.option("--debug", is_flag=True, help="Enable debug mode with full tracebacks")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option(
    "--source",
    "-s",
    help="Collections root: a directory or an http(s) URL",
)
@click.version_option(
    version=__version__, prog_name="studyindex", message="studyindex version %(version)s"
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    no_color: bool,
    debug: bool,
    config: Path | None,
    source: str | None,
) -> None:
    """Study collection index.

    Browse JSON study collections, their folder metadata, collection sets
    and example sentences, and rebuild the collections manifest.
    """
    setup_logging(verbose=verbose, quiet=quiet, debug=debug)
    console = create_console(no_color=no_color)

    try:
        config_data = load_config(config)
        engine_config = build_engine_config(config_data)
    except ValueError as e:
        if debug:
            raise
        console.print(f"[red]Error loading configuration:[/red] {e}")
        ctx.exit(1)

    ctx.obj = Context(
        console=console,
        source=source or config_data.get("source") or DEFAULT_SOURCE,
        engine_config=engine_config,
        debug=debug,
    )


cli.add_command(browse.ls)
cli.add_command(browse.show)
cli.add_command(browse.meta)
cli.add_command(browse.sets)
cli.add_command(browse.tag)
cli.add_command(browse.stats)
cli.add_command(index.rebuild_index)
