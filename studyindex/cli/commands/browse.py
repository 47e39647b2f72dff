"""Commands for browsing collections, metadata and collection sets."""

from pathlib import Path

import click
from rich.panel import Panel
from rich.table import Table

from studyindex.cli.helpers import display_entries, load_progress_file, run_engine
from studyindex.collections.sets import is_sets_dir
from studyindex.core.models import RecordStatus
from studyindex.core.paths import dirname


# Command: ls
@click.command()
@click.argument("directory", default="")
@click.pass_context
def ls(ctx: click.Context, directory: str) -> None:
    """List the folders and collections in DIRECTORY."""
    console = ctx.obj.console

    async def action(engine):
        if is_sets_dir(directory, engine.config.collection_sets_dirname):
            await engine.load_collection_sets(dirname(directory))
        listing = engine.list_collection_dir(directory)
        hints = {item.key: engine.manifest.item(item.key).entries for item in listing.files}
        return listing, hints, is_sets_dir(listing.dir, engine.config.collection_sets_dirname)

    listing, hints, in_sets_dir = run_engine(ctx, action)

    if not listing.folders and not listing.files:
        console.print(f"[yellow]Nothing found in '{listing.dir or '/'}'[/yellow]")
        return

    table = Table(title=f"/{listing.dir}", show_header=True, header_style="bold")
    table.add_column("Type", style="dim")
    table.add_column("Name")
    table.add_column("Entries", justify="right")
    table.add_column("Path", style="cyan")

    for folder in listing.folders:
        kind = "tags" if folder.virtual else "dir"
        table.add_row(kind, f"[bold]{folder.label}/[/bold]", "", folder.path)
    for item in listing.files:
        entries = hints.get(item.key)
        table.add_row(
            "set" if in_sets_dir else "file",
            item.label,
            "" if entries is None else str(entries),
            item.key,
        )

    console.print(table)


# Command: show
@click.command()
@click.argument("key")
@click.option("--limit", "-n", default=20, show_default=True, help="Entries to show")
@click.pass_context
def show(ctx: click.Context, key: str, limit: int) -> None:
    """Load and show the collection KEY."""
    console = ctx.obj.console

    async def action(engine):
        record = await engine.load_collection(key)
        await engine.wait_idle()
        return record

    record = run_engine(ctx, action)
    metadata = record.metadata

    details = [f"[bold]Key:[/bold] {record.key}"]
    if metadata.description:
        details.append(f"[bold]Description:[/bold] {metadata.description}")
    if metadata.category:
        details.append(f"[bold]Category:[/bold] {metadata.category}")
    details.append(f"[bold]Entries:[/bold] {len(record.entries)}")
    if record.sentences is not None:
        details.append(f"[bold]Sentences:[/bold] {len(record.sentences)}")
    if record.virtual:
        details.append(f"[bold]Status:[/bold] {record.status.value}")
    console.print(Panel("\n".join(details), title=metadata.name or record.key))

    if record.error:
        console.print(f"[red]Error:[/red] {record.error}")
    if record.entries:
        display_entries(console, record, limit)


# Command: meta
@click.command()
@click.argument("target")
@click.pass_context
def meta(ctx: click.Context, target: str) -> None:
    """Show the inherited folder metadata of a collection key or folder."""
    console = ctx.obj.console

    async def action(engine):
        return await engine.get_inherited_folder_metadata(target)

    metadata = run_engine(ctx, action)
    if metadata is None:
        console.print(f"[yellow]No folder metadata applies to '{target}'[/yellow]")
        return

    console.print(f"[bold]Category:[/bold] {metadata.category or '-'}")
    if not metadata.fields:
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Key", style="cyan")
    table.add_column("Label")
    table.add_column("Type", style="dim")
    for spec in metadata.fields:
        table.add_row(spec.key, spec.label or "", spec.type or "")
    console.print(table)


# Command: sets
@click.command()
@click.argument("folder", default="")
@click.pass_context
def sets(ctx: click.Context, folder: str) -> None:
    """List the collection sets declared by FOLDER."""
    console = ctx.obj.console

    async def action(engine):
        return await engine.load_collection_sets(folder)

    set_file = run_engine(ctx, action)
    if set_file is None or not set_file.sets:
        console.print(f"[yellow]No collection sets in '{folder or '/'}'[/yellow]")
        return

    title = set_file.name or f"Collection sets of /{folder}"
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("ID", style="cyan")
    table.add_column("Label")
    table.add_column("Mode", style="dim")
    table.add_column("Definition")

    for item in set_file.sets:
        if item.is_filter:
            mode, definition = "filter", " & ".join(item.kanji_filter)
        else:
            mode, definition = "terms", f"{len(item.kanji)} terms"
        table.add_row(item.id, item.label or "", mode, definition)
    console.print(table)


# Command: tag
@click.command()
@click.argument("folder")
@click.argument("set_id")
@click.option(
    "--progress",
    "progress_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON file mapping study keys to progress records",
)
@click.option("--limit", "-n", default=20, show_default=True, help="Entries to show")
@click.pass_context
def tag(
    ctx: click.Context, folder: str, set_id: str, progress_file: Path | None, limit: int
) -> None:
    """Resolve the collection set SET_ID of FOLDER and show its entries."""
    console = ctx.obj.console
    lookup = load_progress_file(progress_file) if progress_file else None

    async def action(engine):
        return await engine.resolve_collection_set(folder, set_id, wait=True)

    record = run_engine(ctx, action, progress_lookup=lookup)

    if record.status is RecordStatus.FAILED:
        console.print(f"[red]Could not resolve {record.key}:[/red] {record.error}")
        ctx.exit(1)

    console.print(
        f"\n[bold]{record.metadata.name}[/bold] [dim]({record.key})[/dim]: "
        f"{len(record.entries)} entries\n"
    )
    if record.entries:
        display_entries(console, record, limit)


# Command: stats
@click.command()
@click.option("--load", "folders", multiple=True, help="Load a folder before reporting")
@click.pass_context
def stats(ctx: click.Context, folders: tuple[str, ...]) -> None:
    """Show engine cache statistics."""
    console = ctx.obj.console

    async def action(engine):
        for folder in folders:
            engine.prefetch_folder(folder)
        await engine.wait_idle()
        return engine.stats()

    console.print(run_engine(ctx, action).to_summary())
