"""Manifest maintenance commands."""

from pathlib import Path

import click

from studyindex.storage.indexer import build_manifest, write_manifest


# Command: rebuild-index
@click.command(name="rebuild-index")
@click.argument(
    "root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    required=False,
)
@click.option("--dry-run", is_flag=True, help="Show what would be indexed without writing")
@click.pass_context
def rebuild_index(ctx: click.Context, root: Path | None, dry_run: bool) -> None:
    """Rebuild index.json for the collections directory ROOT."""
    console = ctx.obj.console
    if root is None:
        root = Path(ctx.obj.source)
        if not root.is_dir():
            raise click.UsageError(f"Collections directory not found: {root}")

    config = ctx.obj.engine_config
    if dry_run:
        manifest = build_manifest(root, config)
        console.print(
            f"Would index {len(manifest['collections'])} collections and "
            f"{len(manifest['folderMetadata'])} metadata folders under {root}"
        )
        return

    path = write_manifest(root, config)
    console.print(f"[green]✓[/green] Wrote {path}")
