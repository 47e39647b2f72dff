"""CLI helper functions."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import click
import msgspec
from rich.console import Console
from rich.table import Table

from studyindex.collections.filters import ProgressLookup
from studyindex.core.models import CollectionRecord, FieldSpec
from studyindex.engine import CollectionEngine

T = TypeVar("T")

MAX_COLUMNS = 6


def run_engine(
    ctx: click.Context,
    action: Callable[[CollectionEngine], Awaitable[T]],
    progress_lookup: ProgressLookup | None = None,
) -> T:
    """Start an engine for the configured source, run ``action``, shut down.

    Args:
        ctx: Click context holding the CLI :class:`Context`
        action: Coroutine function receiving the started engine
        progress_lookup: Optional progress lookup for filter sets

    Returns:
        Whatever ``action`` returned
    """

    async def runner() -> T:
        engine = CollectionEngine.from_source(
            ctx.obj.source,
            config=ctx.obj.engine_config,
            progress_lookup=progress_lookup,
        )
        async with engine:
            return await action(engine)

    return asyncio.run(runner())


def load_progress_file(path: Path) -> ProgressLookup:
    """Build a progress lookup from a JSON file of ``{study key: record}``.

    Raises:
        click.BadParameter: If the file is not a JSON object
    """
    try:
        data = msgspec.json.decode(Path(path).read_bytes())
    except (OSError, msgspec.DecodeError) as e:
        raise click.BadParameter(f"cannot read progress file: {e}") from e
    if not isinstance(data, dict):
        raise click.BadParameter("progress file must contain a JSON object")
    return data.get


def format_value(value: Any) -> str:
    """Render an entry value for a table cell."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return ", ".join(format_value(v) for v in value if not isinstance(v, (dict, list)))
    if isinstance(value, dict):
        return "{…}"
    return str(value)


def entry_columns(record: CollectionRecord) -> list[FieldSpec]:
    """Columns for an entries table: declared fields, else common keys."""
    if record.metadata.fields:
        return list(record.metadata.fields[:MAX_COLUMNS])

    keys: list[str] = []
    for entry in record.entries[:50]:
        for key, value in entry.items():
            if key not in keys and not isinstance(value, (dict, list)):
                keys.append(key)
    return [FieldSpec(key=key) for key in keys[:MAX_COLUMNS]]


def display_entries(console: Console, record: CollectionRecord, limit: int) -> None:
    """Print the entries of a record as a table."""
    columns = entry_columns(record)
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", style="dim", justify="right")
    for spec in columns:
        table.add_column(spec.label or spec.key)
    table.add_column("Sentences", justify="right")

    for i, entry in enumerate(record.entries[:limit], 1):
        sentences = entry.get("sentences")
        count = len(sentences) if isinstance(sentences, list) else 0
        cells = [format_value(entry.get(spec.key)) for spec in columns]
        table.add_row(str(i), *cells, str(count) if count else "")

    console.print(table)
    if len(record.entries) > limit:
        console.print(f"[dim]... {len(record.entries) - limit} more entries[/dim]")
