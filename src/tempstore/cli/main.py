"""
CLI for the temporary storage system.

Commands:
    tempstore create - Create an entry and print its id
    tempstore info ID - Show name, type and size of one entry
    tempstore cat ID - Write the content of one entry
    tempstore write ID FILE - Replace or append content of one entry
    tempstore type ID - Print the content type of one entry
    tempstore set-type ID TYPE - Change the content type of one entry
    tempstore delete ID - Delete one entry
    tempstore sweep - Remove expired entries
    tempstore compact - Remove orphaned backing files
    tempstore watch - Sweep periodically until interrupted
    tempstore config - Show current configuration
    tempstore version - Print version

There is no command to list entries.
"""

from __future__ import annotations

import asyncio
import shutil
from collections.abc import Awaitable, Callable
from datetime import timedelta
from pathlib import Path
from typing import Annotated, Optional, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from tempstore import __version__
from tempstore.config import Settings, clear_settings_cache, get_settings
from tempstore.exceptions import TempStoreError
from tempstore.logging import setup_logging
from tempstore.service import TemporaryStorage

app = typer.Typer(
    name="tempstore",
    help="Transient, capability-gated object store",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

T = TypeVar("T")


def _load_settings() -> Settings:
    """Load settings and configure logging, exiting on invalid config."""
    try:
        clear_settings_cache()
        settings = get_settings()
    except ValidationError as e:
        error_console.print(f"[red]Error:[/red] Configuration is invalid.\n{e}")
        raise typer.Exit(1)

    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    return settings


def _run(action: Callable[[TemporaryStorage], Awaitable[T]]) -> T:
    """Open the store, run one action against it and close it again."""
    settings = _load_settings()

    async def runner() -> T:
        async with TemporaryStorage.from_settings(settings) as storage:
            return await action(storage)

    try:
        return asyncio.run(runner())
    except TempStoreError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def create(
    name: Annotated[
        Optional[str], typer.Option("--name", "-n", help="Display name")
    ] = None,
    content_type: Annotated[
        Optional[str], typer.Option("--type", "-t", help="MIME type")
    ] = None,
    from_file: Annotated[
        Optional[Path],
        typer.Option(
            "--from-file", "-f", exists=True, dir_okay=False, help="Copy content from a file"
        ),
    ] = None,
) -> None:
    """Create a new entry and print its id.

    The id is the only way to reach the entry afterwards.
    """

    async def action(storage: TemporaryStorage) -> str:
        object_id = await storage.gateway.create(name=name, content_type=content_type)
        if from_file is not None:
            with from_file.open("rb") as src, await storage.gateway.open_stream(
                object_id, "w"
            ) as dst:
                shutil.copyfileobj(src, dst)
        return object_id

    typer.echo(_run(action))


@app.command()
def info(
    object_id: Annotated[str, typer.Argument(help="Object id")],
) -> None:
    """Show name, content type and size of one entry."""

    async def action(storage: TemporaryStorage) -> dict[str, str]:
        with await storage.gateway.resolve(object_id) as resolved:
            return {
                "id": resolved.id,
                "name": resolved.name or "",
                "content_type": resolved.content_type,
                "size_bytes": str(resolved.size_bytes),
            }

    details = _run(action)

    table = Table(show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    for key, value in details.items():
        table.add_row(key, value)
    console.print(table)


@app.command()
def cat(
    object_id: Annotated[str, typer.Argument(help="Object id")],
    output: Annotated[
        Optional[Path], typer.Option("--output", "-o", help="Write to a file instead")
    ] = None,
) -> None:
    """Write the content of one entry to stdout or a file."""

    async def action(storage: TemporaryStorage) -> None:
        with await storage.gateway.resolve(object_id) as resolved:
            if output is not None:
                with output.open("wb") as dst:
                    shutil.copyfileobj(resolved.stream, dst)
            else:
                stdout = typer.get_binary_stream("stdout")
                shutil.copyfileobj(resolved.stream, stdout)
                stdout.flush()

    _run(action)


@app.command()
def write(
    object_id: Annotated[str, typer.Argument(help="Object id")],
    source: Annotated[
        Path, typer.Argument(exists=True, dir_okay=False, help="File to copy in")
    ],
    append: Annotated[
        bool, typer.Option("--append", "-a", help="Append instead of replacing")
    ] = False,
) -> None:
    """Replace (or append to) the content of one entry."""

    async def action(storage: TemporaryStorage) -> None:
        mode = "wa" if append else "w"
        with source.open("rb") as src, await storage.gateway.open_stream(
            object_id, mode
        ) as dst:
            shutil.copyfileobj(src, dst)

    _run(action)


@app.command("type")
def content_type(
    object_id: Annotated[str, typer.Argument(help="Object id")],
) -> None:
    """Print the content type of one entry."""

    async def action(storage: TemporaryStorage) -> str:
        return await storage.gateway.get_content_type(object_id)

    typer.echo(_run(action))


@app.command("set-type")
def set_type(
    object_id: Annotated[str, typer.Argument(help="Object id")],
    new_type: Annotated[str, typer.Argument(help="New MIME type")],
) -> None:
    """Change the content type of one entry."""

    async def action(storage: TemporaryStorage) -> bool:
        return await storage.gateway.update_content_type(object_id, new_type)

    _run(action)
    console.print(f"[green]Content type set to[/green] {new_type}")


@app.command()
def delete(
    object_id: Annotated[str, typer.Argument(help="Object id")],
) -> None:
    """Delete one entry and print the number of rows removed."""

    async def action(storage: TemporaryStorage) -> int:
        return await storage.gateway.delete_one(object_id)

    typer.echo(_run(action))


@app.command()
def sweep(
    ttl_seconds: Annotated[
        Optional[int],
        typer.Option("--ttl-seconds", min=0, help="Override the configured TTL"),
    ] = None,
) -> None:
    """Remove every entry older than the TTL."""
    ttl = timedelta(seconds=ttl_seconds) if ttl_seconds is not None else None

    async def action(storage: TemporaryStorage) -> int:
        return await storage.sweeper.sweep(ttl=ttl)

    removed = _run(action)
    console.print(f"Removed [bold]{removed}[/bold] expired entries")


@app.command()
def compact(
    ttl_seconds: Annotated[
        Optional[int],
        typer.Option("--ttl-seconds", min=0, help="Minimum age of an orphan file"),
    ] = None,
) -> None:
    """Remove backing files that have no metadata row."""
    ttl = timedelta(seconds=ttl_seconds) if ttl_seconds is not None else None

    async def action(storage: TemporaryStorage) -> int:
        return await storage.sweeper.compact(ttl=ttl)

    removed = _run(action)
    console.print(f"Removed [bold]{removed}[/bold] orphan files")


@app.command()
def watch(
    interval: Annotated[
        Optional[float],
        typer.Option("--interval", "-i", min=0.1, help="Seconds between sweeps"),
    ] = None,
) -> None:
    """Sweep periodically until interrupted."""
    settings = _load_settings()
    effective_interval = interval if interval is not None else settings.SWEEP_INTERVAL_SECONDS

    console.print(
        f"[dim]Sweeping {settings.STORE_DIR} every {effective_interval:g}s "
        f"(TTL {settings.TTL_SECONDS}s). Press Ctrl+C to stop.[/dim]"
    )

    async def runner() -> None:
        async with TemporaryStorage.from_settings(settings) as storage:
            await storage.sweeper.run_periodic(effective_interval)

    try:
        asyncio.run(runner())
    except KeyboardInterrupt:
        console.print("[yellow]Stopped.[/yellow]")


@app.command()
def config() -> None:
    """Show current configuration."""
    settings = _load_settings()

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)


@app.command()
def version() -> None:
    """Print version."""
    console.print(f"tempstore {__version__}")


if __name__ == "__main__":
    app()
