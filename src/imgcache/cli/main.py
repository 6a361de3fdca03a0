"""
CLI for the image cache.

Commands:
    imgcache get URL - Cache an image and print its local URI
    imgcache stats - Show cache size and file count
    imgcache clear - Delete all cached images
    imgcache config - Show current configuration
    imgcache version - Print version
"""

from __future__ import annotations

import asyncio
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from imgcache import __version__
from imgcache.cache.service import CacheService
from imgcache.config import Settings, clear_settings_cache, get_settings
from imgcache.logging import setup_logging
from imgcache.types import CacheStats

app = typer.Typer(
    name="imgcache",
    help="Persistent image cache - download once, serve from disk",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except Exception:
        return None


def _require_settings() -> Settings:
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'imgcache config' to see what's wrong."
        )
        raise typer.Exit(1)
    setup_logging(settings.LOG_LEVEL)
    return settings


async def _get(settings: Settings, url: str) -> str | None:
    async with CacheService.from_settings(settings) as service:
        path = await service.get(url)
    return path.resolve().as_uri() if path is not None else None


async def _stats(settings: Settings) -> CacheStats:
    async with CacheService.from_settings(settings) as service:
        return await service.stats()


async def _clear(settings: Settings) -> bool:
    async with CacheService.from_settings(settings) as service:
        return await service.clear()


@app.command()
def get(
    url: Annotated[str, typer.Argument(help="Image URL to cache")],
) -> None:
    """Cache an image and print the local URI.

    Prints the original URL and exits non-zero when the image could not be
    cached.
    """
    settings = _require_settings()
    uri = asyncio.run(_get(settings, url))
    if uri is None:
        error_console.print("[yellow]Not cached, use the original URL.[/yellow]")
        typer.echo(url)
        raise typer.Exit(1)
    typer.echo(uri)


@app.command()
def stats() -> None:
    """Show cache size and file count."""
    settings = _require_settings()
    result = asyncio.run(_stats(settings))

    table = Table(title="Image Cache", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Files", str(result.total_files))
    table.add_row("Size", result.formatted_size)
    table.add_row("Bytes", str(result.total_size_bytes))
    table.add_row("Location", str(settings.image_dir))
    console.print(table)


@app.command()
def clear(
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation"),
    ] = False,
) -> None:
    """Delete all cached images and the index."""
    settings = _require_settings()
    if not yes:
        typer.confirm(f"Delete everything under {settings.image_dir}?", abort=True)

    if not asyncio.run(_clear(settings)):
        error_console.print("[red]Error:[/red] Failed to clear image cache.")
        raise typer.Exit(1)
    console.print("[green]Image cache cleared.[/green]")


@app.command()
def config() -> None:
    """Show current configuration."""
    console.print()
    console.print("[bold]Image Cache Configuration[/bold]")
    console.print()

    settings = _get_settings_safe()
    if settings is None:
        error_console.print("[red]Configuration is invalid.[/red]")
        error_console.print("Check the variables set in your environment or .env file.")
        raise typer.Exit(1)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.redacted_display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)
    console.print()


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"imgcache version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
