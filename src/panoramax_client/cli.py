"""
CLI for the Panoramax client.

Commands:
- live: Check whether the API is reachable
- collection: List the images of a collection
- item: Show the metadata of one image
- download: Save the best variant of an image to disk
- info: Show configuration
"""

from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from .cache import PanoramaxClient
from .config import settings
from .errors import DecodeError
from .logging import setup_logging

app = typer.Typer(
    name="panoramax-client",
    help="Browse Panoramax collections and download pictures",
)
console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    api: str = typer.Option(settings.api_url, "--api", "-a", help="Panoramax API base URL"),
):
    """Panoramax client - cached access to street-level imagery."""
    log_level = "DEBUG" if verbose else settings.log_level
    setup_logging(level=log_level, json_output=settings.log_json)
    ctx.obj = {"api": api}
    logger.debug("CLI initialized with log level: {}, api: {}", log_level, api)


def _client() -> PanoramaxClient:
    return PanoramaxClient.from_settings(settings)


@app.command()
def live(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Probe even if a recent result exists"),
):
    """Check whether the API is reachable."""
    api = ctx.obj["api"]
    with _client() as client:
        if client.is_live(api, force=force):
            console.print(f"[green]{api} is live[/]")
        else:
            console.print(f"[red]{api} is not reachable[/]")
            raise typer.Exit(1)


@app.command()
def collection(
    ctx: typer.Context,
    collection_id: str = typer.Argument(..., help="Collection identifier"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum number of rows to show"),
):
    """List the images of a collection."""
    api = ctx.obj["api"]
    logger.info("Fetching collection {} from {}", collection_id, api)
    with _client() as client:
        try:
            result = client.get_collection(api, collection_id)
        except DecodeError as e:
            console.print(f"[red]Malformed response: {e}[/]")
            raise typer.Exit(1)

    if result is None:
        console.print("[yellow]No data available[/]")
        raise typer.Exit(1)

    table = Table(title=f"Collection {collection_id} ({len(result)} images)")
    table.add_column("Id", style="cyan")
    table.add_column("Lat", style="green")
    table.add_column("Lon", style="green")
    table.add_column("Best asset")
    for image in result[:limit]:
        best = image.best_asset()
        table.add_row(
            image.id,
            f"{image.lat:.6f}",
            f"{image.lon:.6f}",
            str(best.href) if best is not None and best.href is not None else "-",
        )
    console.print(table)
    if len(result) > limit:
        console.print(f"... and {len(result) - limit} more")


@app.command()
def item(
    ctx: typer.Context,
    collection_id: str = typer.Argument(..., help="Collection identifier"),
    image_id: str = typer.Argument(..., help="Image identifier"),
):
    """Show the metadata of one image."""
    api = ctx.obj["api"]
    with _client() as client:
        try:
            image = client.get_item(api, collection_id, image_id)
        except DecodeError as e:
            console.print(f"[red]Malformed response: {e}[/]")
            raise typer.Exit(1)

    if image is None:
        console.print("[yellow]No data available[/]")
        raise typer.Exit(1)

    table = Table(title=f"Image {image.id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Collection", image.collection)
    table.add_row("Position", f"{image.lat:.6f}, {image.lon:.6f}")
    table.add_row("Providers", ", ".join(p.name for p in image.providers) or "-")
    table.add_row("Datetime", image.properties.datetime or "-")
    table.add_row("License", image.properties.license or "-")
    table.add_row("Camera", " ".join(filter(None, [image.properties.exif.make, image.properties.exif.model])) or "-")
    table.add_row("Assets", ", ".join(image.assets) or "-")
    console.print(table)


@app.command()
def download(
    ctx: typer.Context,
    collection_id: str = typer.Argument(..., help="Collection identifier"),
    image_id: str = typer.Argument(..., help="Image identifier"),
    output: Path = typer.Argument(..., help="Destination file"),
):
    """Save the best available variant of an image."""
    api = ctx.obj["api"]
    with _client() as client:
        try:
            data = client.get_image_bytes(api, collection_id, image_id)
        except DecodeError as e:
            console.print(f"[red]Malformed response: {e}[/]")
            raise typer.Exit(1)

    if data is None:
        console.print("[yellow]No data available[/]")
        raise typer.Exit(1)

    output.write_bytes(data)
    logger.info("Saved image {} to {} ({} bytes)", image_id, output, len(data))
    console.print(f"[green]Saved {len(data)} bytes to {output}[/]")


@app.command()
def info():
    """Show configuration."""
    table = Table(title="Settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("API URL", settings.api_url)
    table.add_row("Vector Tiles", settings.mvt_url)
    table.add_row("Max Backoff", f"{settings.max_wait_seconds}s")
    table.add_row("Live TTL", f"{settings.live_ttl_seconds}s")
    table.add_row("Request Timeout", f"{settings.request_timeout}s")
    table.add_row("Log Level", settings.log_level)

    console.print(table)


if __name__ == "__main__":
    app()
