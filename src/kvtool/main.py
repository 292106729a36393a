"""Main entry point for the kvtool CLI.

Provides a Typer-based CLI for managing Cloudflare Workers KV namespaces
by title: listing, creating, renaming, copying, clearing, dumping and
loading namespaces, and showing Pages project bindings.
"""

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from kvtool import __version__
from kvtool.config import DEFAULT_CONFIG_PATH, KvConfig, get_log_dir
from kvtool.errors import ConfigError, KvToolError
from kvtool.logging_config import get_logger, setup_logging
from kvtool.services.api import CloudflareClient
from kvtool.services.namespaces import NamespaceDirectory
from kvtool.services.transfer import BulkTransfer

console = Console()
logger = get_logger(__name__)

T = TypeVar("T")

app = typer.Typer(
    name="kvtool",
    help="Manage Cloudflare Workers KV namespaces by title",
    rich_markup_mode="rich",
)


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"kvtool version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Path = typer.Option(
        DEFAULT_CONFIG_PATH,
        "--config",
        "-c",
        help="Path to wrangler-style config file",
    ),
    concurrency: Optional[int] = typer.Option(
        None,
        "--concurrency",
        min=1,
        help="Maximum simultaneous per-key requests or file writes",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Log requests to stderr",
    ),
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """kvtool: Manage Cloudflare Workers KV namespaces.

    Reads [bold]account_id[/bold] and [bold]api_token[/bold] from
    ./wrangler.toml (or --config).

    ## Commands

    * [bold cyan]list[/bold cyan] - List namespaces
    * [bold cyan]create[/bold cyan] / [bold cyan]rename[/bold cyan] / [bold cyan]delete[/bold cyan] - Manage namespaces
    * [bold cyan]copy[/bold cyan] / [bold cyan]clear[/bold cyan] - Bulk key operations
    * [bold cyan]dump[/bold cyan] / [bold cyan]load[/bold cyan] - Local directory export and import
    * [bold cyan]pages[/bold cyan] - Show a Pages project's KV bindings
    """
    setup_logging(get_log_dir(), verbose=verbose)
    ctx.obj = {"config_path": config_path, "concurrency": concurrency}


def load_config(ctx: typer.Context) -> KvConfig:
    """Load the configuration named by the global options."""
    options = ctx.obj or {}
    try:
        return KvConfig.load(
            options.get("config_path", DEFAULT_CONFIG_PATH), options.get("concurrency")
        )
    except ConfigError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)


def run_operation(
    ctx: typer.Context, operation: Callable[[CloudflareClient], Awaitable[T]]
) -> T:
    """Run *operation* against an open API client.

    Errors are reported once here; the process exits with status 1.
    """
    config = load_config(ctx)

    async def runner() -> T:
        async with CloudflareClient(config) as client:
            return await operation(client)

    try:
        return asyncio.run(runner())
    except KvToolError as e:
        logger.error(f"{ctx.command_path} failed: {e}")
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)


@app.command("list")
def list_namespaces(ctx: typer.Context) -> None:
    """List all namespaces, ordered by title."""
    namespaces = run_operation(ctx, lambda client: NamespaceDirectory(client).list())

    if not namespaces:
        console.print("[yellow]No namespaces found.[/yellow]")
        return

    table = Table(title=f"KV Namespaces ({len(namespaces)})")
    table.add_column("Title", style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("URL Encoding", style="green")

    for namespace in namespaces:
        table.add_row(
            escape(namespace.title),
            namespace.id,
            "yes" if namespace.supports_url_encoding else "no",
        )

    console.print(table)


@app.command("create")
def create_namespace(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Title of the new namespace"),
) -> None:
    """Create a namespace."""
    namespace_id = run_operation(ctx, lambda client: NamespaceDirectory(client).create(title))
    console.print(f"[green]Created {escape(title)}[/green] [dim]({namespace_id})[/dim]")


@app.command("rename")
def rename_namespace(
    ctx: typer.Context,
    src: str = typer.Argument(..., help="Current namespace title"),
    dest: str = typer.Argument(..., help="New namespace title"),
) -> None:
    """Rename a namespace."""
    run_operation(ctx, lambda client: NamespaceDirectory(client).rename(src, dest))
    console.print(f"[green]Renamed {escape(src)} to {escape(dest)}[/green]")


@app.command("delete")
def delete_namespace(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Namespace title"),
    confirm: bool = typer.Option(
        False,
        "--confirm",
        help="Confirm destructive delete (required)",
    ),
) -> None:
    """Delete a namespace and everything in it (DESTRUCTIVE)."""
    if not confirm:
        console.print(Panel.fit(
            f"[red]WARNING: This will DELETE namespace {escape(title)} and all of its keys![/red]\n\n"
            "Run with --confirm to proceed.",
            title="Delete Namespace",
            border_style="red",
        ))
        raise typer.Exit(1)

    run_operation(ctx, lambda client: NamespaceDirectory(client).delete(title))
    console.print(f"[green]Deleted {escape(title)}[/green]")


@app.command("copy")
def copy_namespace(
    ctx: typer.Context,
    src: str = typer.Argument(..., help="Source namespace title"),
    dest: str = typer.Argument(..., help="Destination namespace title (created if missing)"),
) -> None:
    """Copy every key of one namespace into another."""
    result = run_operation(ctx, lambda client: BulkTransfer(client).copy(src, dest))

    if result.created:
        console.print(f"[cyan]Created namespace {escape(dest)}[/cyan]")
    console.print(f"[green]Copied {result.key_count} keys from {escape(src)} to {escape(dest)}[/green]")


@app.command("clear")
def clear_namespace(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Namespace title"),
) -> None:
    """Delete every key in a namespace."""
    result = run_operation(ctx, lambda client: BulkTransfer(client).clear(title))
    console.print(f"[green]Cleared {result.key_count} keys from {escape(title)}[/green]")


@app.command("dump")
def dump_namespace(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Namespace title"),
    directory: Path = typer.Argument(..., help="Target directory (created if missing)"),
) -> None:
    """Write every key of a namespace to a directory, one file per key."""
    result = run_operation(ctx, lambda client: BulkTransfer(client).dump(title, directory))
    console.print(f"[green]Dumped {result.key_count} keys from {escape(title)} to {escape(str(directory))}[/green]")


@app.command("load")
def load_namespace(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Namespace title (created if missing)"),
    directory: Path = typer.Argument(..., help="Directory produced by dump"),
) -> None:
    """Upload a dump directory into a namespace."""
    result = run_operation(ctx, lambda client: BulkTransfer(client).load(title, directory))

    if result.created:
        console.print(f"[cyan]Created namespace {escape(title)}[/cyan]")
    console.print(f"[green]Loaded {result.key_count} keys from {escape(str(directory))} into {escape(title)}[/green]")


@app.command("pages")
def pages_bindings(
    ctx: typer.Context,
    project: str = typer.Argument(..., help="Pages project name"),
) -> None:
    """Show the KV namespaces bound to a Pages project's production deployment."""
    bindings = run_operation(ctx, lambda client: BulkTransfer(client).list_bindings(project))

    if not bindings:
        console.print(f"[yellow]No KV bindings for {escape(project)}.[/yellow]")
        return

    for name, namespace_id in bindings.items():
        console.print(f"{escape(name)} [dim]{namespace_id}[/dim]")


# Entry point for the CLI
def cli_entry() -> None:
    """Entry point for the CLI application."""
    app()


if __name__ == "__main__":
    cli_entry()
