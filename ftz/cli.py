#!/usr/bin/env python3
"""
ftz CLI

Quickly transfer files between two systems connected via network.

Usage:
    ftz host DIR                     # Serve DIR for get and put
    ftz host --get-dir A --put-dir B # Separate download/upload dirs
    ftz get ftz://host/file.txt      # Fetch a file
    ftz put FILE ftz://host/dir/     # Upload a file
    ftz version                      # Print version
    ftz help                         # Print usage
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.progress import (
    Progress, SpinnerColumn, TextColumn, BarColumn, DownloadColumn,
    TransferSpeedColumn,
)
from rich.panel import Panel
from rich.logging import RichHandler

from . import __version__
from .config import Config, load_config
from .errors import FtzError
from .file.sandbox import SandboxDir
from .transfer import (
    HostCapabilities, TransferServer, fetch_file, push_file, parse_uri,
)
from .transfer.client import default_output_name
from .transfer.progress import TransferProgress, PHASE_HASHING, PHASE_COMPLETE

console = Console()


def setup_logging(verbose: bool = False, level: str = 'INFO'):
    """Configure logging with rich output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)],
        force=True,
    )


def describe_error(error: Exception) -> str:
    """One human-readable line for a failure, no traceback."""
    if isinstance(error, OSError) and error.strerror:
        if error.filename:
            return f"{error.strerror}: {error.filename}"
        return error.strerror
    return str(error) or type(error).__name__


def fail(ctx: click.Context, message: str):
    """Print an error and exit with status 1."""
    console.print(f"[red]✗ {message}[/red]")
    ctx.exit(1)


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False),
              help='JSON config file')
@click.pass_context
def cli(ctx, verbose, config_path):
    """ftz - Quickly transfer files between two systems connected via network."""
    config = load_config(Path(config_path) if config_path else None)
    setup_logging(verbose, config.log_level)
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


@cli.command(name='help')
@click.pass_context
def help_(ctx):
    """Print this help."""
    click.echo(ctx.parent.get_help())


@cli.command()
def version():
    """Print the version."""
    console.print(f"ftz {__version__}")


def open_capabilities(ctx: click.Context, directories: List[str],
                      get_dir: Optional[str], put_dir: Optional[str],
                      config: Config) -> HostCapabilities:
    """Open the hosted directories, failing the command on bad input."""
    if len(directories) > 1:
        fail(ctx, "More than one directory is not allowed!")

    common_dir = directories[0] if directories else None
    get_path = get_dir or common_dir or config.get_dir
    put_path = put_dir or common_dir or config.put_dir

    if get_path is None and put_path is None:
        fail(ctx, "Expected either one directory name or at least "
                  "--get-dir or --put-dir set!")

    opened = {}
    try:
        for name, path in (('get', get_path), ('put', put_path)):
            if path is not None:
                opened[name] = SandboxDir(path)
    except OSError as e:
        for directory in opened.values():
            directory.close()
        fail(ctx, f"Cannot open directory: {describe_error(e)}")

    return HostCapabilities(get_dir=opened.get('get'), put_dir=opened.get('put'))


@cli.command()
@click.argument('directory', nargs=-1, type=click.Path(file_okay=False))
@click.option('--get-dir', type=click.Path(file_okay=False),
              help='Directory for transfers to a client. No access outside it.')
@click.option('--put-dir', type=click.Path(file_okay=False),
              help='Directory for transfers from a client. No access outside it.')
@click.option('--port', type=int, default=None,
              help='Port where ftz will serve the data [default: 17457]')
@click.option('--strict', is_flag=True,
              help='Abort on the first failed connection (debugging)')
@click.pass_context
def host(ctx, directory, get_dir, put_dir, port, strict):
    """Host DIRECTORY for download and upload."""
    config = ctx.obj['config']
    capabilities = open_capabilities(ctx, list(directory), get_dir, put_dir, config)

    server = TransferServer(
        capabilities,
        host=config.host,
        port=port if port is not None else config.port,
        chunk_size=config.chunk_size,
        strict=strict or config.strict,
    )

    try:
        try:
            server.start()
        except OSError as e:
            fail(ctx, f"Cannot listen on port {server.port}: {describe_error(e)}")

        console.print(Panel.fit(
            f"[bold green]ftz Host Started[/bold green]\n\n"
            f"Port: [yellow]{server.address[1]}[/yellow]\n"
            f"Get Dir: [blue]{capabilities.get_dir.path if capabilities.get_dir else '-'}[/blue]\n"
            f"Put Dir: [blue]{capabilities.put_dir.path if capabilities.put_dir else '-'}[/blue]",
            title="Host Info"
        ))
        console.print("\n[dim]Press Ctrl+C to stop[/dim]\n")

        server.serve_forever()
    except KeyboardInterrupt:
        console.print("\n[yellow]Shutting down...[/yellow]")
    finally:
        server.stop()
        capabilities.close()


@cli.command()
@click.argument('uri')
@click.option('--output', '-o', type=click.Path(), help='Output path')
@click.pass_context
def get(ctx, uri, output):
    """Fetch a file from URI (ftz://host[:port]/path)."""
    config = ctx.obj['config']

    try:
        target = parse_uri(uri)
        output_path = Path(output) if output else Path(default_output_name(target))
        if output_path.is_dir():
            output_path = output_path / default_output_name(target)
    except ValueError as e:
        fail(ctx, describe_error(e))

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        DownloadColumn(),
        TransferSpeedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Downloading...", total=None)

        def update_progress(p: TransferProgress):
            progress.update(task, completed=p.transferred_bytes)

        try:
            fetch_file(target, output_path, chunk_size=config.chunk_size,
                       on_progress=update_progress,
                       timeout=config.connect_timeout)
        except (FtzError, OSError) as e:
            fail(ctx, describe_error(e))

    console.print(f"[green]✓ Downloaded to: {output_path}[/green]")


@cli.command()
@click.argument('file', type=click.Path(dir_okay=False))
@click.argument('uri')
@click.option('--progress', 'show_progress', is_flag=True,
              help='Show a progress bar')
@click.pass_context
def put(ctx, file, uri, show_progress):
    """Upload FILE (a local path) to URI (an ftz URI)."""
    config = ctx.obj['config']

    try:
        target = parse_uri(uri)
    except ValueError as e:
        fail(ctx, describe_error(e))

    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        DownloadColumn(),
        console=console,
        disable=not show_progress,
    ) as progress:
        hash_task = progress.add_task("Hashing", total=None)
        send_task = progress.add_task("Sending", total=None)
        result = {}

        def update_progress(p: TransferProgress):
            progress.update(hash_task, total=p.total_bytes, completed=p.hashed_bytes)
            if p.phase != PHASE_HASHING:
                progress.update(send_task, total=p.total_bytes,
                                completed=p.transferred_bytes)
            if p.phase == PHASE_COMPLETE:
                result['progress'] = p

        try:
            push_file(file, target, chunk_size=config.chunk_size,
                      on_progress=update_progress,
                      timeout=config.connect_timeout)
        except (FtzError, OSError) as e:
            fail(ctx, describe_error(e))

    done = result.get('progress')
    if done:
        console.print(
            f"[green]✓ Uploaded {format_size(done.transferred_bytes)} to "
            f"{target} ({format_size(done.speed_bytes_per_sec)}/s)[/green]"
        )


def format_size(bytes_count: float) -> str:
    """Format bytes as human-readable size."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_count < 1024:
            return f"{bytes_count:.1f} {unit}"
        bytes_count /= 1024
    return f"{bytes_count:.1f} PB"


def main(argv: Optional[List[str]] = None) -> int:
    """Console entry point. Usage errors exit with 1, not click's 2."""
    try:
        rv = cli.main(args=argv, prog_name='ftz', standalone_mode=False)
    except click.ClickException as e:
        e.show()
        return 1
    except click.Abort:
        console.print("[yellow]Aborted[/yellow]")
        return 1
    return rv if isinstance(rv, int) else 0


if __name__ == '__main__':
    sys.exit(main())
