#!/usr/bin/env python3
"""
chunkshare CLI

Command-line interface for the tracker and for peers.

Usage:
    chunkshare tracker                    # Run the tracker
    chunkshare serve                      # Serve and advertise shared files
    chunkshare register FILE              # Advertise one file
    chunkshare request FILE               # Ask the tracker who has a file
    chunkshare download HOST:PORT FILE    # Download from a given peer
    chunkshare fetch FILE                 # Request + download
    chunkshare exit                       # Withdraw our advertisements
    chunkshare files                      # List shareable files
"""

import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn
from rich.panel import Panel
from rich.logging import RichHandler

from .config import load_config
from .node import PeerNode
from .tracker import TrackerService
from .transfer import PeerIdentity

console = Console()


def setup_logging(verbose: bool = False, level: str = 'INFO'):
    """Configure logging with rich output."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)]
    )


def parse_peer(value: str) -> PeerIdentity:
    try:
        return PeerIdentity.parse(value)
    except ValueError:
        raise click.BadParameter(f"{value} (use host:port)")


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--config', 'config_path', type=click.Path(dir_okay=False),
              help='JSON config file')
@click.option('--tracker', help='Tracker address (host:port)')
@click.option('--shared-dir', type=click.Path(file_okay=False), help='Directory of files to share')
@click.option('--download-dir', type=click.Path(file_okay=False), help='Directory for downloads')
@click.pass_context
def cli(ctx, verbose, config_path, tracker, shared_dir, download_dir):
    """chunkshare - tracker-coordinated P2P file sharing."""
    config = load_config(Path(config_path) if config_path else None)

    if tracker:
        address = parse_peer(tracker)
        config.tracker_host, config.tracker_port = address.host, address.port
    if shared_dir:
        config.shared_dir = Path(shared_dir)
    if download_dir:
        config.download_dir = Path(download_dir)

    setup_logging(verbose, config.log_level)
    ctx.ensure_object(dict)
    ctx.obj['config'] = config


@cli.command()
@click.option('--port', type=int, help='Tracker TCP port')
@click.option('--api/--no-api', default=False, help='Also serve the admin REST API')
@click.option('--api-port', type=int, help='Admin API port')
@click.pass_context
def tracker(ctx, port, api, api_port):
    """Run the tracker."""
    config = ctx.obj['config']
    if port is not None:
        config.tracker_port = port
    if api_port is not None:
        config.api_port = api_port

    async def run():
        service = TrackerService(
            host=config.host,
            port=config.tracker_port,
            io_timeout=config.io_timeout,
        )

        try:
            await service.start()

            console.print(Panel.fit(
                f"[bold green]Tracker Started[/bold green]\n\n"
                f"Address: [yellow]{config.host}:{service.address[1]}[/yellow]",
                title="Tracker Info"
            ))

            if api:
                console.print(f"\n[dim]Admin API at http://localhost:{config.api_port}[/dim]\n")

                from .api import run_api_server
                await run_api_server(service, host=config.host, port=config.api_port)
            else:
                console.print("\n[dim]Press Ctrl+C to stop[/dim]\n")
                await service.serve_forever()
        finally:
            await service.stop()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[green]Tracker stopped[/green]")


@cli.command()
@click.option('--port', type=int, help='Chunk server TCP port')
@click.option('--advertise', type=click.Choice(['all', 'random', 'none']),
              default='all', show_default=True, help='Which shared files to register')
@click.pass_context
def serve(ctx, port, advertise):
    """Serve shared files to other peers."""
    config = ctx.obj['config']
    if port is not None:
        config.transfer_port = port

    async def run():
        node = PeerNode(config)
        advertised = []

        try:
            await node.start()

            if advertise == 'all':
                advertised = await node.advertise_all()
            elif advertise == 'random':
                chosen = await node.advertise_random()
                advertised = [chosen] if chosen else []

            console.print(Panel.fit(
                f"[bold green]Peer Started[/bold green]\n\n"
                f"Chunk Server Port: [yellow]{node.server_port}[/yellow]\n"
                f"Tracker: [yellow]{node.tracker.address}[/yellow]\n"
                f"Shared Dir: [blue]{config.shared_dir}[/blue]\n"
                f"Advertised: [cyan]{len(advertised)}[/cyan] file(s)",
                title="Peer Info"
            ))
            console.print("\n[dim]Press Ctrl+C to stop[/dim]\n")

            await node.serve()
        finally:
            if advertised:
                await node.leave()
            await node.stop()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[green]Peer stopped[/green]")


@cli.command()
@click.argument('file_name')
@click.option('--port', type=int, help='Port our chunk server listens on')
@click.pass_context
def register(ctx, file_name, port):
    """Advertise FILE_NAME to the tracker."""
    config = ctx.obj['config']
    if port is not None:
        config.transfer_port = port

    node = PeerNode(config)
    try:
        registered = asyncio.run(node.register(file_name))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='FILE_NAME')

    if registered:
        console.print(f"[green]✓ Registered {file_name} on port {config.transfer_port}[/green]")
    else:
        console.print(f"[red]✗ Registration of {file_name} failed[/red]")
        ctx.exit(1)


@cli.command()
@click.argument('file_name')
@click.pass_context
def request(ctx, file_name):
    """Ask the tracker which peer has FILE_NAME."""
    node = PeerNode(ctx.obj['config'])
    try:
        peer = asyncio.run(node.request_file(file_name))
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='FILE_NAME')

    if peer is None:
        console.print(f"[yellow]No peer has {file_name}[/yellow]")
        ctx.exit(1)
    console.print(str(peer))


def _run_download(node: PeerNode, coro_factory):
    """Run a download with a rich progress bar."""

    async def run():
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            console=console,
        ) as progress:
            task = progress.add_task("Connecting...", total=100)

            def update_progress(p):
                if p.phase == 'failed':
                    return
                progress.update(
                    task,
                    completed=p.progress_percent,
                    description=f"Downloading... ({p.processed_chunks}/{p.total_chunks} chunks)"
                )

            return await coro_factory(update_progress)

    try:
        result = asyncio.run(run())
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint='FILE_NAME')

    if result:
        stats = node.downloader.last_progress
        console.print(f"\n[green]✓ Downloaded to: {result}[/green]")
        if stats and stats.empty_chunks:
            console.print(f"[yellow]{stats.empty_chunks} empty chunk(s) received; "
                          f"check the chunk count[/yellow]")
    else:
        console.print("\n[red]✗ Download failed[/red]")
    return result


@cli.command()
@click.argument('peer')
@click.argument('file_name')
@click.option('--chunks', type=click.IntRange(min=0),
              help='Exact chunk count (default: ask the peer for the file size)')
@click.pass_context
def download(ctx, peer, file_name, chunks):
    """Download FILE_NAME from PEER (host:port)."""
    address = parse_peer(peer)
    node = PeerNode(ctx.obj['config'])

    result = _run_download(
        node,
        lambda callback: node.download(address, file_name, chunks, callback)
    )
    if not result:
        ctx.exit(1)


@cli.command()
@click.argument('file_name')
@click.option('--chunks', type=click.IntRange(min=0),
              help='Exact chunk count (default: ask the peer for the file size)')
@click.pass_context
def fetch(ctx, file_name, chunks):
    """Find FILE_NAME through the tracker and download it."""
    node = PeerNode(ctx.obj['config'])

    result = _run_download(
        node,
        lambda callback: node.fetch(file_name, chunks, callback)
    )
    if not result:
        ctx.exit(1)


@cli.command('exit')
@click.option('--port', type=int, help='Port our chunk server listened on')
@click.pass_context
def exit_tracker(ctx, port):
    """Withdraw our advertisements from the tracker."""
    config = ctx.obj['config']
    if port is not None:
        config.transfer_port = port

    node = PeerNode(config)
    if asyncio.run(node.leave()):
        console.print("[green]✓ Sent EXIT to tracker[/green]")
    else:
        console.print("[red]✗ Could not reach tracker[/red]")
        ctx.exit(1)


@cli.command('files')
@click.pass_context
def list_files(ctx):
    """List shareable files."""
    node = PeerNode(ctx.obj['config'])
    names = node.store.list_files()

    if not names:
        console.print(f"[yellow]No files in {node.store.root}[/yellow]")
        return

    table = Table(title="Shared Files")
    table.add_column("Name", style="cyan")
    table.add_column("Size", justify="right", style="yellow")

    for name in names:
        size = (node.store.root / name).stat().st_size
        table.add_row(name, format_size(size))

    console.print(table)


def format_size(bytes_count: int) -> str:
    """Format bytes as human-readable size."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_count < 1024:
            return f"{bytes_count:.1f} {unit}"
        bytes_count /= 1024
    return f"{bytes_count:.1f} PB"


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
