"""
CLI for NFT Flipper.

Mirrors an NFT collection, flips every image horizontally and republishes the
flipped collection to IPFS.
"""

import logging
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from nft_flipper import __version__
from nft_flipper.config import Config, GLOBAL_CONFIG_FILE
from nft_flipper.errors import Aborted, ConfigMissing, FlipperError
from nft_flipper.models import Category
from nft_flipper.pipeline import (
    CONFIRM_PROMPT,
    build_contract,
    build_fetcher,
    build_pinner,
    build_tree,
    run_pipeline,
)
from nft_flipper.stages import fetch_originals, flip_originals, inspect_collection, publish as publish_tree

console = Console()
logger = logging.getLogger("nft_flipper.cli")


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def load_config(config_path: Optional[str], output: Optional[str]) -> Config:
    """Load config, apply --output, and fail with exit 1 when required values are missing."""
    cfg = Config.load(Path(config_path) if config_path else None)
    if output:
        cfg.defaults.output_dir = output

    try:
        return cfg.require()
    except ConfigMissing as e:
        console.print("[red]Configuration issues:[/red]")
        for issue in e.issues:
            console.print(f"  - {issue}")
        fail(e)


def fail(error: FlipperError) -> None:
    logger.error(error.describe())
    console.print(f"\n[red]{error.describe()}[/red]")
    sys.exit(1)


def common_options(func):
    func = click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")(func)
    func = click.option("--output", "-o", type=click.Path(), default=None, help="Output root directory")(func)
    func = click.option("--config", "config_path", type=click.Path(), default=None, help="Config file path")(func)
    return func


def _progress() -> Progress:
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    )


@click.group()
@click.version_option(version=__version__)
def main():
    """NFT Flipper - mirror, flip and republish an NFT collection."""
    pass


@main.command()
@common_options
@click.option("--yes", "-y", is_flag=True, help="Publish without the confirmation prompt")
@click.option("--skip-failed", is_flag=True, help="Skip tokens that fail to fetch instead of aborting")
@click.option("--no-publish", is_flag=True, help="Stop after flipping")
def run(config_path: Optional[str], output: Optional[str], verbose: bool, yes: bool, skip_failed: bool, no_publish: bool):
    """Fetch originals, flip them, then publish after confirmation."""
    setup_logging(verbose)
    cfg = load_config(config_path, output)
    tree = build_tree(cfg)

    def confirm(prompt: str) -> bool:
        if yes:
            return True
        return click.confirm(prompt, default=False)

    try:
        with ExitStack() as stack:
            contract = stack.enter_context(build_contract(cfg))
            fetcher = stack.enter_context(build_fetcher(cfg))
            pinner = None if no_publish else build_pinner(cfg)
            if pinner:
                stack.enter_context(pinner)

            with _progress() as progress:
                task = progress.add_task("Inspecting collection...", total=None)

                def on_item(stage: str, token_id: int, bound: int):
                    progress.update(task, description=f"{stage}: token #{token_id} / {bound}")

                # The gate must run outside the live progress display
                def gated(prompt: str) -> bool:
                    progress.stop()
                    return confirm(prompt)

                result = run_pipeline(
                    cfg,
                    tree,
                    contract,
                    fetcher,
                    pinner,
                    confirm=gated,
                    skip_failed=skip_failed or cfg.defaults.skip_failed,
                    on_item=on_item,
                )
    except Aborted as e:
        console.print(f"[yellow]{e.message}. Flipped files are kept in {tree.category_dir(Category.FLIPPED)}[/yellow]")
        sys.exit(1)
    except FlipperError as e:
        fail(e)

    _print_summary(result.collection.name, result.fetch, result.transform)
    if result.publish:
        _print_publish(result.publish)
    elif not no_publish and not cfg.has_pinning:
        console.print("[yellow]Skipping publish (no PINATA_JWT configured)[/yellow]")


@main.command()
@common_options
@click.option("--skip-failed", is_flag=True, help="Skip tokens that fail to fetch instead of aborting")
def fetch(config_path: Optional[str], output: Optional[str], verbose: bool, skip_failed: bool):
    """Mirror original metadata and images."""
    setup_logging(verbose)
    cfg = load_config(config_path, output)
    tree = build_tree(cfg)
    skip_failed = skip_failed or cfg.defaults.skip_failed

    try:
        with build_contract(cfg) as contract, build_fetcher(cfg) as fetcher, _progress() as progress:
            task = progress.add_task("Inspecting collection...", total=None)
            collection = inspect_collection(contract)
            report = fetch_originals(
                collection,
                contract,
                fetcher,
                tree,
                cfg.endpoints.ipfs_gateway,
                skip_failed=skip_failed,
                on_item=lambda token_id, size: progress.update(task, description=f"fetch: token #{token_id} / {size}"),
            )
    except FlipperError as e:
        fail(e)

    console.print(f"[green]Fetched {len(report.fetched)} tokens of {collection.name}[/green]")
    if report.skipped:
        console.print(f"[yellow]Skipped: {', '.join(str(i) for i in report.skipped_ids)}[/yellow]")


@main.command()
@common_options
def flip(config_path: Optional[str], output: Optional[str], verbose: bool):
    """Flip everything already fetched."""
    setup_logging(verbose)
    cfg = load_config(config_path, output)
    tree = build_tree(cfg)

    try:
        with _progress() as progress:
            task = progress.add_task("Flipping...", total=None)
            report = flip_originals(
                tree,
                on_item=lambda token_id, last: progress.update(task, description=f"flip: token #{token_id} / {last}"),
            )
    except FlipperError as e:
        fail(e)

    console.print(f"[green]Flipped {len(report.flipped)} tokens[/green]")
    if report.missing:
        console.print(f"[yellow]Missing from original tree: {', '.join(str(i) for i in report.missing)}[/yellow]")


@main.command()
@common_options
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
def publish(config_path: Optional[str], output: Optional[str], verbose: bool, yes: bool):
    """Pin the flipped images and metadata."""
    setup_logging(verbose)
    cfg = load_config(config_path, output)
    tree = build_tree(cfg)

    pinner = build_pinner(cfg)
    if pinner is None:
        console.print("[red]Error: PINATA_JWT not configured.[/red]")
        sys.exit(1)

    if not yes and not click.confirm(CONFIRM_PROMPT, default=False):
        console.print("[yellow]Publishing declined.[/yellow]")
        pinner.close()
        sys.exit(1)

    try:
        with pinner:
            result = publish_tree(tree, pinner, cfg.defaults.reference_scheme)
    except FlipperError as e:
        fail(e)

    _print_publish(result)


@main.command()
@common_options
def status(config_path: Optional[str], output: Optional[str], verbose: bool):
    """Show sync progress for the configured contract."""
    setup_logging(verbose)
    cfg = load_config(config_path, output)
    tree = build_tree(cfg)

    original = tree.peek(Category.ORIGINAL)
    flipped = tree.peek(Category.FLIPPED)
    skipped = tree.load_skipped()

    table = Table(title=f"Contract {tree.contract_address}")
    table.add_column("Tree")
    table.add_column("Files", justify="right")
    table.add_column("Last token", justify="right")

    for label, category, snap in (("original", Category.ORIGINAL, original), ("flipped", Category.FLIPPED, flipped)):
        last = "-" if snap.is_empty else str(snap.highest_persisted_id)
        table.add_row(label, str(len(tree.list_metadata(category))), last)
    console.print(table)

    if skipped:
        console.print(f"[yellow]Skipped tokens: {', '.join(str(i) for i in sorted(skipped))}[/yellow]")

    try:
        last_publish = tree.load_publish()
    except FlipperError as e:
        fail(e)
    if last_publish:
        _print_publish(last_publish)
    else:
        console.print("[dim]Not published yet[/dim]")


@main.command("check-config")
@click.option("--config", "config_path", type=click.Path(), default=None, help="Config file path")
def check_config(config_path: Optional[str]):
    """Check configuration status."""
    cfg = Config.load(Path(config_path) if config_path else None)
    issues = cfg.validate()
    endpoints = cfg.endpoints

    def state(value: str) -> str:
        return "[green]configured[/green]" if value else "[red]missing[/red]"

    console.print("[bold]Configuration Status:[/bold]")
    console.print(f"  RPC endpoint: {state(endpoints.rpc_url)}")
    console.print(f"  IPFS gateway: {state(endpoints.ipfs_gateway)} [dim]{endpoints.ipfs_gateway}[/dim]")
    console.print(f"  Contract: {state(endpoints.contract_address)} [dim]{endpoints.contract_address}[/dim]")
    console.print(f"  Pinata JWT: {'[green]configured[/green]' if endpoints.pinata_jwt else '[yellow]missing (publish disabled)[/yellow]'}")

    if issues:
        console.print("\n[red]Missing required settings:[/red]")
        for issue in issues:
            console.print(f"  - {issue}")
        sys.exit(1)
    else:
        console.print("\n[green]All required settings configured![/green]")


@main.command("init-config")
@click.option("--config", "config_path", type=click.Path(), default=None, help="Config file path")
@click.option("--rpc", help="JSON-RPC endpoint URL")
@click.option("--gateway", help="IPFS gateway base URL")
@click.option("--contract", help="Collection contract address")
@click.option("--pinata-jwt", help="Pinata JWT for publishing")
@click.option("--output", "output_dir", help="Output root directory")
def init_config(config_path: Optional[str], rpc: str, gateway: str, contract: str, pinata_jwt: str, output_dir: str):
    """Save settings to the config file."""
    path = Path(config_path) if config_path else GLOBAL_CONFIG_FILE
    cfg = Config.load(path)

    if rpc:
        cfg.endpoints.rpc_url = rpc
    if gateway:
        cfg.endpoints.ipfs_gateway = gateway
    if contract:
        cfg.endpoints.contract_address = contract
    if pinata_jwt:
        cfg.endpoints.pinata_jwt = pinata_jwt
    if output_dir:
        cfg.defaults.output_dir = output_dir

    cfg.save(path)
    console.print(f"[green]Configuration saved to {path}[/green]")


def _print_summary(name: str, fetch_report, transform_report) -> None:
    lines = [
        f"[bold]{name}[/bold]",
        f"Fetched: {len(fetch_report.fetched)} (tokens {fetch_report.start_id}..{fetch_report.end_id - 1})"
        if not fetch_report.is_noop
        else "Fetched: already up to date",
        f"Flipped: {len(transform_report.flipped)}",
    ]
    if fetch_report.skipped:
        lines.append(f"[yellow]Skipped: {', '.join(str(i) for i in fetch_report.skipped_ids)}[/yellow]")
    console.print(Panel.fit("\n".join(lines), title="NFT Flipper"))


def _print_publish(result) -> None:
    console.print(Panel.fit(
        f"Images: [cyan]{result.images.content_hash}[/cyan] ({result.images.file_count} files)\n"
        f"Metadata: [cyan]{result.metadata.content_hash}[/cyan] ({result.metadata.file_count} files)\n\n"
        f"Base URI: [bold]{result.base_uri}[/bold]",
        title="Published",
    ))


if __name__ == "__main__":
    main()
