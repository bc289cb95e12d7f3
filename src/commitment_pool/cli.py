#!/usr/bin/env python3
"""
Commitment Pool CLI

Command-line interface for operating a commitment pool, either on a local
state file or against a running pool API (--api-url).
"""

import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional, Union

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .api.pool_client import PoolAPIClient, PoolAPIError
from .api.pool_service import PoolService, PoolServiceError
from .config import Settings
from .errors import AccumulatorError

# Configure rich console
console = Console()
logger = logging.getLogger(__name__)

Backend = Union[PoolService, PoolAPIClient]

OPERATION_ERRORS = (AccumulatorError, PoolServiceError, PoolAPIError)


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def format_result(result: Any) -> str:
    """Format a result for JSON output."""
    return json.dumps(result, indent=2)


def print_result_table(title: str, result: Dict[str, Any]):
    """Print a flat result dictionary as a two-column table."""
    table = Table(title=title)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    for key, value in result.items():
        if isinstance(value, list):
            value = f"{len(value)} entries"
        table.add_row(key.replace("_", " ").title(), str(value))
    console.print(table)


def get_backend(ctx) -> Backend:
    """Return the remote client or the local service selected by the group options."""
    api_url = ctx.obj.get("api_url")
    if api_url:
        return PoolAPIClient(api_url)
    return PoolService(ctx.obj["state_file"], settings=ctx.obj["settings"])


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--state-file",
    envvar="POOL_STATE_FILE",
    default="pool_state.json",
    show_default=True,
    help="Local pool state file",
)
@click.option("--api-url", help="Use a running pool API instead of the local state file")
@click.pass_context
def cli(ctx, verbose: bool, state_file: str, api_url: Optional[str]):
    """
    Commitment Pool CLI - operate an append-only commitment accumulator.

    Deposits insert commitments into an incremental Merkle tree; withdrawals
    spend a nullifier against one of the recent roots.
    """
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["state_file"] = state_file
    ctx.obj["api_url"] = api_url
    ctx.obj["settings"] = Settings.from_env()


@cli.command()
@click.option("--depth", type=int, default=None, help="Tree depth (default POOL_TREE_DEPTH or 20)")
@click.option(
    "--history-size",
    type=int,
    default=None,
    help="Recent roots accepted by withdrawals (default POOL_ROOT_HISTORY_SIZE or 30)",
)
@click.option("--force", is_flag=True, help="Overwrite an existing state file")
@click.pass_context
def init(ctx, depth: Optional[int], history_size: Optional[int], force: bool):
    """Create an empty pool in the local state file."""
    settings: Settings = ctx.obj["settings"]
    depth = depth if depth is not None else settings.tree_depth
    history_size = history_size if history_size is not None else settings.root_history_size
    try:
        service = PoolService.initialize(
            ctx.obj["state_file"], depth, history_size, force=force, settings=settings
        )
    except PoolServiceError as e:
        raise click.ClickException(str(e))

    state = service.get_state()
    console.print(
        Panel(
            f"State file: {service.state_file}\n"
            f"Depth: {state['depth']} (capacity {state['capacity']})\n"
            f"Root history window: {state['root_history_size']}\n"
            f"Genesis root: {state['current_root']}",
            title="Pool Initialized",
            border_style="green",
        )
    )


@cli.command()
@click.argument("commitment")
@click.argument("value", type=int)
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def deposit(ctx, commitment: str, value: int, as_json: bool):
    """
    Deposit VALUE under COMMITMENT.

    COMMITMENT: 32-byte hex leaf built by the depositor
    """
    try:
        result = get_backend(ctx).deposit(commitment, value)
    except OPERATION_ERRORS as e:
        logger.error(f"Deposit failed: {e}")
        raise click.ClickException(str(e))

    if as_json:
        print(format_result(result))
    else:
        print_result_table("Deposit Committed", result)


@cli.command()
@click.argument("nullifier")
@click.argument("root")
@click.argument("amount", type=int)
@click.argument("recipient")
@click.option("--proof", default="", help="Hex-encoded withdrawal proof")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def withdraw(ctx, nullifier: str, root: str, amount: int, recipient: str, proof: str, as_json: bool):
    """
    Withdraw AMOUNT to RECIPIENT by spending NULLIFIER against ROOT.

    ROOT must be one of the pool's recent roots (see `known`).
    """
    try:
        result = get_backend(ctx).withdraw(nullifier, root, amount, recipient, proof)
    except OPERATION_ERRORS as e:
        logger.error(f"Withdrawal failed: {e}")
        raise click.ClickException(str(e))

    if as_json:
        print(format_result(result))
    else:
        print_result_table("Withdrawal Committed", result)


@cli.command()
@click.argument("root")
@click.pass_context
def known(ctx, root: str):
    """Check whether ROOT is still accepted for withdrawals. Exit code 1 if not."""
    try:
        is_known = get_backend(ctx).is_known_root(root)
    except OPERATION_ERRORS as e:
        raise click.ClickException(str(e))

    if is_known:
        console.print(f"[green]Known root:[/green] {root}")
    else:
        console.print(f"[yellow]Unknown or expired root:[/yellow] {root}")
        ctx.exit(1)


@cli.command()
@click.argument("commitment")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.pass_context
def path(ctx, commitment: str, as_json: bool):
    """Show the Merkle authentication path of a deposited COMMITMENT."""
    try:
        result = get_backend(ctx).get_merkle_path(commitment)
    except OPERATION_ERRORS as e:
        raise click.ClickException(str(e))

    if as_json:
        print(format_result(result))
        return

    console.print(f"[bold cyan]Leaf index:[/bold cyan] {result['leaf_index']}")
    console.print(f"[bold cyan]Root:[/bold cyan] {result['root']}")
    console.print("\n[bold cyan]Path:[/bold cyan]")
    for level, step in enumerate(result["path"]):
        console.print(f"  {level:2d}: {step}")


@cli.command()
@click.pass_context
def inspect(ctx):
    """Show tree, root window and nullifier statistics."""
    try:
        state = get_backend(ctx).get_state()
    except OPERATION_ERRORS as e:
        raise click.ClickException(str(e))

    table = Table(title="Pool State")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Depth", str(state["depth"]))
    table.add_row("Leaves", f"{state['next_index']} / {state['capacity']}")
    table.add_row("Status", "Full" if state["is_full"] else "Building")
    table.add_row("Current Root", state["current_root"])
    table.add_row("Root Window", f"{len(state['recent_roots'])} of {state['root_history_size']}")
    table.add_row("Roots Recorded", str(state["root_count"]))
    table.add_row("Spent Nullifiers", str(state["nullifier_count"]))
    table.add_row("Pool Value", str(state["pool_value"]))
    table.add_row("Verifier", state["verifier"])
    console.print(table)

    if state["verifier"] != "UnconfiguredVerifier":
        return
    console.print(
        "[yellow]No proof verifier configured: withdrawals will be rejected.[/yellow]"
    )


def print_events(events: List[Dict[str, Any]]):
    table = Table(title="Pool Events")
    table.add_column("#", style="cyan")
    table.add_column("Kind")
    table.add_column("Details", style="green")

    for event in events:
        if event["kind"] == "deposit":
            details = (
                f"commitment={event['commitment'][:18]}... value={event['value']} "
                f"index={event['leaf_index']}"
            )
            kind = "[blue]Deposit[/blue]"
        else:
            details = (
                f"recipient={event['recipient']} amount={event['amount']} "
                f"nullifier={event['nullifier'][:18]}..."
            )
            kind = "[red]Withdrawal[/red]"
        table.add_row(str(event["sequence"]), kind, details)

    console.print(table)


@cli.command()
@click.option(
    "--kind",
    type=click.Choice(["deposit", "withdrawal"]),
    default=None,
    help="Only show one kind of event",
)
@click.option("--json", "as_json", is_flag=True, help="Print the events as JSON")
@click.pass_context
def events(ctx, kind: Optional[str], as_json: bool):
    """List committed deposits and withdrawals in order."""
    try:
        result = get_backend(ctx).list_events(kind)
    except OPERATION_ERRORS as e:
        raise click.ClickException(str(e))

    if as_json:
        print(format_result(result))
    elif not result:
        console.print("[yellow]No events recorded[/yellow]")
    else:
        print_events(result)


@cli.command()
@click.option("--host", default=None, help="Host to bind to (default POOL_API_HOST)")
@click.option("--port", default=None, type=int, help="Port to bind to (default POOL_API_PORT)")
@click.option("--dev", is_flag=True, help="Enable development mode with auto-reload")
@click.pass_context
def serve(ctx, host: Optional[str], port: Optional[int], dev: bool):
    """Start the REST API server on the local state file."""
    from .api.rest_api import run_server

    settings: Settings = ctx.obj["settings"]
    host = host or settings.api_host
    port = port or settings.api_port
    # The server builds its service from the environment
    os.environ["POOL_STATE_FILE"] = ctx.obj["state_file"]

    try:
        console.print(
            Panel(
                f"Starting Commitment Pool API Server\n\n"
                f"Server: http://{host}:{port}\n"
                f"Docs: http://{host}:{port}/docs\n"
                f"Health: http://{host}:{port}/health\n"
                f"State file: {ctx.obj['state_file']}\n\n"
                f"Press Ctrl+C to stop",
                title="API Server",
                border_style="green",
            )
        )

        run_server(host=host, port=port, dev=dev)

    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped by user[/yellow]")
    except Exception as e:
        console.print(f"[red]Server error: {e}[/red]", style="bold")
        if ctx.obj.get("verbose"):
            console.print_exception()
        sys.exit(1)


@cli.command()
@click.pass_context
def health(ctx):
    """Check the pool API or local state file."""
    table = Table(title="System Health Check")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Details")

    healthy = True
    api_url = ctx.obj.get("api_url")
    if api_url:
        client = PoolAPIClient(api_url)
        healthy = client.health_check()
        table.add_row("Pool API", "Healthy" if healthy else "Unreachable", client.base_url)
    else:
        try:
            service = PoolService(ctx.obj["state_file"], settings=ctx.obj["settings"])
            state = service.get_state()
            status = "Full" if state["is_full"] else "Ready"
            table.add_row("State File", status, f"{service.state_file} ({state['next_index']} leaves)")
        except PoolServiceError as e:
            healthy = False
            table.add_row("State File", "Error", str(e))

    console.print(table)
    if not healthy:
        sys.exit(1)


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
