"""CLI module for declarative schema synchronization.

Usage:
    pg-differ plan --schemas ./schemas
    pg-differ sync --schemas ./schemas
    pg-differ sync --no-transaction
    pg-differ read table public.users
    pg-differ profiles
    APP_DIFFER_PROFILE=local pg-differ --env-prefix APP_ sync

Commands:
    plan      - Show the statements a sync would run
    sync      - Bring the database in line with the schema files
    read      - Print the live structure of a table or sequence
    profiles  - List available profiles
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from pg_differ.adapters.postgres import AsyncPostgresClient
from pg_differ.config.loader import load_differ_config
from pg_differ.config.models import DifferConfig, SyncOptions
from pg_differ.differ import Differ
from pg_differ.errors import DifferError
from pg_differ.factory import connect_with_retry, get_active_profile_name, get_profile, resolve_url
from pg_differ.schema.models import CATEGORY_ORDER

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, markup=False)],
        force=True,
    )


def _load_config(args: argparse.Namespace) -> DifferConfig:
    config_path = Path(args.config) if args.config else None
    config = load_differ_config(config_path)
    schemas = getattr(args, "schemas", None)
    if schemas:
        config = config.model_copy(update={"schema_folder": schemas})
    return config


def _build_differ(args: argparse.Namespace) -> Differ:
    """Create a Differ for the selected profile with its schema files imported."""
    config = _load_config(args)
    profile_name, profile = get_profile(config, args.profile, args.env_prefix)
    console.print(f"Profile: [bold cyan]{profile_name}[/bold cyan]", style="dim")
    return Differ(client=AsyncPostgresClient(resolve_url(profile)), config=config)


# ============================================================================
# Async command implementations
# ============================================================================


async def _async_plan(args: argparse.Namespace) -> int:
    """Async implementation for plan command.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        differ = _build_differ(args)
    except (FileNotFoundError, ValueError, DifferError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    client = differ.client
    try:
        await connect_with_retry(client, differ.config.reconnection)
        try:
            plan = await differ.plan()
        finally:
            await client.end()
    except Exception as e:
        console.print(f"[bold red]x[/bold red] Planning failed: {e}")
        return 1

    if plan.is_empty:
        console.print("[bold green]v[/bold green] Database does not need updating")
        return 0

    table = Table(title="Planned Changes", show_header=True, header_style="bold")
    table.add_column("Category", style="dim")
    table.add_column("Statement")
    for category in CATEGORY_ORDER:
        for sql in plan.get(category):
            table.add_row(category.value, sql)
    console.print(table)
    return 0


async def _async_sync(args: argparse.Namespace) -> int:
    """Async implementation for sync command.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        differ = _build_differ(args)
    except (FileNotFoundError, ValueError, DifferError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        result = await differ.sync(SyncOptions(transaction=not args.no_transaction))
    except Exception as e:
        console.print(f"[bold red]x[/bold red] Sync failed: {e}")
        return 1

    if not result.changed:
        console.print("[bold green]v[/bold green] Database does not need updating")
        return 0

    table = Table(title="Sync Summary", show_header=False)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("Statements executed", str(len(result.statements)))
    table.add_row("Seeds inserted", str(result.inserted_seeds))
    console.print(table)
    console.print("[bold green]v[/bold green] Sync successful")
    return 0


async def _async_read(args: argparse.Namespace) -> int:
    """Async implementation for read command.

    Returns:
        0 when the object exists, 1 otherwise.
    """
    try:
        differ = _build_differ(args)
        structure = await differ.read(args.kind, args.name)
    except (FileNotFoundError, ValueError, DifferError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1
    except Exception as e:
        console.print(f"[bold red]x[/bold red] Read failed: {e}")
        return 1

    if structure is None:
        console.print(f"[yellow]{args.kind} {args.name} does not exist[/yellow]")
        return 1

    console.print_json(structure.model_dump_json())
    return 0


def cmd_plan(args: argparse.Namespace) -> int:
    """Show planned statements.  Wraps the async implementation with ``asyncio.run()``."""
    return asyncio.run(_async_plan(args))


def cmd_sync(args: argparse.Namespace) -> int:
    """Run a sync.  Wraps the async implementation with ``asyncio.run()``."""
    return asyncio.run(_async_sync(args))


def cmd_read(args: argparse.Namespace) -> int:
    """Read a live structure.  Wraps the async implementation with ``asyncio.run()``."""
    return asyncio.run(_async_read(args))


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from differ.toml.

    Reads only local TOML config -- no database calls.

    Returns:
        0 on success, 1 if differ.toml not found.
    """
    try:
        config = _load_config(args)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    try:
        current = args.profile or get_active_profile_name(config, args.env_prefix)
    except DifferError:
        current = None

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Profile")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        marker = "[bold green]*[/bold green]" if name == current else " "
        table.add_row(
            marker,
            f"[bold cyan]{name}[/bold cyan]" if name == current else name,
            profile.description or "",
        )

    console.print(table)

    if current:
        console.print("\n[bold green]*[/bold green] = selected profile")

    return 0


# ============================================================================
# Main entry point
# ============================================================================


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pg-differ",
        description="Declarative PostgreSQL schema synchronization",
    )
    parser.add_argument("--config", default=None, help="Path to differ.toml (default: ./differ.toml)")
    parser.add_argument("--profile", default=None, help="Profile name from differ.toml")
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DIFFER_PROFILE)"
        ),
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log executed statements")

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_plan = subparsers.add_parser("plan", help="Show the statements a sync would run")
    p_plan.add_argument("--schemas", default=None, help="Folder with *.schema.json files")
    p_plan.set_defaults(func=cmd_plan)

    p_sync = subparsers.add_parser("sync", help="Synchronize the database with the schema files")
    p_sync.add_argument("--schemas", default=None, help="Folder with *.schema.json files")
    p_sync.add_argument(
        "--no-transaction",
        action="store_true",
        help="Run statements without begin/commit",
    )
    p_sync.set_defaults(func=cmd_sync)

    p_read = subparsers.add_parser("read", help="Print the live structure of a table or sequence")
    p_read.add_argument("kind", choices=["table", "sequence"])
    p_read.add_argument("name", help="Table or sequence name (schema.name)")
    p_read.set_defaults(func=cmd_read)

    p_profiles = subparsers.add_parser("profiles", help="List available profiles")
    p_profiles.set_defaults(func=cmd_profiles)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
