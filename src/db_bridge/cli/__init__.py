"""CLI module for SQLite/MySQL schema and data migration.

Provides commands for listing profiles, analyzing a database, previewing
the target DDL, running a migration and verifying its result.

Usage:
    db-bridge profiles
    DB_PROFILE=legacy db-bridge analyze
    db-bridge analyze legacy
    db-bridge plan --from legacy --to prod
    db-bridge migrate --from legacy --to prod --confirm
    db-bridge verify --from legacy --to prod

Commands:
    profiles  - List available profiles
    analyze   - Show tables, columns and row counts of a profile
    plan      - Print the DDL a migration would run on the target
    migrate   - Copy schema and data from one profile to another
    verify    - Compare a migrated target against its source
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import BarColumn, Progress, TaskProgressColumn, TextColumn
from rich.table import Table
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from db_bridge.config.loader import load_db_config
from db_bridge.dialects import UnsupportedDialectError, dialect_from_url
from db_bridge.factory import (
    DatabaseConnectionError,
    ProfileNotFoundError,
    connect_profile,
    get_active_profile_name,
    get_profile,
)
from db_bridge.migration.engine import MigrationEngine
from db_bridge.migration.models import MigrationResult
from db_bridge.migration.verify import verify_migration
from db_bridge.migration.worker import BackgroundMigration
from db_bridge.schema.converter import (
    generate_create_index_sql,
    generate_create_table_sql,
    generate_drop_table_sql,
)
from db_bridge.schema.introspector import analyze_schema

console = Console()

# Failures reported as a one-line error instead of a traceback
_CLI_ERRORS = (
    ProfileNotFoundError,
    FileNotFoundError,
    DatabaseConnectionError,
    UnsupportedDialectError,
    SQLAlchemyError,
)


def _config_path(args: argparse.Namespace) -> Path | None:
    return Path(args.config) if args.config else None


# ============================================================================
# Progress display
# ============================================================================


class RichProgressSink:
    """Progress sink rendering a rich progress bar.

    Events arrive on the migration worker thread; rich's ``Progress`` is
    safe to update from there.
    """

    def __init__(self, progress: Progress):
        self._progress = progress
        self._task = progress.add_task("Starting", total=100)

    def on_progress(self, message: str, fraction: float) -> None:
        self._progress.update(self._task, description=message, completed=fraction * 100)

    def on_table_start(self, table_name: str, total_rows_estimate: int) -> None:
        self._progress.console.print(
            f"  [dim]Copying[/dim] [cyan]{table_name}[/cyan] "
            f"[dim](~{total_rows_estimate} rows)[/dim]"
        )

    def on_table_complete(self, table_name: str, migrated_rows: int) -> None:
        self._progress.console.print(
            f"  [green]v[/green] {table_name}: {migrated_rows} rows"
        )

    def on_error(self, message: str, cause: BaseException | None) -> None:
        self._progress.console.print(f"  [bold red]x[/bold red] {message}")


def _run_with_progress(
    engine: MigrationEngine, source: Connection, target: Connection
) -> MigrationResult:
    """Run a migration in the background; Ctrl-C requests cancellation."""
    progress = Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    )
    with progress:
        job = BackgroundMigration(engine, source, target, RichProgressSink(progress))
        job.start()
        while not job.done():
            try:
                time.sleep(0.1)
            except KeyboardInterrupt:
                console.print("[yellow]Cancelling after the current row...[/yellow]")
                job.cancel()
        return job.result()


# ============================================================================
# CLI command handlers
# ============================================================================


def cmd_profiles(args: argparse.Namespace) -> int:
    """List available profiles from db.toml.

    Reads only local TOML config -- no database calls.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 if db.toml not found.
    """
    try:
        config = load_db_config(_config_path(args))
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    table = Table(title="Database Profiles", show_header=True, header_style="bold")
    table.add_column("Profile")
    table.add_column("Dialect")
    table.add_column("Description")

    for name, profile in config.profiles.items():
        dialect = dialect_from_url(profile.url)
        table.add_row(
            name,
            dialect.value if dialect else "[red]unsupported[/red]",
            profile.description or "",
        )

    console.print(table)
    return 0


def cmd_analyze(args: argparse.Namespace) -> int:
    """Show the schema of a profile's database.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 on failure.
    """
    try:
        profile_name = args.profile or get_active_profile_name(args.env_prefix)
        with connect_profile(profile_name, _config_path(args)) as conn:
            tables = analyze_schema(conn)
    except _CLI_ERRORS as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    table = Table(
        title=f"Schema of {profile_name}", show_header=True, header_style="bold"
    )
    table.add_column("Table")
    table.add_column("Columns", justify="right")
    table.add_column("Primary key")
    table.add_column("Indexes", justify="right")
    table.add_column("Rows", justify="right")

    for t in tables:
        table.add_row(
            t.name,
            str(len(t.columns)),
            ", ".join(c.name for c in t.primary_key_columns) or "[dim]-[/dim]",
            str(len(t.index_groups())),
            str(t.row_count),
        )

    console.print(table)

    if args.columns:
        for t in tables:
            console.print(f"\n[bold]{t.name}[/bold]")
            for c in t.columns:
                flags = []
                if c.primary_key:
                    flags.append("PK")
                if c.auto_increment:
                    flags.append("AUTO")
                if not c.is_nullable:
                    flags.append("NOT NULL")
                if c.unique:
                    flags.append("UNIQUE")
                default = f" default={c.default}" if c.default is not None else ""
                console.print(
                    f"  {c.name} [cyan]{c.full_data_type or '?'}[/cyan]"
                    f" [dim]{' '.join(flags)}{default}[/dim]"
                )

    return 0


def cmd_plan(args: argparse.Namespace) -> int:
    """Print the DDL a migration would run, without touching the target.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 on failure.
    """
    config_path = _config_path(args)
    try:
        target_dialect = dialect_from_url(get_profile(args.target, config_path).url)
        if target_dialect is None:
            console.print(f"[red]Error: profile '{args.target}' is not SQLite or MySQL[/red]")
            return 1
        with connect_profile(args.source, config_path) as conn:
            tables = analyze_schema(conn)
    except _CLI_ERRORS as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    if not tables:
        console.print("[yellow]No tables found in source.[/yellow]")
        return 0

    console.print(
        f"[dim]-- {len(tables)} tables, {args.source} -> "
        f"{args.target} ({target_dialect.value})[/dim]"
    )
    for t in tables:
        console.print()
        console.print(generate_drop_table_sql(t.name, target_dialect) + ";", markup=False)
        console.print(generate_create_table_sql(t, target_dialect), markup=False)
        for index_sql in generate_create_index_sql(t, target_dialect):
            console.print(index_sql, markup=False)

    return 0


def cmd_migrate(args: argparse.Namespace) -> int:
    """Migrate schema and data from one profile to another.

    Without ``--confirm`` only the source summary is shown.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 on failure or cancellation.
    """
    config_path = _config_path(args)
    try:
        config = load_db_config(config_path)
    except FileNotFoundError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    if args.source == args.target:
        console.print("[red]Error: source and target must be different profiles[/red]")
        return 1

    console.print(f"  Source: [bold]{args.source}[/bold]")
    console.print(f"  Target: [bold cyan]{args.target}[/bold cyan]")

    if not args.confirm:
        console.print()
        console.print(
            "[bold yellow]DRY RUN[/bold yellow] - Every source table is dropped "
            "and recreated on the target."
        )
        console.print("[dim]Run[/dim] [cyan]db-bridge plan[/cyan] [dim]to see the DDL, "
                      "then re-run with[/dim] [cyan]--confirm[/cyan]")
        return 0

    engine = MigrationEngine.from_settings(config.migration)

    try:
        with connect_profile(args.source, config_path) as source, \
             connect_profile(args.target, config_path) as target:
            result = _run_with_progress(engine, source, target)
    except _CLI_ERRORS as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    console.print()
    if result.success:
        console.print(f"[bold green]v[/bold green] {result.summary()}")
        return 0
    if result.cancelled:
        console.print(f"[bold yellow]![/bold yellow] {result.summary()}")
        return 1
    console.print(f"[bold red]x[/bold red] {result.summary()}")
    return 1


def cmd_verify(args: argparse.Namespace) -> int:
    """Compare a migrated target with its source.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 if the target matches, 1 otherwise.
    """
    config_path = _config_path(args)
    try:
        with connect_profile(args.source, config_path) as source, \
             connect_profile(args.target, config_path) as target:
            result = verify_migration(source, target)
    except _CLI_ERRORS as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    if result.valid:
        console.print(f"[bold green]v[/bold green] {result.format_report()}")
        return 0

    console.print("[bold red]x[/bold red] ", end="")
    console.print(result.format_report(), markup=False)
    return 1


# ============================================================================
# Main entry point
# ============================================================================


def _add_route_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--from",
        "-f",
        dest="source",
        required=True,
        help="Source profile to read from",
    )
    parser.add_argument(
        "--to",
        "-t",
        dest="target",
        required=True,
        help="Target profile to write to",
    )


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def main() -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="db-bridge",
        description="Schema and data migration between SQLite and MySQL",
    )

    # Global options
    parser.add_argument(
        "--config",
        default=None,
        help="Path to db.toml (default: ./db.toml)",
    )
    parser.add_argument(
        "--env-prefix",
        default="",
        help=(
            "Prefix for environment variable lookup "
            "(e.g., --env-prefix APP_ reads APP_DB_PROFILE)"
        ),
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show debug logging (generated DDL, commits)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # profiles command
    p_profiles = subparsers.add_parser(
        "profiles",
        help="List available profiles",
    )
    p_profiles.set_defaults(func=cmd_profiles)

    # analyze command
    p_analyze = subparsers.add_parser(
        "analyze",
        help="Show tables, columns and row counts of a profile",
    )
    p_analyze.add_argument(
        "profile",
        nargs="?",
        default=None,
        help="Profile to analyze (default: <PREFIX>DB_PROFILE env var)",
    )
    p_analyze.add_argument(
        "--columns",
        action="store_true",
        help="Also list every column",
    )
    p_analyze.set_defaults(func=cmd_analyze)

    # plan command
    p_plan = subparsers.add_parser(
        "plan",
        help="Print the DDL a migration would run on the target",
    )
    _add_route_arguments(p_plan)
    p_plan.set_defaults(func=cmd_plan)

    # migrate command
    p_migrate = subparsers.add_parser(
        "migrate",
        help="Copy schema and data from one profile to another",
    )
    _add_route_arguments(p_migrate)
    p_migrate.add_argument(
        "--confirm",
        action="store_true",
        help="Actually perform the migration (drops and recreates target tables)",
    )
    p_migrate.set_defaults(func=cmd_migrate)

    # verify command
    p_verify = subparsers.add_parser(
        "verify",
        help="Compare a migrated target against its source",
    )
    _add_route_arguments(p_verify)
    p_verify.set_defaults(func=cmd_verify)

    args = parser.parse_args()
    _configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
