"""CLI interface for sql-migrator."""

import sys
from pathlib import Path

# Runtime version check - must be before other imports
if sys.version_info < (3, 11):
    print("Error: sql-migrator requires Python 3.11 or higher", file=sys.stderr)
    version = f"Python {sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    print(f"Current version: {version}", file=sys.stderr)
    print("\nPlease upgrade your Python installation:", file=sys.stderr)
    print("  https://www.python.org/downloads/", file=sys.stderr)
    sys.exit(1)

import sqlite3
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

import click
from rich.console import Console

from . import __version__
from .config import Config, load_config
from .connection import SQLiteConnection
from .constants import CONTINUE_ON_FAILURE_ENV_VAR, MAX_VERSION
from .display import (
    display_divergences,
    display_guidance,
    display_history,
    display_plan,
    display_report,
    display_status,
)
from .error_guidance import GuidanceProvider
from .errors import (
    AmbiguousGrammarError,
    DuplicateVersionError,
    InvalidNameError,
    MigratorError,
    SourceError,
    StoreError,
)
from .migrator import Migrator
from .models import RunMode
from .source import MigrationSource
from .utils import ErrorContext, configure_logging, handle_operation, prompt_confirm, run_guarded

console = Console()

T = TypeVar("T")

ENGINE_SUGGESTIONS: dict[type[Exception], str] = {
    InvalidNameError: "Rename the file to V<version>__<description>.sql or <version>_<description>.sql",
    DuplicateVersionError: "Give each migration a unique version number",
    AmbiguousGrammarError: "Use a single filename grammar or set [source] grammar in the config",
    SourceError: "Check that the migrations directory exists (see --migrations-dir)",
    StoreError: "Check database connectivity and permissions on the ledger table",
}


def _run(operation: Callable[[], T], action: str) -> T:
    """Run an engine call, exiting with status 1 on migrator errors."""
    try:
        return run_guarded(console, operation, ErrorContext(action, ENGINE_SUGGESTIONS))
    except MigratorError as e:
        guidance = GuidanceProvider.for_error(e)
        if guidance is not None and not isinstance(e, SourceError):
            display_guidance(guidance, console)
        sys.exit(1)


@contextmanager
def _open_migrator(config: Config) -> Iterator[Migrator]:
    """Open the configured database and build a migrator for it."""
    context = ErrorContext(
        "Opening database",
        suggestions={sqlite3.Error: "Check the database path (see --database) and file permissions"},
    )
    try:
        connection = handle_operation(
            console,
            lambda: SQLiteConnection(config.database_path),
            context,
            error_types=(sqlite3.Error, OSError),
        )
    except (sqlite3.Error, OSError):
        sys.exit(1)

    source = MigrationSource(
        grammar=config.source.grammar,
        ignore_unmatched=config.source.ignore_unmatched,
        normalize_line_endings=config.source.normalize_line_endings,
    )
    with connection:
        yield Migrator(connection, config.migrations_dir, source=source, table_name=config.history_table)


def _build_run_mode(config: Config, **overrides: object) -> RunMode:
    """Merge command-line flags over the configured run options."""
    try:
        return config.run_mode(**overrides)
    except ValueError as e:
        console.print(f"[red]Error:[/red] Invalid run options: {e}")
        sys.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Custom config file path",
)
@click.option(
    "--database",
    "-d",
    type=click.Path(path_type=Path),
    help="SQLite database file (overrides config)",
)
@click.option(
    "--migrations-dir",
    "-m",
    type=click.Path(path_type=Path),
    help="Directory holding migration files (overrides config)",
)
@click.option("-v", "--verbose", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    database: Path | None,
    migrations_dir: Path | None,
    verbose: bool,
) -> None:
    """sql-migrator: Apply versioned SQL migration scripts to a database."""
    ctx.ensure_object(dict)
    configure_logging(verbose)

    # Load configuration
    try:
        loaded = load_config(config)
    except (FileNotFoundError, ValueError, OSError, PermissionError) as e:
        console.print(f"[red]Error:[/red] Configuration: {e}")
        sys.exit(1)

    if database is not None:
        loaded.database.path = database.expanduser().resolve()
    if migrations_dir is not None:
        loaded.source.directory = migrations_dir.expanduser().resolve()

    ctx.obj["config"] = loaded


@cli.command()
@click.option(
    "--target",
    "-t",
    type=click.IntRange(min=0),
    default=None,
    help="Apply migrations up to and including this version",
)
@click.option(
    "--strict-checksum/--no-strict-checksum",
    default=None,
    help="Abort when an applied migration was modified (default: from config)",
)
@click.option(
    "--strict-missing/--no-strict-missing",
    default=None,
    help="Abort when history and migration files disagree (default: from config)",
)
@click.option(
    "--atomic/--no-atomic",
    default=None,
    help="Apply all pending migrations in one transaction (default: from config)",
)
@click.option(
    "--continue-on-failure/--stop-on-failure",
    default=None,
    envvar=CONTINUE_ON_FAILURE_ENV_VAR,
    help="Keep applying later migrations after one fails (default: from config)",
)
@click.option("--dry-run", is_flag=True, help="Show what would be applied without changing the database")
@click.pass_context
def migrate(
    ctx: click.Context,
    target: int | None,
    strict_checksum: bool | None,
    strict_missing: bool | None,
    atomic: bool | None,
    continue_on_failure: bool | None,
    dry_run: bool,
) -> None:
    """
    Apply pending migrations.

    Reads the migration files, compares them with the ledger table in the
    database and applies every pending migration in ascending version order.
    Each migration runs in its own transaction together with its ledger row.
    Exits with status 1 if a migration fails or a strict check is violated.

    Examples:

        \b
        # Apply everything that is pending
        sql-migrator migrate

        \b
        # Preview the run without touching the database
        sql-migrator migrate --dry-run

        \b
        # Apply up to version 5 and refuse modified migrations
        sql-migrator migrate --target 5 --strict-checksum

        \b
        # All-or-nothing run
        sql-migrator migrate --atomic

        \b
        # Keep going after a failing migration
        CONTINUE_ON_MIGRATION_FAILURE=true sql-migrator migrate
    """
    config = ctx.obj["config"]
    mode = _build_run_mode(
        config,
        target_version=target,
        strict_checksum=strict_checksum,
        strict_missing=strict_missing,
        atomic_batch=atomic,
        continue_on_failure=continue_on_failure,
    )

    with _open_migrator(config) as migrator:
        if dry_run:
            plan = _run(lambda: migrator.plan(mode), "Planning migrations")
            display_plan(plan, console)
            return

        report = _run(lambda: migrator.migrate(mode), "Applying migrations")

    display_report(report, console)
    if not report.success:
        sys.exit(1)


@cli.command()
@click.option(
    "--target",
    "-t",
    type=click.IntRange(min=0),
    default=None,
    help="Only show migrations up to and including this version",
)
@click.pass_context
def plan(ctx: click.Context, target: int | None) -> None:
    """
    Show pending migrations without applying them.

    Never writes to the database, not even to create the ledger table.

    Examples:

        \b
        # List pending migrations
        sql-migrator plan

        \b
        # List pending migrations up to version 3
        sql-migrator plan --target 3
    """
    config = ctx.obj["config"]
    mode = RunMode(target_version=target)

    with _open_migrator(config) as migrator:
        migration_plan = _run(lambda: migrator.plan(mode), "Planning migrations")

    display_plan(migration_plan, console)


@cli.command()
@click.pass_context
def validate(ctx: click.Context) -> None:
    """
    Check migration files against the ledger.

    Reports modified, missing and out-of-order migrations. Exits with
    status 1 if any divergence is found, which makes it suitable for CI.

    Examples:

        \b
        # Fail the build when history and files disagree
        sql-migrator validate
    """
    config = ctx.obj["config"]

    with _open_migrator(config) as migrator:
        migration_plan = _run(lambda: migrator.plan(RunMode()), "Validating migrations")

    if migration_plan.divergences:
        display_divergences(list(migration_plan.divergences), console)
        console.print(f"[red]✗[/red] Found {len(migration_plan.divergences)} divergence(s)")
        sys.exit(1)

    console.print(
        f"[green]✓[/green] Migrations are consistent with the ledger "
        f"({len(migration_plan.scripts)} pending)"
    )


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """
    Show a summary of the ledger table.

    Examples:

        \b
        # Show ledger summary
        sql-migrator status
    """
    config = ctx.obj["config"]

    with _open_migrator(config) as migrator:
        ledger = _run(migrator.status, "Reading ledger status")
        migration_plan = _run(lambda: migrator.plan(RunMode()), "Planning migrations")

    display_status(ledger, len(migration_plan.scripts), console)


@cli.command()
@click.pass_context
def history(ctx: click.Context) -> None:
    """
    List applied migrations recorded in the ledger.

    Examples:

        \b
        # Show applied migrations
        sql-migrator history
    """
    config = ctx.obj["config"]

    with _open_migrator(config) as migrator:
        records = _run(migrator.history, "Reading ledger")

    display_history(records, console)


@cli.command()
@click.argument("version", type=click.IntRange(min=0, max=MAX_VERSION))
@click.option("--force", "-f", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def forget(ctx: click.Context, version: int, force: bool) -> None:
    """
    Remove a migration from the ledger without running any SQL.

    The migration becomes pending again and is re-applied on the next run.
    Use it to recover after fixing a database by hand.

    Examples:

        \b
        # Forget version 3 after confirming
        sql-migrator forget 3

        \b
        # Skip confirmation prompt
        sql-migrator forget 3 --force
    """
    config = ctx.obj["config"]

    with _open_migrator(config) as migrator:
        record = _run(lambda: migrator.store.get(version), "Reading ledger")
        if record is None:
            console.print(f"[red]Error:[/red] Migration {version} is not recorded in the ledger.")
            sys.exit(1)

        if not force:
            console.print(f"Forgetting migration: [cyan]{record.version}[/cyan] {record.name}")
            console.print(f"  Applied: {record.applied_at.strftime('%Y-%m-%d %H:%M:%S')}")
            if not prompt_confirm("Remove this ledger row?", default=False):
                console.print("Cancelled.")
                return

        _run(lambda: migrator.forget(version), "Removing ledger row")

    console.print(f"[green]✓[/green] Migration {version} removed from the ledger")


if __name__ == "__main__":
    cli()
