"""Display functions for sql-migrator CLI output."""

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .constants import CHECKSUM_DISPLAY_LENGTH, DivergenceKind, Outcome
from .error_guidance import ErrorGuidance, GuidanceProvider
from .history import LedgerStatus
from .models import Divergence, HistoryRecord
from .planner import MigrationPlan
from .report import Report

OUTCOME_STYLES = {
    Outcome.APPLIED: "[green]✓ Applied[/green]",
    Outcome.SKIPPED: "[blue]- Skipped[/blue]",
    Outcome.FAILED: "[red]✗ Failed[/red]",
    Outcome.ROLLED_BACK: "[yellow]↺ Rolled back[/yellow]",
}

DIVERGENCE_LABELS = {
    DivergenceKind.MODIFIED: "Modified",
    DivergenceKind.MISSING: "Missing file",
    DivergenceKind.OUT_OF_ORDER: "Out of order",
}


def display_plan(plan: MigrationPlan, console: Console) -> None:
    """
    Display pending migrations in apply order.

    Args:
        plan: Migration plan
        console: Rich console instance for output
    """
    if plan.is_empty:
        console.print("No pending migrations.")
    else:
        title = "Pending Migrations"
        if plan.target_version is not None:
            title += f" (up to version {plan.target_version})"
        table = Table(title=title)
        table.add_column("#", justify="right", style="dim")
        table.add_column("Version", style="cyan")
        table.add_column("Name")
        table.add_column("Statements", justify="right")
        table.add_column("Checksum", style="dim")

        for position, script in enumerate(plan.scripts, start=1):
            statements = "baseline" if script.is_baseline else str(len(script.statements))
            table.add_row(
                str(position),
                script.version_text,
                escape(script.name),
                statements,
                script.checksum[:CHECKSUM_DISPLAY_LENGTH],
            )

        console.print(table)

    if plan.excluded:
        versions = ", ".join(str(s.version) for s in plan.excluded)
        console.print(f"[dim]Beyond target version (not applied): {versions}[/dim]")

    display_divergences(list(plan.divergences), console)


def display_divergences(divergences: list[Divergence], console: Console) -> None:
    """
    Display detected divergences as a warning panel.

    Args:
        divergences: Divergences to display
        console: Rich console instance for output
    """
    if not divergences:
        return

    lines = [f"• [bold]{DIVERGENCE_LABELS[d.kind]}:[/bold] {escape(d.message)}" for d in divergences]
    console.print(
        Panel(
            "\n".join(lines),
            title="Divergences",
            border_style="yellow",
        )
    )


def display_report(report: Report, console: Console) -> None:
    """
    Display per-migration outcomes of a run.

    Args:
        report: Run report
        console: Rich console instance for output
    """
    if report.outcomes:
        table = Table(title="Migration Results")
        table.add_column("Version", style="cyan")
        table.add_column("Name")
        table.add_column("Status")
        table.add_column("Time", justify="right")
        table.add_column("Details")

        for outcome in report.outcomes:
            details = outcome.error or ("baseline" if outcome.baseline else "")
            table.add_row(
                str(outcome.version),
                escape(outcome.name),
                OUTCOME_STYLES[outcome.outcome],
                f"{outcome.duration * 1000:.0f} ms",
                escape(details),
            )

        console.print(table)
    else:
        console.print("No pending migrations.")

    display_divergences(list(report.divergences), console)

    if report.unattempted:
        versions = ", ".join(str(v) for v in report.unattempted)
        console.print(f"[yellow]Not attempted:[/yellow] {versions}")

    for outcome in report.failed:
        display_guidance(GuidanceProvider.get_script_failed(outcome), console)

    summary = (
        f"{len(report.applied)} applied, {len(report.failed)} failed, "
        f"{len(report.skipped)} skipped in {report.total_time:.2f}s"
    )
    if report.success:
        console.print(f"[green]✓[/green] {summary}")
    else:
        console.print(f"[red]✗[/red] {summary}")


def display_history(records: list[HistoryRecord], console: Console) -> None:
    """
    Display ledger records.

    Args:
        records: Ledger records in version order
        console: Rich console instance for output
    """
    if not records:
        console.print("No migrations have been applied.")
        return

    table = Table(title="Applied Migrations")
    table.add_column("Version", style="cyan")
    table.add_column("Name")
    table.add_column("Applied", style="yellow")
    table.add_column("Time", justify="right")
    table.add_column("Checksum", style="dim")
    table.add_column("Status")

    for record in records:
        table.add_row(
            str(record.version),
            escape(record.name),
            record.applied_at.strftime("%Y-%m-%d %H:%M:%S"),
            f"{record.execution_time_ms} ms",
            record.checksum[:CHECKSUM_DISPLAY_LENGTH],
            "[green]✓[/green]" if record.success else "[red]✗[/red]",
        )

    console.print(table)


def display_status(status: LedgerStatus, pending: int, console: Console) -> None:
    """
    Display a ledger summary.

    Args:
        status: Ledger status
        pending: Number of pending migrations
        console: Rich console instance for output
    """
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Label", style="dim")
    table.add_column("Value")

    table.add_row("Ledger table:", status.table_name)
    table.add_row("Table exists:", "[green]✓[/green]" if status.table_exists else "[yellow]![/yellow]")
    table.add_row("Applied migrations:", str(status.total_migrations))
    if status.failed_attempts:
        table.add_row("Failed attempts:", f"[red]{status.failed_attempts}[/red]")
    table.add_row("Last migration:", str(status.last_version) if status.last_version is not None else "None")
    if status.last_applied_at is not None:
        table.add_row("Last applied at:", status.last_applied_at.strftime("%Y-%m-%d %H:%M:%S"))
    table.add_row("Pending migrations:", str(pending))

    console.print(table)


def display_guidance(guidance: ErrorGuidance, console: Console) -> None:
    """Display error guidance in a red panel."""
    console.print(Panel(GuidanceProvider.format_guidance(guidance), border_style="red"))
