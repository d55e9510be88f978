"""High-level entry point wiring source, ledger, planner and executor."""

import logging
from importlib.resources.abc import Traversable
from pathlib import Path

from .connection import DatabaseConnection
from .constants import DEFAULT_HISTORY_TABLE
from .executor import Executor
from .history import HistoryStore, LedgerStatus
from .models import HistoryRecord, MigrationScript, RunMode
from .planner import MigrationPlan, plan_migrations
from .report import Report
from .source import MigrationSource

logger = logging.getLogger(__name__)


class Migrator:
    """
    Runs migrations from one location against one database.

    Example::

        from sql_migrator import Migrator, RunMode, SQLiteConnection

        with SQLiteConnection("app.db") as connection:
            migrator = Migrator(connection, "migrations")
            report = migrator.migrate(RunMode(strict_checksum=True))
            if not report.success:
                raise SystemExit(1)
    """

    def __init__(
        self,
        connection: DatabaseConnection,
        location: Path | str | Traversable,
        source: MigrationSource | None = None,
        table_name: str = DEFAULT_HISTORY_TABLE,
    ) -> None:
        """
        Initialize migrator.

        Args:
            connection: Target database
            location: Directory (or package resource directory) of migration files
            source: Configured migration source (default grammar AUTO)
            table_name: Ledger table name
        """
        self.connection = connection
        self.location = location
        self.source = source or MigrationSource()
        self.store = HistoryStore(connection, table_name)
        self.executor = Executor(connection, self.store)

    def scripts(self) -> list[MigrationScript]:
        """Load and parse the migration files."""
        return self.source.load(self.location)

    def history(self) -> list[HistoryRecord]:
        """Ledger rows in version order, failed attempts included."""
        return self.store.load_records()

    def status(self) -> LedgerStatus:
        """Summary of the ledger table."""
        return self.store.status()

    def plan(self, mode: RunMode | None = None) -> MigrationPlan:
        """
        Preview the migrations a run would apply.

        Reads the ledger but never writes to the database, not even to create
        the ledger table.
        """
        scripts = self.scripts()
        return plan_migrations(scripts, self.store.load_applied(), mode)

    def migrate(self, mode: RunMode | None = None) -> Report:
        """
        Apply pending migrations.

        Migration files are parsed before the database is touched, so a
        naming error aborts the run without side effects.

        Args:
            mode: Run options

        Returns:
            Report of the run

        Raises:
            SourceError: If the migration files are invalid
            StoreError: If the ledger cannot be accessed
            PlanError: If a strict mode detects a divergence
            ExecutorError: If the requested mode is unsupported by the database
        """
        mode = mode or RunMode()
        scripts = self.scripts()

        self.store.ensure_table()
        plan = plan_migrations(scripts, self.store.load_applied(), mode)

        if plan.is_empty:
            logger.info("No pending migrations found")
        else:
            logger.info(f"Found {len(plan.scripts)} pending migration(s): {plan.versions}")

        return self.executor.apply(plan, mode)

    def forget(self, version: int) -> bool:
        """
        Remove a version from the ledger without running any SQL.

        Args:
            version: Migration version

        Returns:
            True if a ledger row was removed
        """
        return self.store.delete(version)
