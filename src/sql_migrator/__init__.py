"""sql-migrator: versioned SQL schema migrations with a ledger table."""

from .connection import MYSQL_TABLE_EXISTS_QUERY, DatabaseConnection, DBAPIConnection, SQLiteConnection
from .constants import DivergenceKind, Grammar, Outcome
from .errors import (
    AmbiguousGrammarError,
    ChecksumMismatchError,
    DuplicateVersionError,
    ExecutorError,
    InvalidNameError,
    MigratorError,
    MissingMigrationError,
    PlanError,
    RecordExistsError,
    ScriptExecutionError,
    SourceError,
    StoreError,
)
from .executor import Executor
from .history import HistoryStore, LedgerStatus
from .migrator import Migrator
from .models import Divergence, HistoryRecord, MigrationScript, RunMode
from .planner import MigrationPlan, plan_migrations
from .report import MigrationOutcome, Report
from .source import MigrationSource, compute_checksum

__version__ = "0.1.0"

__all__ = [
    "AmbiguousGrammarError",
    "ChecksumMismatchError",
    "DBAPIConnection",
    "DatabaseConnection",
    "Divergence",
    "DivergenceKind",
    "DuplicateVersionError",
    "Executor",
    "ExecutorError",
    "Grammar",
    "HistoryRecord",
    "HistoryStore",
    "InvalidNameError",
    "LedgerStatus",
    "MYSQL_TABLE_EXISTS_QUERY",
    "MigrationOutcome",
    "MigrationPlan",
    "MigrationScript",
    "MigrationSource",
    "Migrator",
    "MigratorError",
    "MissingMigrationError",
    "Outcome",
    "PlanError",
    "RecordExistsError",
    "Report",
    "RunMode",
    "SQLiteConnection",
    "ScriptExecutionError",
    "SourceError",
    "StoreError",
    "__version__",
    "compute_checksum",
    "plan_migrations",
]
