"""Actionable error guidance for common failure scenarios."""

from dataclasses import dataclass

from .errors import (
    AmbiguousGrammarError,
    ChecksumMismatchError,
    DuplicateVersionError,
    ExecutorError,
    InvalidNameError,
    MigratorError,
    MissingMigrationError,
    StoreError,
)
from .report import MigrationOutcome


@dataclass
class ErrorGuidance:
    """Structured error guidance with checks and suggestions."""

    title: str
    checks: list[str]  # Things to check
    fixes: list[str]  # How to fix
    examples: list[str] | None = None  # Example commands


class GuidanceProvider:
    """Provides context-aware guidance for errors."""

    @staticmethod
    def get_invalid_name(filename: str, reason: str) -> ErrorGuidance:
        """Guidance when a migration filename does not match the grammar."""
        return ErrorGuidance(
            title=f"Migration file '{filename}' has an invalid name",
            checks=[
                f"Problem: {reason}",
                "Versioned files look like V001__create_users.sql",
                "Numeric files look like 001_create_users.sql",
            ],
            fixes=[
                "Rename the file to match the configured grammar",
                "Move files that are not migrations out of the migrations directory",
            ],
        )

    @staticmethod
    def get_duplicate_version(version: int, filenames: list[str]) -> ErrorGuidance:
        """Guidance when two files share a version."""
        return ErrorGuidance(
            title=f"Version {version} is used by more than one file",
            checks=[f"Conflicting files: {', '.join(filenames)}", "Versions compare as numbers: V1 and V001 collide"],
            fixes=[
                "Give the newer file the next free version number",
                "Never renumber a migration that has already been applied",
            ],
        )

    @staticmethod
    def get_ambiguous_grammar(versioned: list[str], numeric: list[str]) -> ErrorGuidance:
        """Guidance when both filename grammars are mixed."""
        checks = []
        if versioned:
            checks.append(f"Versioned files: {', '.join(versioned)}")
        if numeric:
            checks.append(f"Numeric files: {', '.join(numeric)}")
        return ErrorGuidance(
            title="Migration directory mixes filename grammars",
            checks=checks,
            fixes=[
                "Rename files so that a single grammar is used",
                "Set [source] grammar = \"versioned\" or \"numeric\" in the configuration",
            ],
        )

    @staticmethod
    def get_checksum_mismatch(version: int, expected: str, actual: str) -> ErrorGuidance:
        """Guidance when an applied migration was modified."""
        return ErrorGuidance(
            title=f"Migration {version} was modified after being applied",
            checks=[
                f"Recorded checksum: {expected}",
                f"Current checksum:  {actual}",
                "Check version control history of the migration file",
            ],
            fixes=[
                "Revert the file to the version that was applied",
                "Put the new change in a new migration with a higher version",
                "If the edit is cosmetic and intended, forget the version and re-apply it deliberately",
            ],
            examples=["git log -p -- migrations/", f"sql-migrator forget {version}"],
        )

    @staticmethod
    def get_missing_migration(version: int, reason: str) -> ErrorGuidance:
        """Guidance when history and files disagree about a version."""
        return ErrorGuidance(
            title=f"Migration {version} {reason}",
            checks=[
                "Check whether the migration file was deleted or renamed",
                "Check whether another branch applied migrations to this database",
            ],
            fixes=[
                "Restore the migration file from version control",
                "Renumber an unapplied migration above the latest applied version",
                "Run without --strict-missing to proceed with a warning",
            ],
            examples=["sql-migrator history", "sql-migrator validate"],
        )

    @staticmethod
    def get_store_error(error: str) -> ErrorGuidance:
        """Guidance when the ledger table cannot be accessed."""
        return ErrorGuidance(
            title="Could not access the migration ledger",
            checks=[
                f"Error: {error}",
                "Database file or server is reachable",
                "The user can create and write the ledger table",
            ],
            fixes=[
                "Fix connectivity or permissions and run again",
                "Nothing was recorded for the interrupted migration, so a re-run is safe",
            ],
            examples=["sql-migrator status"],
        )

    @staticmethod
    def get_executor_error(error: str) -> ErrorGuidance:
        """Guidance when the requested run mode cannot be executed."""
        return ErrorGuidance(
            title="Migration run could not start",
            checks=[f"Error: {error}"],
            fixes=[
                "Use per-migration transactions (drop --atomic) on databases without transactional DDL",
            ],
        )

    @staticmethod
    def get_script_failed(outcome: MigrationOutcome) -> ErrorGuidance:
        """Guidance when a migration's SQL failed."""
        return ErrorGuidance(
            title=f"Migration {outcome.version} ({outcome.name}) failed",
            checks=[
                f"Error: {outcome.error}",
                "The failed migration was not recorded; later migrations were not attempted",
                "On databases without transactional DDL, earlier statements of the script may have run",
            ],
            fixes=[
                "Fix the SQL in the migration file and run migrate again",
                "Inspect the schema before re-running if the database does not roll back DDL",
            ],
            examples=["sql-migrator plan", "sql-migrator migrate"],
        )

    @staticmethod
    def for_error(error: MigratorError) -> ErrorGuidance | None:
        """Pick the guidance matching an engine error."""
        if isinstance(error, InvalidNameError):
            return GuidanceProvider.get_invalid_name(error.filename, error.reason)
        if isinstance(error, DuplicateVersionError):
            return GuidanceProvider.get_duplicate_version(error.version, error.filenames)
        if isinstance(error, AmbiguousGrammarError):
            return GuidanceProvider.get_ambiguous_grammar(error.versioned_files, error.numeric_files)
        if isinstance(error, ChecksumMismatchError):
            return GuidanceProvider.get_checksum_mismatch(error.version, error.expected, error.actual)
        if isinstance(error, MissingMigrationError):
            return GuidanceProvider.get_missing_migration(error.version, error.reason)
        if isinstance(error, StoreError):
            return GuidanceProvider.get_store_error(str(error))
        if isinstance(error, ExecutorError):
            return GuidanceProvider.get_executor_error(str(error))
        return None

    @staticmethod
    def format_guidance(guidance: ErrorGuidance) -> str:
        """Format guidance as rich-compatible string."""
        lines = [f"[bold yellow]{guidance.title}[/bold yellow]\n"]

        if guidance.checks:
            lines.append("[cyan]Checks:[/cyan]")
            for check in guidance.checks:
                lines.append(f"  • {check}")
            lines.append("")

        if guidance.fixes:
            lines.append("[cyan]How to fix:[/cyan]")
            for fix in guidance.fixes:
                lines.append(f"  • {fix}")
            lines.append("")

        if guidance.examples:
            lines.append("[cyan]Try these commands:[/cyan]")
            for example in guidance.examples:
                lines.append(f"  $ {example}")

        return "\n".join(lines)
