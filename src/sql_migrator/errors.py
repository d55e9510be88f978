"""Exception hierarchy for sql-migrator."""


class MigratorError(Exception):
    """Base class for every error raised by the migration engine."""

    pass


class SourceError(MigratorError):
    """
    Raised when migration files cannot be enumerated or parsed.

    Source errors are detected before the database is touched, so a run that
    fails with one of them has no side effects.
    """

    pass


class InvalidNameError(SourceError):
    """A file looks like a migration but does not satisfy the filename grammar."""

    def __init__(self, filename: str, reason: str):
        self.filename = filename
        self.reason = reason
        super().__init__(f"Invalid migration filename '{filename}': {reason}")


class DuplicateVersionError(SourceError):
    """Two or more files declare the same version."""

    def __init__(self, version: int, filenames: list[str]):
        self.version = version
        self.filenames = filenames
        super().__init__(f"Duplicate migration version {version}: {', '.join(filenames)}")


class AmbiguousGrammarError(SourceError):
    """Files from both filename grammars are mixed in one source."""

    def __init__(self, versioned_files: list[str], numeric_files: list[str]):
        self.versioned_files = versioned_files
        self.numeric_files = numeric_files
        super().__init__(
            "Migration source mixes filename grammars: "
            f"versioned ({', '.join(versioned_files)}) and numeric ({', '.join(numeric_files)})"
        )


class StoreError(MigratorError):
    """
    Raised when the ledger table cannot be read or written.

    Usually caused by a lost connection or missing privileges. The run is
    aborted, but no partial ledger state is left behind, so retrying on a
    fresh invocation is safe.
    """

    pass


class RecordExistsError(StoreError):
    """A ledger row already exists for the version being recorded."""

    def __init__(self, version: int):
        self.version = version
        super().__init__(f"Migration {version} is already recorded in the ledger")


class PlanError(MigratorError):
    """Raised when a strict mode turns a divergence into a fatal error."""

    def __init__(self, version: int, message: str):
        self.version = version
        super().__init__(message)


class ChecksumMismatchError(PlanError):
    """An applied migration was modified after it was recorded."""

    def __init__(self, version: int, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(
            version,
            f"Migration {version} has been modified after it was applied "
            f"(recorded checksum {expected}, current checksum {actual})",
        )


class MissingMigrationError(PlanError):
    """The source and the ledger disagree about which versions exist."""

    def __init__(self, version: int, reason: str = "is recorded in the ledger but has no migration file"):
        self.reason = reason
        super().__init__(version, f"Migration {version} {reason}")


class ExecutorError(MigratorError):
    """Raised when a plan cannot be executed as requested."""

    pass


class ScriptExecutionError(ExecutorError):
    """A statement of a migration script failed."""

    def __init__(self, version: int, statement_index: int, statement: str, error: Exception):
        self.version = version
        self.statement_index = statement_index
        self.statement = statement
        self.error = error
        super().__init__(f"Migration {version} failed at statement {statement_index + 1}: {error}")
