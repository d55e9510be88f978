"""Ledger of applied migrations stored inside the target database."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from .connection import DatabaseConnection
from .constants import DEFAULT_HISTORY_TABLE, HISTORY_NAME_MAX_LENGTH, SQL_IDENTIFIER_PATTERN
from .errors import RecordExistsError, StoreError
from .models import HistoryRecord

logger = logging.getLogger(__name__)

_COLUMNS = "version, name, applied_at, checksum, success, execution_time_ms"


@dataclass(frozen=True)
class LedgerStatus:
    """Summary of the ledger table."""

    table_name: str
    table_exists: bool
    total_migrations: int = 0
    failed_attempts: int = 0
    last_version: int | None = None
    last_applied_at: datetime | None = None


def history_table_name(table: str = DEFAULT_HISTORY_TABLE, service: str | None = None) -> str:
    """
    Build the ledger table name, optionally scoped to a service.

    Args:
        table: Base table name
        service: Optional service name appended as a suffix

    Returns:
        Validated table name

    Raises:
        ValueError: If the result is not a plain SQL identifier
    """
    name = f"{table}_{service}" if service else table
    if not re.match(SQL_IDENTIFIER_PATTERN, name):
        raise ValueError(f"Invalid history table name: {name!r}")
    return name


class HistoryStore:
    """
    Reads and writes the migration ledger.

    The store never opens transactions around ``record()``; callers that
    need the insert to be atomic with a migration wrap both in
    ``connection.transaction()``.
    """

    def __init__(self, connection: DatabaseConnection, table_name: str = DEFAULT_HISTORY_TABLE) -> None:
        """
        Initialize history store.

        Args:
            connection: Database capability
            table_name: Ledger table name
        """
        self.connection = connection
        self.table_name = history_table_name(table_name)

    def ensure_table(self) -> None:
        """
        Create the ledger table if it does not exist.

        Safe to call from several processes at once: the statement is
        ``CREATE TABLE IF NOT EXISTS``, and a duplicate-key error raised by a
        concurrent creator is ignored once the table is visible.

        Raises:
            StoreError: If the table cannot be created
        """
        conn = self.connection
        statement = (
            f"CREATE TABLE IF NOT EXISTS {self.table_name} ("
            "version BIGINT NOT NULL PRIMARY KEY, "
            f"name VARCHAR({HISTORY_NAME_MAX_LENGTH}) NOT NULL, "
            "applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP, "
            "checksum VARCHAR(64) NOT NULL, "
            "success BOOLEAN NOT NULL DEFAULT TRUE, "
            "execution_time_ms BIGINT NOT NULL DEFAULT 0"
            ")"
        )
        try:
            conn.execute(statement)
        except conn.errors as e:
            if conn.is_unique_violation(e) and self.table_exists():
                logger.debug(f"Ledger table {self.table_name} was created concurrently")
                return
            raise StoreError(f"Failed to create ledger table {self.table_name}: {e}") from e
        logger.debug(f"Ledger table {self.table_name} ensured")

    def table_exists(self) -> bool:
        """Return True if the ledger table exists."""
        try:
            return self.connection.table_exists(self.table_name)
        except self.connection.errors as e:
            raise StoreError(f"Failed to inspect ledger table {self.table_name}: {e}") from e

    def load_records(self) -> list[HistoryRecord]:
        """
        Load every ledger row ordered by version, failed attempts included.

        Returns an empty list when the table has not been created yet; the
        table is not created by this call.

        Raises:
            StoreError: If the ledger cannot be read
        """
        if not self.table_exists():
            return []

        rows = self._query(f"SELECT {_COLUMNS} FROM {self.table_name} ORDER BY version")
        return [self._to_record(row) for row in rows]

    def load_applied(self) -> list[HistoryRecord]:
        """
        Load the successfully applied migrations ordered by version.

        Rows recording a failed attempt are left out, so their versions are
        pending again. Returns an empty list when the table has not been
        created yet; the table is not created by this call.

        Returns:
            Ledger records in ascending version order

        Raises:
            StoreError: If the ledger cannot be read
        """
        if not self.table_exists():
            logger.info(f"Ledger table {self.table_name} does not exist, treating all migrations as pending")
            return []

        ph = self.connection.placeholder
        rows = self._query(
            f"SELECT {_COLUMNS} FROM {self.table_name} WHERE success = {ph} ORDER BY version",
            (True,),
        )
        records = [self._to_record(row) for row in rows]
        logger.info(f"Found {len(records)} applied migration(s)")

        failed = self.load_failed()
        if failed:
            versions = ", ".join(str(r.version) for r in failed)
            logger.warning(f"Ledger {self.table_name} records failed attempts for version(s) {versions}, will retry")
        return records

    def load_failed(self) -> list[HistoryRecord]:
        """Load the rows recording failed attempts, ordered by version."""
        if not self.table_exists():
            return []

        ph = self.connection.placeholder
        rows = self._query(
            f"SELECT {_COLUMNS} FROM {self.table_name} WHERE success = {ph} ORDER BY version",
            (False,),
        )
        return [self._to_record(row) for row in rows]

    def get(self, version: int) -> HistoryRecord | None:
        """Get the ledger row for a version, if any, whether it succeeded or not."""
        ph = self.connection.placeholder
        rows = self._query(f"SELECT {_COLUMNS} FROM {self.table_name} WHERE version = {ph}", (version,))
        return self._to_record(rows[0]) if rows else None

    def has_version(self, version: int) -> bool:
        """
        Check whether a version is recorded as successfully applied.

        Args:
            version: Migration version

        Returns:
            True if a successful ledger row exists for the version
        """
        ph = self.connection.placeholder
        rows = self._query(
            f"SELECT 1 FROM {self.table_name} WHERE version = {ph} AND success = {ph}",
            (version, True),
        )
        return bool(rows)

    def record(self, entry: HistoryRecord) -> None:
        """
        Insert exactly one ledger row.

        A row left by a failed attempt at the same version is replaced;
        callers wanting the replacement to be atomic run this inside
        ``connection.transaction()``.

        Args:
            entry: Record to insert

        Raises:
            RecordExistsError: If the version is already recorded as applied
            StoreError: If the insert fails for any other reason
        """
        if len(entry.name) > HISTORY_NAME_MAX_LENGTH:
            logger.warning(
                f"Name of migration {entry.version} is longer than {HISTORY_NAME_MAX_LENGTH} characters, "
                "storing it truncated"
            )

        ph = self.connection.placeholder
        placeholders = ", ".join([ph] * 6)
        params = (
            entry.version,
            entry.name[:HISTORY_NAME_MAX_LENGTH],
            entry.applied_at.isoformat(),
            entry.checksum,
            entry.success,
            entry.execution_time_ms,
        )
        try:
            self.connection.execute(
                f"DELETE FROM {self.table_name} WHERE version = {ph} AND success = {ph}",
                (entry.version, False),
            )
            self.connection.execute(
                f"INSERT INTO {self.table_name} ({_COLUMNS}) VALUES ({placeholders})",
                params,
            )
        except self.connection.errors as e:
            if self.connection.is_unique_violation(e):
                raise RecordExistsError(entry.version) from e
            raise StoreError(f"Failed to record migration {entry.version}: {e}") from e
        logger.debug(f"Recorded migration {entry.version} in {self.table_name}")

    def delete(self, version: int) -> bool:
        """
        Remove a ledger row.

        This is an administrative recovery action: it does not run any down
        SQL, it only makes the version pending again.

        Args:
            version: Migration version to forget

        Returns:
            True if a row was removed
        """
        if not self.table_exists() or self.get(version) is None:
            return False

        ph = self.connection.placeholder
        try:
            with self.connection.transaction():
                self.connection.execute(f"DELETE FROM {self.table_name} WHERE version = {ph}", (version,))
        except self.connection.errors as e:
            raise StoreError(f"Failed to delete migration {version}: {e}") from e

        logger.warning(f"Removed migration {version} from ledger {self.table_name}")
        return True

    def status(self) -> LedgerStatus:
        """Summarize the ledger table."""
        if not self.table_exists():
            return LedgerStatus(table_name=self.table_name, table_exists=False)

        records = self.load_applied()
        last = records[-1] if records else None
        return LedgerStatus(
            table_name=self.table_name,
            table_exists=True,
            total_migrations=len(records),
            failed_attempts=len(self.load_failed()),
            last_version=last.version if last else None,
            last_applied_at=last.applied_at if last else None,
        )

    def _query(self, sql: str, params: tuple[Any, ...] = ()) -> list[tuple[Any, ...]]:
        try:
            return self.connection.query(sql, params)
        except self.connection.errors as e:
            raise StoreError(f"Failed to read ledger table {self.table_name}: {e}") from e

    def _to_record(self, row: tuple[Any, ...]) -> HistoryRecord:
        version, name, applied_at, checksum, success, execution_time_ms = row
        try:
            return HistoryRecord(
                version=version,
                name=name,
                applied_at=applied_at,
                checksum=checksum,
                success=bool(success),
                execution_time_ms=execution_time_ms or 0,
            )
        except ValidationError as e:
            raise StoreError(f"Malformed ledger row for version {version}: {e}") from e
