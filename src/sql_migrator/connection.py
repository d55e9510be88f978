"""Database connection capability used by the migration engine.

The engine never issues vendor-specific SQL of its own. Everything that
differs between database engines (parameter placeholders, how to probe for
a table, how a unique-key violation surfaces, whether DDL is transactional)
lives behind ``DatabaseConnection``.
"""

import logging
import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from .utils import ensure_dir

logger = logging.getLogger(__name__)

MYSQL_TABLE_EXISTS_QUERY = (
    "SELECT 1 FROM information_schema.tables WHERE table_name = {ph} AND table_schema = DATABASE()"
)


class DatabaseConnection(ABC):
    """
    Opaque database capability: execute, query and transactions.

    Statements executed outside ``transaction()`` are committed
    immediately. ``transaction()`` is reentrant: nested blocks join the
    outermost transaction, which alone commits or rolls back.
    """

    placeholder: str = "?"
    supports_transactional_ddl: bool = True
    errors: tuple[type[BaseException], ...] = (Exception,)
    integrity_errors: tuple[type[BaseException], ...] = ()

    def __init__(self) -> None:
        self._transaction_depth = 0

    @abstractmethod
    def _execute(self, sql: str, params: Sequence[Any]) -> None:
        """Run one statement on the underlying driver."""
        pass

    @abstractmethod
    def _query(self, sql: str, params: Sequence[Any]) -> list[tuple[Any, ...]]:
        """Run one query on the underlying driver and fetch all rows."""
        pass

    @abstractmethod
    def begin(self) -> None:
        """Start a transaction."""
        pass

    @abstractmethod
    def commit(self) -> None:
        """Commit the current transaction."""
        pass

    @abstractmethod
    def rollback(self) -> None:
        """Roll back the current transaction."""
        pass

    @abstractmethod
    def table_exists(self, table_name: str) -> bool:
        """Return True if the table exists in the current database/schema."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the underlying connection."""
        pass

    @property
    def in_transaction(self) -> bool:
        """Whether a ``transaction()`` block is active."""
        return self._transaction_depth > 0

    def execute(self, sql: str, params: Sequence[Any] = ()) -> None:
        """
        Execute a single statement.

        Outside ``transaction()`` the statement is committed on success and
        rolled back on failure, so the connection stays usable afterwards.

        Args:
            sql: Statement text
            params: Positional parameters for the connection's placeholder style
        """
        if self.in_transaction:
            self._execute(sql, params)
            return

        try:
            self._execute(sql, params)
        except self.errors:
            self.rollback()
            raise
        self.commit()

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[tuple[Any, ...]]:
        """
        Execute a query and return all rows.

        Args:
            sql: Query text
            params: Positional parameters for the connection's placeholder style

        Returns:
            List of row tuples
        """
        return self._query(sql, params)

    @contextmanager
    def transaction(self) -> Iterator["DatabaseConnection"]:
        """
        Run a block inside a transaction.

        The transaction commits when the block exits normally and rolls back
        on any exception, including ``KeyboardInterrupt``, which is re-raised.
        """
        if self.in_transaction:
            self._transaction_depth += 1
            try:
                yield self
            finally:
                self._transaction_depth -= 1
            return

        self.begin()
        self._transaction_depth = 1
        try:
            yield self
        except BaseException:
            self._transaction_depth = 0
            try:
                self.rollback()
            except self.errors as e:
                logger.warning(f"Rollback failed: {e}")
            raise
        self._transaction_depth = 0
        try:
            self.commit()
        except self.errors:
            self.rollback()
            raise

    def execute_in_transaction(self, statements: Sequence[str]) -> None:
        """Execute several statements atomically."""
        with self.transaction():
            for statement in statements:
                self.execute(statement)

    def is_unique_violation(self, error: BaseException) -> bool:
        """Return True if the driver error reports a duplicate key."""
        return bool(self.integrity_errors) and isinstance(error, self.integrity_errors)

    def __enter__(self) -> "DatabaseConnection":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class DBAPIConnection(DatabaseConnection):
    """
    Adapter for any DB-API 2.0 connection (psycopg, pymysql, ...).

    DB-API drivers open transactions implicitly, so ``begin()`` is a no-op and
    statements outside ``transaction()`` are committed one by one.

    Args:
        connection: Open DB-API connection
        placeholder: Parameter marker of the driver's paramstyle (``%s``, ``?``)
        transactional_ddl: Whether schema changes can be rolled back
        error: Driver base exception class (defaults to ``connection.Error``)
        integrity_error: Driver duplicate-key exception class
            (defaults to ``connection.IntegrityError``)
        table_exists_query: Table probe with a ``{ph}`` slot for the table
            name. The default looks in the current PostgreSQL schema; MySQL
            needs ``MYSQL_TABLE_EXISTS_QUERY``.
    """

    table_exists_query = (
        "SELECT 1 FROM information_schema.tables WHERE table_name = {ph} AND table_schema = current_schema()"
    )

    def __init__(
        self,
        connection: Any,
        placeholder: str = "%s",
        transactional_ddl: bool = True,
        error: type[BaseException] | None = None,
        integrity_error: type[BaseException] | None = None,
        table_exists_query: str | None = None,
    ) -> None:
        super().__init__()
        self.connection = connection
        self.placeholder = placeholder
        self.supports_transactional_ddl = transactional_ddl
        if table_exists_query is not None:
            self.table_exists_query = table_exists_query

        error = error or getattr(connection, "Error", None)
        integrity_error = integrity_error or getattr(connection, "IntegrityError", None)
        if error is not None:
            self.errors = (error,)
        if integrity_error is not None:
            self.integrity_errors = (integrity_error,)

    def _execute(self, sql: str, params: Sequence[Any]) -> None:
        cursor = self.connection.cursor()
        try:
            if params:
                cursor.execute(sql, tuple(params))
            else:
                cursor.execute(sql)
        finally:
            cursor.close()

    def _query(self, sql: str, params: Sequence[Any]) -> list[tuple[Any, ...]]:
        cursor = self.connection.cursor()
        try:
            if params:
                cursor.execute(sql, tuple(params))
            else:
                cursor.execute(sql)
            return [tuple(row) for row in cursor.fetchall()]
        finally:
            cursor.close()

    def begin(self) -> None:
        pass

    def commit(self) -> None:
        self.connection.commit()

    def rollback(self) -> None:
        self.connection.rollback()

    def table_exists(self, table_name: str) -> bool:
        rows = self.query(self.table_exists_query.format(ph=self.placeholder), (table_name,))
        # Close the implicit transaction opened by the probe
        if not self.in_transaction:
            self.commit()
        return bool(rows)

    def close(self) -> None:
        self.connection.close()


class SQLiteConnection(DatabaseConnection):
    """
    Adapter for the standard library ``sqlite3`` module.

    The connection runs in autocommit mode and transactions are opened
    explicitly with ``BEGIN``, which makes SQLite DDL transactional.

    Args:
        database: Database file path, ``":memory:"``, or an open sqlite3 connection
    """

    placeholder = "?"
    supports_transactional_ddl = True
    errors = (sqlite3.Error,)
    integrity_errors = (sqlite3.IntegrityError,)

    def __init__(self, database: Path | str | sqlite3.Connection) -> None:
        super().__init__()
        if isinstance(database, sqlite3.Connection):
            self.connection = database
            self.connection.isolation_level = None
        else:
            if str(database) != ":memory:":
                ensure_dir(Path(database).expanduser().parent)
            self.connection = sqlite3.connect(str(database), isolation_level=None)

    def _execute(self, sql: str, params: Sequence[Any]) -> None:
        self.connection.execute(sql, tuple(params))

    def _query(self, sql: str, params: Sequence[Any]) -> list[tuple[Any, ...]]:
        return [tuple(row) for row in self.connection.execute(sql, tuple(params)).fetchall()]

    def begin(self) -> None:
        self.connection.execute("BEGIN")

    def commit(self) -> None:
        if self.connection.in_transaction:
            self.connection.execute("COMMIT")

    def rollback(self) -> None:
        if self.connection.in_transaction:
            self.connection.execute("ROLLBACK")

    def table_exists(self, table_name: str) -> bool:
        rows = self.query(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
            (table_name,),
        )
        return bool(rows)

    def close(self) -> None:
        self.connection.close()
