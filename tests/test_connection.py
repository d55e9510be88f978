"""Tests for database connection adapters."""

import sqlite3
from pathlib import Path

import pytest

from sql_migrator.connection import MYSQL_TABLE_EXISTS_QUERY, DBAPIConnection, SQLiteConnection
from sql_migrator.history import HistoryStore
from tests.migration_helpers import AbortingDriver, FakeIntegrityError, table_names


class TestSQLiteConnection:
    """Tests for SQLiteConnection."""

    def test_creates_parent_directory(self, tmp_path: Path) -> None:
        """Test that the database directory is created on connect."""
        db_path = tmp_path / "nested" / "dir" / "app.db"

        with SQLiteConnection(db_path):
            pass

        assert db_path.exists()

    def test_execute_outside_transaction_commits(self, tmp_path: Path) -> None:
        """Test that statements outside a transaction are persisted immediately."""
        db_path = tmp_path / "app.db"
        with SQLiteConnection(db_path) as connection:
            connection.execute("CREATE TABLE t (id INTEGER)")
            connection.execute("INSERT INTO t VALUES (?)", (1,))

        with SQLiteConnection(db_path) as connection:
            assert connection.query("SELECT id FROM t") == [(1,)]

    def test_transaction_commits(self, tmp_path: Path) -> None:
        """Test that a successful block is committed."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            with connection.transaction():
                connection.execute("CREATE TABLE t (id INTEGER)")
                connection.execute("INSERT INTO t VALUES (1)")

            assert connection.query("SELECT COUNT(*) FROM t") == [(1,)]

    def test_transaction_rolls_back_ddl(self, tmp_path: Path) -> None:
        """Test that schema changes are rolled back on error."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            with pytest.raises(sqlite3.OperationalError):
                with connection.transaction():
                    connection.execute("CREATE TABLE t (id INTEGER)")
                    connection.execute("CREATE TABLE broken (")

            assert "t" not in table_names(connection)
            assert connection.in_transaction is False

    def test_transaction_rolls_back_on_interrupt(self, tmp_path: Path) -> None:
        """Test that KeyboardInterrupt rolls back and propagates."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            with pytest.raises(KeyboardInterrupt):
                with connection.transaction():
                    connection.execute("CREATE TABLE t (id INTEGER)")
                    raise KeyboardInterrupt

            assert "t" not in table_names(connection)

    def test_nested_transaction_joins_outer(self, tmp_path: Path) -> None:
        """Test that an inner block does not commit on its own."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            with pytest.raises(RuntimeError):
                with connection.transaction():
                    with connection.transaction():
                        connection.execute("CREATE TABLE inner_t (id INTEGER)")
                    assert connection.in_transaction is True
                    raise RuntimeError("outer fails")

            assert "inner_t" not in table_names(connection)

    def test_execute_in_transaction(self, tmp_path: Path) -> None:
        """Test atomic execution of several statements."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            with pytest.raises(sqlite3.Error):
                connection.execute_in_transaction(["CREATE TABLE a (id INTEGER)", "NOT SQL"])

            assert "a" not in table_names(connection)

    def test_table_exists(self, tmp_path: Path) -> None:
        """Test table probing."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            assert connection.table_exists("t") is False
            connection.execute("CREATE TABLE t (id INTEGER)")
            assert connection.table_exists("t") is True

    def test_unique_violation_detection(self, tmp_path: Path) -> None:
        """Test that integrity errors are recognized as duplicate keys."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            assert connection.is_unique_violation(sqlite3.IntegrityError("dup")) is True
            assert connection.is_unique_violation(sqlite3.OperationalError("locked")) is False

    def test_wraps_existing_connection(self) -> None:
        """Test adapting an already open sqlite3 connection."""
        raw = sqlite3.connect(":memory:")
        connection = SQLiteConnection(raw)

        connection.execute("CREATE TABLE t (id INTEGER)")

        assert connection.table_exists("t") is True
        connection.close()


class TestDBAPIConnection:
    """Tests for the generic DB-API adapter, driven by sqlite3 and a fake driver."""

    def test_uses_driver_error_classes(self) -> None:
        """Test that error classes are taken from the driver connection."""
        connection = DBAPIConnection(sqlite3.connect(":memory:"), placeholder="?")

        assert connection.errors == (sqlite3.Error,)
        assert connection.integrity_errors == (sqlite3.IntegrityError,)
        connection.close()

    def test_transaction_rollback(self, tmp_path: Path) -> None:
        """Test that DML inside a failed transaction is rolled back."""
        connection = DBAPIConnection(sqlite3.connect(tmp_path / "app.db"), placeholder="?")
        connection.execute("CREATE TABLE t (id INTEGER)")

        with pytest.raises(RuntimeError):
            with connection.transaction():
                connection.execute("INSERT INTO t VALUES (?)", (1,))
                raise RuntimeError("boom")

        assert connection.query("SELECT COUNT(*) FROM t") == [(0,)]
        connection.close()

    def test_transactional_ddl_flag(self) -> None:
        """Test that the DDL capability is configurable."""
        connection = DBAPIConnection(sqlite3.connect(":memory:"), transactional_ddl=False)

        assert connection.supports_transactional_ddl is False
        assert connection.placeholder == "%s"
        connection.close()

    def test_failed_statement_outside_transaction_rolls_back(self) -> None:
        """Test that a failing autocommit statement leaves the connection usable."""
        driver = AbortingDriver(tables=["t"])
        connection = DBAPIConnection(driver)

        with pytest.raises(FakeIntegrityError):
            connection.execute("CREATE TABLE t (id INTEGER)")

        assert driver.aborted is False
        assert driver.rollbacks == 1
        assert connection.table_exists("t") is True

    def test_concurrent_ledger_creation_tolerated(self) -> None:
        """Test that losing the ledger creation race is not an error."""
        driver = AbortingDriver(tables=["schema_history"])
        store = HistoryStore(DBAPIConnection(driver))

        store.ensure_table()

        assert store.table_exists() is True

    def test_table_probe_scoped_to_current_schema(self) -> None:
        """Test that the default probe ignores tables in other schemas."""
        driver = AbortingDriver(tables=["t"])
        connection = DBAPIConnection(driver)

        connection.table_exists("t")

        assert "table_schema = current_schema()" in driver.queries[-1]
        assert "%s" in driver.queries[-1]

    def test_table_probe_override(self) -> None:
        """Test that the probe can be replaced for other databases."""
        driver = AbortingDriver(tables=["t"])
        connection = DBAPIConnection(driver, table_exists_query=MYSQL_TABLE_EXISTS_QUERY)

        assert connection.table_exists("t") is True
        assert "table_schema = DATABASE()" in driver.queries[-1]
