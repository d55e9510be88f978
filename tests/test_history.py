"""Tests for the ledger table."""

import logging
from datetime import datetime
from pathlib import Path

import pytest

from sql_migrator.connection import SQLiteConnection
from sql_migrator.errors import RecordExistsError, StoreError
from sql_migrator.history import HistoryStore, history_table_name
from tests.migration_helpers import make_record, table_names


class TestHistoryTableName:
    """Tests for history_table_name."""

    def test_default_name(self) -> None:
        """Test the default ledger table name."""
        assert history_table_name() == "schema_history"

    def test_service_suffix(self) -> None:
        """Test that a service name scopes the table."""
        assert history_table_name("schema_history", "billing") == "schema_history_billing"

    def test_rejects_non_identifiers(self) -> None:
        """Test that names unsafe to interpolate into SQL are rejected."""
        with pytest.raises(ValueError):
            history_table_name("schema-history")
        with pytest.raises(ValueError):
            history_table_name("schema_history", "x; DROP TABLE users")

    def test_store_validates_table_name(self) -> None:
        """Test that HistoryStore refuses an invalid table name."""
        with SQLiteConnection(":memory:") as connection:
            with pytest.raises(ValueError):
                HistoryStore(connection, "bad name")


class TestHistoryStore:
    """Tests for HistoryStore on SQLite."""

    def test_ensure_table_creates_once(self, tmp_path: Path) -> None:
        """Test that ensure_table is idempotent."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            store = HistoryStore(connection)

            assert store.table_exists() is False
            store.ensure_table()
            store.ensure_table()

            assert store.table_exists() is True
            assert "schema_history" in table_names(connection)

    def test_load_applied_without_table(self, tmp_path: Path) -> None:
        """Test that reading a missing ledger does not create it."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            store = HistoryStore(connection)

            assert store.load_applied() == []
            assert store.table_exists() is False

    def test_record_and_get(self, tmp_path: Path) -> None:
        """Test that a recorded row reads back with the same values."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            store = HistoryStore(connection)
            store.ensure_table()

            store.record(make_record(1, "abc123", name="create users"))
            record = store.get(1)

            assert record is not None
            assert record.version == 1
            assert record.name == "create users"
            assert record.checksum == "abc123"
            assert record.applied_at == datetime(2024, 1, 1, 12, 0)
            assert record.success is True
            assert store.get(2) is None

    def test_load_applied_ordered(self, tmp_path: Path) -> None:
        """Test that records come back in version order."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            store = HistoryStore(connection)
            store.ensure_table()
            for version in (3, 1, 2):
                store.record(make_record(version, f"sum{version}"))

            assert [r.version for r in store.load_applied()] == [1, 2, 3]

    def test_record_duplicate_version(self, tmp_path: Path) -> None:
        """Test that the ledger refuses a second row for a version."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            store = HistoryStore(connection)
            store.ensure_table()
            store.record(make_record(1, "first"))

            with pytest.raises(RecordExistsError) as exc_info:
                store.record(make_record(1, "second"))

            assert exc_info.value.version == 1
            assert store.get(1).checksum == "first"  # type: ignore[union-attr]

    def test_record_without_table(self, tmp_path: Path) -> None:
        """Test that write failures surface as StoreError."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            store = HistoryStore(connection)

            with pytest.raises(StoreError):
                store.record(make_record(1, "abc"))

    def test_record_rolled_back_with_transaction(self, tmp_path: Path) -> None:
        """Test that a record inside a failed transaction is not kept."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            store = HistoryStore(connection)
            store.ensure_table()

            with pytest.raises(RuntimeError):
                with connection.transaction():
                    store.record(make_record(1, "abc"))
                    raise RuntimeError("boom")

            assert store.has_version(1) is False

    def test_delete(self, tmp_path: Path) -> None:
        """Test forgetting a ledger row."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            store = HistoryStore(connection)
            store.ensure_table()
            store.record(make_record(1, "abc"))

            assert store.delete(1) is True
            assert store.delete(1) is False
            assert store.has_version(1) is False

    def test_delete_without_table(self, tmp_path: Path) -> None:
        """Test that delete is a no-op before the ledger exists."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            assert HistoryStore(connection).delete(1) is False

    def test_status(self, tmp_path: Path) -> None:
        """Test ledger summary."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            store = HistoryStore(connection, "schema_history_billing")

            missing = store.status()
            assert missing.table_exists is False
            assert missing.total_migrations == 0
            assert missing.last_version is None

            store.ensure_table()
            store.record(make_record(1, "a"))
            store.record(make_record(4, "b"))
            status = store.status()

            assert status.table_name == "schema_history_billing"
            assert status.table_exists is True
            assert status.total_migrations == 2
            assert status.last_version == 4
            assert status.last_applied_at == datetime(2024, 1, 1, 12, 0)

    def test_separate_tables_per_service(self, tmp_path: Path) -> None:
        """Test that service ledgers do not see each other's rows."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            billing = HistoryStore(connection, history_table_name(service="billing"))
            search = HistoryStore(connection, history_table_name(service="search"))
            billing.ensure_table()
            search.ensure_table()

            billing.record(make_record(1, "a"))

            assert billing.has_version(1) is True
            assert search.has_version(1) is False


class TestFailedAttempts:
    """Tests for ledger rows that record a failed attempt."""

    def test_failed_rows_are_not_applied(self, tmp_path: Path) -> None:
        """Test that only successful rows count as applied."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            store = HistoryStore(connection)
            store.ensure_table()
            store.record(make_record(1, "a"))
            store.record(make_record(2, "b", success=False))

            assert [r.version for r in store.load_applied()] == [1]
            assert [r.version for r in store.load_failed()] == [2]
            assert [r.version for r in store.load_records()] == [1, 2]
            assert store.has_version(2) is False
            assert store.get(2).success is False  # type: ignore[union-attr]

    def test_status_counts_successful_rows(self, tmp_path: Path) -> None:
        """Test that the summary separates applied and failed rows."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            store = HistoryStore(connection)
            store.ensure_table()
            store.record(make_record(1, "a"))
            store.record(make_record(2, "b", success=False))

            status = store.status()

            assert status.total_migrations == 1
            assert status.failed_attempts == 1
            assert status.last_version == 1

    def test_record_replaces_failed_attempt(self, tmp_path: Path) -> None:
        """Test that a successful retry takes over the failed row."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            store = HistoryStore(connection)
            store.ensure_table()
            store.record(make_record(1, "old", success=False))

            store.record(make_record(1, "new"))

            record = store.get(1)
            assert record is not None
            assert record.success is True
            assert record.checksum == "new"
            assert store.load_failed() == []

    def test_forget_removes_failed_attempt(self, tmp_path: Path) -> None:
        """Test that delete also clears a failed row."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            store = HistoryStore(connection)
            store.ensure_table()
            store.record(make_record(1, "a", success=False))

            assert store.delete(1) is True
            assert store.get(1) is None


class TestLongNames:
    """Tests for names longer than the ledger column."""

    def test_long_name_truncated_with_warning(self, tmp_path: Path, caplog) -> None:
        """Test that an oversized name is stored truncated and logged."""
        with SQLiteConnection(tmp_path / "app.db") as connection:
            store = HistoryStore(connection)
            store.ensure_table()

            with caplog.at_level(logging.WARNING, logger="sql_migrator.history"):
                store.record(make_record(1, "a", name="x" * 300))

            assert len(store.get(1).name) == 255  # type: ignore[union-attr]
            assert "longer than 255 characters" in caplog.text
