"""End-to-end tests for Migrator against SQLite."""

from pathlib import Path

import pytest

from sql_migrator.connection import SQLiteConnection
from sql_migrator.constants import DivergenceKind, Outcome
from sql_migrator.errors import ChecksumMismatchError, InvalidNameError, MissingMigrationError
from sql_migrator.history import history_table_name
from sql_migrator.migrator import Migrator
from sql_migrator.models import RunMode
from tests.migration_helpers import CREATE_POSTS, CREATE_TAGS, CREATE_USERS, make_record, table_names, write_migration


def _project(tmp_path: Path) -> tuple[Path, Path]:
    migrations = tmp_path / "migrations"
    write_migration(migrations, "V001__create_users.sql", CREATE_USERS)
    write_migration(migrations, "V002__create_posts.sql", CREATE_POSTS)
    return migrations, tmp_path / "app.db"


class TestMigrate:
    """Tests for Migrator.migrate."""

    def test_fresh_apply_then_noop(self, tmp_path: Path) -> None:
        """Test applying to an empty database, then re-running."""
        migrations, db_path = _project(tmp_path)

        with SQLiteConnection(db_path) as connection:
            migrator = Migrator(connection, migrations)

            first = migrator.migrate()
            second = migrator.migrate()

            assert first.success is True
            assert [o.version for o in first.applied] == [1, 2]
            assert second.success is True
            assert second.outcomes == ()
            assert [r.version for r in migrator.history()] == [1, 2]

    def test_resume_after_fixing_failure(self, tmp_path: Path) -> None:
        """Test that a fixed script is applied on the next run."""
        migrations, db_path = _project(tmp_path)
        broken = write_migration(migrations, "V003__create_tags.sql", "CREATE TABLE tags (;")
        write_migration(migrations, "V004__add_index.sql", "CREATE INDEX idx_posts_user ON posts (user_id);")

        with SQLiteConnection(db_path) as connection:
            migrator = Migrator(connection, migrations)

            first = migrator.migrate()
            assert first.success is False
            assert first.unattempted == (4,)
            assert [r.version for r in migrator.history()] == [1, 2]

            broken.write_text(CREATE_TAGS, encoding="utf-8")
            second = migrator.migrate()

            assert second.success is True
            assert [o.version for o in second.applied] == [3, 4]
            assert "tags" in table_names(connection)

    def test_deleted_applied_script_strict(self, tmp_path: Path) -> None:
        """Test that a deleted applied script aborts a strict run without changes."""
        migrations, db_path = _project(tmp_path)

        with SQLiteConnection(db_path) as connection:
            migrator = Migrator(connection, migrations)
            migrator.migrate()
            (migrations / "V001__create_users.sql").unlink()
            write_migration(migrations, "V003__create_tags.sql", CREATE_TAGS)

            with pytest.raises(MissingMigrationError) as exc_info:
                migrator.migrate(RunMode(strict_missing=True))

            assert exc_info.value.version == 1
            assert "tags" not in table_names(connection)
            assert [r.version for r in migrator.history()] == [1, 2]

    def test_deleted_applied_script_lenient(self, tmp_path: Path) -> None:
        """Test that a deleted applied script is only a warning by default."""
        migrations, db_path = _project(tmp_path)

        with SQLiteConnection(db_path) as connection:
            migrator = Migrator(connection, migrations)
            migrator.migrate()
            (migrations / "V001__create_users.sql").unlink()

            report = migrator.migrate()

            assert report.success is True
            assert [d.kind for d in report.divergences] == [DivergenceKind.MISSING]

    def test_modified_script(self, tmp_path: Path) -> None:
        """Test modified scripts under lenient and strict checksum modes."""
        migrations, db_path = _project(tmp_path)

        with SQLiteConnection(db_path) as connection:
            migrator = Migrator(connection, migrations)
            migrator.migrate()
            write_migration(migrations, "V001__create_users.sql", CREATE_USERS + "\n-- tweaked")

            lenient = migrator.migrate()
            assert lenient.success is True
            assert [d.version for d in lenient.divergences] == [1]

            with pytest.raises(ChecksumMismatchError):
                migrator.migrate(RunMode(strict_checksum=True))

    def test_invalid_file_aborts_before_database(self, tmp_path: Path) -> None:
        """Test that naming errors leave the database untouched."""
        migrations, db_path = _project(tmp_path)
        write_migration(migrations, "V003-bad.sql", CREATE_TAGS)

        with SQLiteConnection(db_path) as connection:
            migrator = Migrator(connection, migrations)

            with pytest.raises(InvalidNameError):
                migrator.migrate()

            assert table_names(connection) == set()

    def test_oversized_version_aborts_before_database(self, tmp_path: Path) -> None:
        """Test that a version too large for the ledger column is a naming error."""
        migrations, db_path = _project(tmp_path)
        write_migration(migrations, "V99999999999999999999__huge.sql", CREATE_TAGS)

        with SQLiteConnection(db_path) as connection:
            migrator = Migrator(connection, migrations)

            with pytest.raises(InvalidNameError, match="V99999999999999999999__huge.sql"):
                migrator.migrate()

            assert table_names(connection) == set()

    def test_failed_attempt_row_is_retried(self, tmp_path: Path) -> None:
        """Test that a ledger row recording a failed attempt leaves the version pending."""
        migrations, db_path = _project(tmp_path)

        with SQLiteConnection(db_path) as connection:
            migrator = Migrator(connection, migrations)
            migrator.store.ensure_table()
            migrator.store.record(make_record(1, "x", name="create users", success=False))

            plan = migrator.plan()
            assert plan.versions == [1, 2]
            assert plan.divergences == ()

            report = migrator.migrate()

            assert report.success is True
            assert [o.version for o in report.applied] == [1, 2]
            assert {"users", "posts"} <= table_names(connection)
            assert all(r.success for r in migrator.history())
            assert migrator.status().failed_attempts == 0

    def test_target_version(self, tmp_path: Path) -> None:
        """Test applying up to a target version."""
        migrations, db_path = _project(tmp_path)

        with SQLiteConnection(db_path) as connection:
            migrator = Migrator(connection, migrations)

            report = migrator.migrate(RunMode(target_version=1))

            assert [o.version for o in report.applied] == [1]
            assert migrator.plan().versions == [2]

    def test_service_ledger(self, tmp_path: Path) -> None:
        """Test that a service-specific ledger table is used."""
        migrations, db_path = _project(tmp_path)

        with SQLiteConnection(db_path) as connection:
            migrator = Migrator(connection, migrations, table_name=history_table_name(service="billing"))
            migrator.migrate()

            assert "schema_history_billing" in table_names(connection)
            assert "schema_history" not in table_names(connection)


class TestPlanStatusForget:
    """Tests for the read-only and administrative operations."""

    def test_plan_does_not_write(self, tmp_path: Path) -> None:
        """Test that planning never creates the ledger."""
        migrations, db_path = _project(tmp_path)

        with SQLiteConnection(db_path) as connection:
            plan = Migrator(connection, migrations).plan()

            assert plan.versions == [1, 2]
            assert table_names(connection) == set()

    def test_status(self, tmp_path: Path) -> None:
        """Test ledger status before and after a run."""
        migrations, db_path = _project(tmp_path)

        with SQLiteConnection(db_path) as connection:
            migrator = Migrator(connection, migrations)
            assert migrator.status().table_exists is False

            migrator.migrate()
            status = migrator.status()

            assert status.total_migrations == 2
            assert status.last_version == 2

    def test_forget_makes_version_pending(self, tmp_path: Path) -> None:
        """Test that forgetting a version re-applies it next run."""
        migrations = tmp_path / "migrations"
        write_migration(migrations, "V001__seed.sql", "CREATE TABLE IF NOT EXISTS seed (id INTEGER);")

        with SQLiteConnection(tmp_path / "app.db") as connection:
            migrator = Migrator(connection, migrations)
            migrator.migrate()

            assert migrator.forget(1) is True
            assert migrator.plan().versions == [1]

            report = migrator.migrate()
            assert [o.outcome for o in report.outcomes] == [Outcome.APPLIED]
