"""Tests for run reports."""

from sql_migrator.constants import DivergenceKind, Outcome
from sql_migrator.models import Divergence
from sql_migrator.report import MigrationOutcome, Report


def _outcome(version: int, outcome: Outcome, error: str | None = None) -> MigrationOutcome:
    return MigrationOutcome(version=version, name=f"step {version}", outcome=outcome, error=error)


class TestReportSuccess:
    """Tests for Report.success."""

    def test_empty_report_succeeds(self) -> None:
        """Test that a run with nothing to do is a success."""
        assert Report().success is True

    def test_failure_fails(self) -> None:
        """Test that any failed migration fails the run."""
        report = Report(outcomes=(_outcome(1, Outcome.APPLIED), _outcome(2, Outcome.FAILED, "boom")))

        assert report.success is False
        assert report.has_failures is True

    def test_rolled_back_fails(self) -> None:
        """Test that rolled back migrations fail the run."""
        assert Report(outcomes=(_outcome(1, Outcome.ROLLED_BACK),)).success is False

    def test_skipped_is_success(self) -> None:
        """Test that skipped migrations do not fail the run."""
        assert Report(outcomes=(_outcome(1, Outcome.SKIPPED),)).success is True

    def test_divergences_are_warnings_by_default(self) -> None:
        """Test that divergences only fail under the matching strict mode."""
        modified = Divergence(kind=DivergenceKind.MODIFIED, version=1, name="a")
        missing = Divergence(kind=DivergenceKind.MISSING, version=2, name="b")
        out_of_order = Divergence(kind=DivergenceKind.OUT_OF_ORDER, version=3, name="c")

        assert Report(divergences=(modified, missing, out_of_order)).success is True
        assert Report(divergences=(modified,), strict_checksum=True).success is False
        assert Report(divergences=(modified,), strict_missing=True).success is True
        assert Report(divergences=(missing,), strict_missing=True).success is False
        assert Report(divergences=(out_of_order,), strict_missing=True).success is False


class TestReportSummary:
    """Tests for report accessors and summary text."""

    def test_partitions(self) -> None:
        """Test outcome grouping."""
        report = Report(
            outcomes=(
                _outcome(1, Outcome.APPLIED),
                _outcome(2, Outcome.SKIPPED),
                _outcome(3, Outcome.FAILED, "syntax error"),
            ),
            unattempted=(4, 5),
        )

        assert [o.version for o in report.applied] == [1]
        assert [o.version for o in report.skipped] == [2]
        assert [o.version for o in report.failed] == [3]
        assert report.total_executed == 2

    def test_str_lists_failures(self) -> None:
        """Test the plain-text summary."""
        report = Report(
            outcomes=(_outcome(1, Outcome.APPLIED), _outcome(2, Outcome.FAILED, "syntax error")),
            total_time=1.5,
        )

        text = str(report)

        assert "Applied: 1" in text
        assert "Failed: 1" in text
        assert "Total time: 1.500s" in text
        assert "2: syntax error" in text
