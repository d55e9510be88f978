"""Execution of a migration plan against the target database."""

import logging
import time
from dataclasses import replace
from datetime import datetime

from .connection import DatabaseConnection
from .constants import Outcome
from .errors import ExecutorError, RecordExistsError, ScriptExecutionError
from .history import HistoryStore
from .models import HistoryRecord, MigrationScript, RunMode
from .planner import MigrationPlan
from .report import MigrationOutcome, Report
from .sql import preview_statement

logger = logging.getLogger(__name__)


class Executor:
    """Applies planned migrations and records them in the ledger."""

    def __init__(self, connection: DatabaseConnection, store: HistoryStore) -> None:
        """
        Initialize executor.

        Args:
            connection: Database capability migrations run against
            store: Ledger of the same database
        """
        self.connection = connection
        self.store = store

    def apply(self, plan: MigrationPlan, mode: RunMode | None = None) -> Report:
        """
        Apply a plan and report what happened.

        In the default per-unit mode every migration runs in its own
        transaction together with its ledger insert, so a migration is either
        applied and recorded or neither. A failing migration stops the run
        unless ``continue_on_failure`` is set. With ``atomic_batch`` the whole
        plan commits or rolls back as one transaction.

        Args:
            plan: Plan produced by ``plan_migrations``
            mode: Run options

        Returns:
            Report of per-migration outcomes

        Raises:
            ExecutorError: If single-transaction mode is requested on a
                database without transactional DDL
            StoreError: If the ledger cannot be read or written
        """
        mode = mode or RunMode()
        start = time.perf_counter()

        if mode.atomic_batch:
            outcomes, unattempted = self._apply_batch(list(plan.scripts))
        else:
            outcomes, unattempted = self._apply_each(list(plan.scripts), mode.continue_on_failure)

        report = Report(
            outcomes=tuple(outcomes),
            divergences=plan.divergences,
            unattempted=tuple(unattempted),
            strict_checksum=mode.strict_checksum,
            strict_missing=mode.strict_missing,
            total_time=time.perf_counter() - start,
        )
        logger.info(
            f"Migration run finished: {len(report.applied)} applied, {len(report.failed)} failed, "
            f"{len(report.skipped)} skipped in {report.total_time:.3f}s"
        )
        return report

    def _apply_each(
        self, scripts: list[MigrationScript], continue_on_failure: bool
    ) -> tuple[list[MigrationOutcome], list[int]]:
        outcomes: list[MigrationOutcome] = []
        total = len(scripts)

        for index, script in enumerate(scripts):
            logger.info(f"Applying migration {script.label} ({index + 1}/{total})")
            outcome = self._apply_unit(script)
            outcomes.append(outcome)

            if outcome.outcome == Outcome.FAILED and not continue_on_failure:
                logger.error("Stopping migration run due to failure")
                return outcomes, [s.version for s in scripts[index + 1 :]]

        return outcomes, []

    def _apply_unit(self, script: MigrationScript) -> MigrationOutcome:
        """Apply one migration and its ledger row."""
        start = time.perf_counter()
        transactional = self.connection.supports_transactional_ddl

        try:
            with self.connection.transaction():
                # Another migrator may have applied this version since planning
                if self.store.has_version(script.version):
                    logger.warning(f"Migration {script.version} is already recorded, skipping")
                    return self._outcome(script, Outcome.SKIPPED, start)

                self._run_statements(script)
                if transactional:
                    self.store.record(self._history_record(script, start))

            if not transactional:
                with self.connection.transaction():
                    self.store.record(self._history_record(script, start))
        except ScriptExecutionError as e:
            logger.error(f"Migration {script.label} failed: {e}")
            return self._outcome(script, Outcome.FAILED, start, error=str(e))
        except RecordExistsError:
            logger.warning(f"Migration {script.version} was recorded by a concurrent migrator, skipping")
            return self._outcome(script, Outcome.SKIPPED, start)

        logger.info(f"Migration {script.label} applied in {time.perf_counter() - start:.3f}s")
        return self._outcome(script, Outcome.APPLIED, start)

    def _apply_batch(self, scripts: list[MigrationScript]) -> tuple[list[MigrationOutcome], list[int]]:
        """Apply every migration inside a single transaction."""
        if not self.connection.supports_transactional_ddl:
            raise ExecutorError(
                "Single-transaction mode requires a database that supports transactional DDL"
            )

        outcomes: list[MigrationOutcome] = []
        index = 0
        start = time.perf_counter()

        try:
            with self.connection.transaction():
                for index, script in enumerate(scripts):
                    start = time.perf_counter()
                    logger.info(f"Applying migration {script.label} ({index + 1}/{len(scripts)}) in batch")

                    if self.store.has_version(script.version):
                        logger.warning(f"Migration {script.version} is already recorded, skipping")
                        outcomes.append(self._outcome(script, Outcome.SKIPPED, start))
                        continue

                    self._run_statements(script)
                    self.store.record(self._history_record(script, start))
                    outcomes.append(self._outcome(script, Outcome.APPLIED, start))
        except (ScriptExecutionError, RecordExistsError) as e:
            script = scripts[index]
            logger.error(f"Migration {script.label} failed, rolling back the whole batch: {e}")
            rolled_back = [
                replace(o, outcome=Outcome.ROLLED_BACK) if o.outcome == Outcome.APPLIED else o for o in outcomes
            ]
            failed = self._outcome(script, Outcome.FAILED, start, error=str(e))
            return [*rolled_back, failed], [s.version for s in scripts[index + 1 :]]

        return outcomes, []

    def _run_statements(self, script: MigrationScript) -> None:
        """Execute the up statements of a script inside the caller's transaction."""
        if script.is_baseline:
            logger.info(f"Baseline migration {script.label}, skipping SQL execution")
            return

        statements = script.statements
        logger.debug(f"Executing {len(statements)} statement(s) for {script.label}")
        for i, statement in enumerate(statements):
            logger.debug(f"Executing statement {i + 1}/{len(statements)}: {preview_statement(statement)}")
            try:
                self.connection.execute(statement)
            except self.connection.errors as e:
                raise ScriptExecutionError(script.version, i, statement, e) from e

    def _history_record(self, script: MigrationScript, start: float) -> HistoryRecord:
        return HistoryRecord(
            version=script.version,
            name=script.name,
            applied_at=datetime.now(),
            checksum=script.checksum,
            success=True,
            execution_time_ms=int((time.perf_counter() - start) * 1000),
        )

    def _outcome(
        self, script: MigrationScript, outcome: Outcome, start: float, error: str | None = None
    ) -> MigrationOutcome:
        return MigrationOutcome(
            version=script.version,
            name=script.name,
            outcome=outcome,
            duration=time.perf_counter() - start,
            error=error,
            baseline=script.is_baseline,
        )
