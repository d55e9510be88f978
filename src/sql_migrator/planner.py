"""Planning: which migrations to apply, in which order, and what has drifted."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from .constants import DivergenceKind
from .errors import ChecksumMismatchError, MissingMigrationError
from .models import Divergence, HistoryRecord, MigrationScript, RunMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationPlan:
    """Ordered migrations pending for one run, plus the divergences found."""

    scripts: tuple[MigrationScript, ...] = ()
    divergences: tuple[Divergence, ...] = ()
    target_version: int | None = None
    excluded: tuple[MigrationScript, ...] = field(default=(), compare=False)

    @property
    def is_empty(self) -> bool:
        """Whether there is nothing to apply."""
        return not self.scripts

    @property
    def versions(self) -> list[int]:
        """Versions in apply order."""
        return [script.version for script in self.scripts]

    def divergences_of(self, kind: DivergenceKind) -> list[Divergence]:
        """Divergences of one kind."""
        return [d for d in self.divergences if d.kind == kind]


def plan_migrations(
    scripts: Sequence[MigrationScript],
    applied: Sequence[HistoryRecord],
    mode: RunMode | None = None,
) -> MigrationPlan:
    """
    Compare migration files with the ledger and build the apply plan.

    Pending migrations are those whose version has no ledger row. They are
    always returned in ascending version order, whatever order the files
    were listed in. This function does not touch the database, so calling
    it on its own is a preview.

    Args:
        scripts: Parsed migration scripts
        applied: Ledger records
        mode: Run options (strictness, target version)

    Returns:
        MigrationPlan with pending scripts and detected divergences

    Raises:
        ChecksumMismatchError: Applied script modified, under strict_checksum
        MissingMigrationError: Applied script missing, or pending script older
            than the newest applied one, under strict_missing
    """
    mode = mode or RunMode()
    ordered = sorted(scripts, key=lambda s: s.version)
    by_version = {script.version: script for script in ordered}
    recorded = {record.version: record for record in applied}

    divergences: list[Divergence] = []

    for script in ordered:
        record = recorded.get(script.version)
        if record is None or record.checksum == script.checksum:
            continue
        if mode.strict_checksum:
            raise ChecksumMismatchError(script.version, record.checksum, script.checksum)
        divergences.append(
            Divergence(
                kind=DivergenceKind.MODIFIED,
                version=script.version,
                name=script.name,
                expected_checksum=record.checksum,
                actual_checksum=script.checksum,
            )
        )

    for version in sorted(recorded):
        if version in by_version:
            continue
        if mode.strict_missing:
            raise MissingMigrationError(version)
        divergences.append(Divergence(kind=DivergenceKind.MISSING, version=version, name=recorded[version].name))

    pending = [script for script in ordered if script.version not in recorded]

    latest_applied = max(recorded, default=None)
    if latest_applied is not None:
        for script in pending:
            if script.version >= latest_applied:
                break
            if mode.strict_missing:
                raise MissingMigrationError(
                    script.version, f"is pending but older than the latest applied migration {latest_applied}"
                )
            divergences.append(
                Divergence(kind=DivergenceKind.OUT_OF_ORDER, version=script.version, name=script.name)
            )

    excluded: list[MigrationScript] = []
    if mode.target_version is not None:
        excluded = [script for script in pending if script.version > mode.target_version]
        pending = [script for script in pending if script.version <= mode.target_version]

    for divergence in divergences:
        logger.warning(divergence.message)

    divergences.sort(key=lambda d: d.version)
    logger.info(f"Planned {len(pending)} pending migration(s)")
    return MigrationPlan(
        scripts=tuple(pending),
        divergences=tuple(divergences),
        target_version=mode.target_version,
        excluded=tuple(excluded),
    )
