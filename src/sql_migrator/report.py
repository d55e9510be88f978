"""Immutable summary of a migration run."""

from dataclasses import dataclass

from .constants import DivergenceKind, Outcome
from .models import Divergence


@dataclass(frozen=True)
class MigrationOutcome:
    """What happened to one migration during a run."""

    version: int
    name: str
    outcome: Outcome
    duration: float = 0.0
    error: str | None = None
    baseline: bool = False


@dataclass(frozen=True)
class Report:
    """
    Result of a migration run.

    Callers must branch on ``success`` rather than on the absence of an
    exception: a run that stops at a failing migration returns normally
    with a report describing the partial state.
    """

    outcomes: tuple[MigrationOutcome, ...] = ()
    divergences: tuple[Divergence, ...] = ()
    unattempted: tuple[int, ...] = ()
    strict_checksum: bool = False
    strict_missing: bool = False
    total_time: float = 0.0

    @property
    def success(self) -> bool:
        """True iff nothing failed and no divergence violates a requested strict mode."""
        if any(o.outcome in (Outcome.FAILED, Outcome.ROLLED_BACK) for o in self.outcomes):
            return False
        for divergence in self.divergences:
            if self.strict_checksum and divergence.kind == DivergenceKind.MODIFIED:
                return False
            if self.strict_missing and divergence.kind in (DivergenceKind.MISSING, DivergenceKind.OUT_OF_ORDER):
                return False
        return True

    @property
    def applied(self) -> list[MigrationOutcome]:
        return [o for o in self.outcomes if o.outcome == Outcome.APPLIED]

    @property
    def failed(self) -> list[MigrationOutcome]:
        return [o for o in self.outcomes if o.outcome == Outcome.FAILED]

    @property
    def skipped(self) -> list[MigrationOutcome]:
        return [o for o in self.outcomes if o.outcome == Outcome.SKIPPED]

    @property
    def rolled_back(self) -> list[MigrationOutcome]:
        return [o for o in self.outcomes if o.outcome == Outcome.ROLLED_BACK]

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    @property
    def total_executed(self) -> int:
        """Number of migrations whose statements were attempted."""
        return len(self.applied) + len(self.failed) + len(self.rolled_back)

    def __str__(self) -> str:
        lines = [
            "Migration Summary:",
            f"  Applied: {len(self.applied)}",
            f"  Failed: {len(self.failed)}",
            f"  Skipped: {len(self.skipped)}",
            f"  Total time: {self.total_time:.3f}s",
        ]
        if self.failed:
            lines.append("")
            lines.append("Failed migrations:")
            lines.extend(f"  - {o.version}: {o.error}" for o in self.failed)
        return "\n".join(lines)
