"""Data model for migration scripts, ledger records and run modes."""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .constants import DivergenceKind
from .sql import split_statements


class MigrationScript(BaseModel):
    """One parsed migration file.

    Scripts are immutable once parsed. Ordering is by the integer
    ``version``; ``version_text`` keeps the digits as written in the
    filename (``"001"``) for display.
    """

    model_config = ConfigDict(frozen=True)

    version: int = Field(ge=0)
    version_text: str
    name: str
    filename: str
    body: str
    up_sql: str
    down_sql: str | None = None
    checksum: str
    is_baseline: bool = False

    @property
    def statements(self) -> list[str]:
        """Executable statements of the up section."""
        return split_statements(self.up_sql)

    @property
    def label(self) -> str:
        """Short label used in logs, e.g. ``V001 create users``."""
        return f"V{self.version_text} {self.name}"


class HistoryRecord(BaseModel):
    """A ledger row describing one applied migration."""

    model_config = ConfigDict(frozen=True)

    version: int = Field(ge=0)
    name: str
    applied_at: datetime
    checksum: str
    success: bool = True
    execution_time_ms: int = Field(default=0, ge=0)


class RunMode(BaseModel):
    """Options controlling how a run plans and applies migrations.

    Defaults are conservative: divergences are reported as warnings,
    each migration runs in its own transaction, and the run stops at the
    first failure.
    """

    model_config = ConfigDict(frozen=True)

    target_version: int | None = Field(default=None, ge=0)
    strict_checksum: bool = False
    strict_missing: bool = False
    atomic_batch: bool = False
    continue_on_failure: bool = False

    @model_validator(mode="after")
    def check_batch_options(self) -> "RunMode":
        """A single-transaction batch cannot continue past a failure."""
        if self.atomic_batch and self.continue_on_failure:
            raise ValueError("atomic_batch and continue_on_failure cannot be combined")
        return self


@dataclass(frozen=True)
class Divergence:
    """An inconsistency between the migration files and the ledger."""

    kind: DivergenceKind
    version: int
    name: str
    expected_checksum: str | None = None
    actual_checksum: str | None = None

    @property
    def message(self) -> str:
        """Human-readable description."""
        if self.kind == DivergenceKind.MODIFIED:
            return (
                f"Migration {self.version} ({self.name}) was modified after being applied: "
                f"recorded {self.expected_checksum}, found {self.actual_checksum}"
            )
        if self.kind == DivergenceKind.MISSING:
            return f"Migration {self.version} ({self.name}) is applied but its file is missing"
        return f"Migration {self.version} ({self.name}) is pending but older than the latest applied migration"
