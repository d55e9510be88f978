"""Constants used throughout sql-migrator."""

from enum import Enum


# Filename grammars
class Grammar(str, Enum):
    """Migration filename grammars.

    Attributes:
        VERSIONED: ``V001__description.sql`` family
        NUMERIC: ``001_description.sql`` family
        AUTO: Infer the grammar from the files present
    """

    VERSIONED = "versioned"
    NUMERIC = "numeric"
    AUTO = "auto"


class Outcome(str, Enum):
    """Per-migration outcome recorded in a run report."""

    APPLIED = "applied"
    FAILED = "failed"
    SKIPPED = "skipped"
    ROLLED_BACK = "rolled_back"


class DivergenceKind(str, Enum):
    """Inconsistencies between migration files and the ledger.

    Attributes:
        MODIFIED: Applied script whose checksum no longer matches the ledger
        MISSING: Ledger version with no script in the source
        OUT_OF_ORDER: Pending script older than the newest applied version
    """

    MODIFIED = "modified"
    MISSING = "missing"
    OUT_OF_ORDER = "out_of_order"


# Han ideographs (CJK Unified Ideographs, Extension A, Compatibility Ideographs)
HAN_CHARACTERS = "\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff"

VERSIONED_FILENAME_PATTERN = (
    rf"^[Vv]?(?P<version>[0-9]+)__(?P<description>[A-Za-z0-9_{HAN_CHARACTERS}]+)\.(?P<ext>sql)$"
)
NUMERIC_FILENAME_PATTERN = r"^(?P<version>[0-9]+)_(?P<description>.+)\.(?P<ext>sql)$"
VERSION_PREFIX_PATTERN = r"^[Vv]?[0-9]+"
MIGRATION_FILE_SUFFIX = ".sql"

# Script section markers
SECTION_UP_MARKER = "-- +migrate Up"
SECTION_DOWN_MARKER = "-- +migrate Down"
BASELINE_MARKER = "-- +migrate Baseline"
STATEMENT_BEGIN_MARKER = "-- +migrate StatementBegin"
STATEMENT_END_MARKER = "-- +migrate StatementEnd"

# Version zero is always a baseline
BASELINE_VERSION = 0

# Ledger table
DEFAULT_HISTORY_TABLE = "schema_history"
# Versions are stored in a BIGINT column
MAX_VERSION = 2**63 - 1
HISTORY_NAME_MAX_LENGTH = 255
SQL_IDENTIFIER_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*$"

# Checksum display length in tables
CHECKSUM_DISPLAY_LENGTH = 12

# Statement previews in logs and errors
STATEMENT_PREVIEW_LENGTH = 100

# Configuration
CONFIG_ENV_VAR = "SQL_MIGRATOR_CONFIG"
PROJECT_CONFIG_FILENAME = "sql-migrator.toml"
USER_CONFIG_PATH = "~/.config/sql-migrator/config.toml"
CONTINUE_ON_FAILURE_ENV_VAR = "CONTINUE_ON_MIGRATION_FAILURE"

# Logging configuration
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
