"""Configuration management for sql-migrator."""

import logging
import os
import re
import shutil
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import (
    CONFIG_ENV_VAR,
    DEFAULT_HISTORY_TABLE,
    PROJECT_CONFIG_FILENAME,
    SQL_IDENTIFIER_PATTERN,
    USER_CONFIG_PATH,
    Grammar,
)
from .history import history_table_name
from .models import RunMode
from .utils import ensure_dir, expand_path

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_TEMPLATE_PATH = Path(__file__).with_name("config.toml")


def _load_default_template() -> dict[str, Any]:
    """Load the packaged default config template."""
    with open(DEFAULT_CONFIG_TEMPLATE_PATH, "rb") as f:
        return tomllib.load(f)


def _merge_config_data(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge config dictionaries recursively."""
    merged = dict(base)
    for key, value in override.items():
        base_value = merged.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            merged[key] = _merge_config_data(base_value, value)
        else:
            merged[key] = value
    return merged


def _copy_default_config(config_path: Path) -> None:
    """Copy packaged template to the user config path."""
    ensure_dir(config_path.parent)
    shutil.copyfile(DEFAULT_CONFIG_TEMPLATE_PATH, config_path)


class DatabaseConfig(BaseModel):
    """Target database configuration."""

    path: Path
    history_table: str = DEFAULT_HISTORY_TABLE
    service: str | None = None

    @field_validator("path", mode="before")
    @classmethod
    def expand_database_path(cls, v: str | Path) -> Path:
        """Expand path strings with ~ and environment variables."""
        if isinstance(v, str):
            return expand_path(v)
        return v

    @field_validator("history_table", mode="before")
    @classmethod
    def default_history_table(cls, v: str | None) -> str:
        """Fall back to the default table name when left empty."""
        return v or DEFAULT_HISTORY_TABLE

    @field_validator("history_table", "service")
    @classmethod
    def validate_identifier(cls, v: str | None) -> str | None:
        """Table and service names are interpolated into SQL, so only plain identifiers are allowed."""
        if not v:
            return None
        if not isinstance(v, str) or not re.match(SQL_IDENTIFIER_PATTERN, v):
            raise ValueError(f"must be a plain SQL identifier, got {v!r}")
        return v


class SourceConfig(BaseModel):
    """Migration file source configuration."""

    directory: Path
    grammar: Grammar = Grammar.AUTO
    ignore_unmatched: bool = True
    normalize_line_endings: bool = False

    @field_validator("directory", mode="before")
    @classmethod
    def expand_directory(cls, v: str | Path) -> Path:
        """Expand path strings with ~ and environment variables."""
        if isinstance(v, str):
            return expand_path(v)
        return v


class RunConfig(BaseModel):
    """Default run options."""

    strict_checksum: bool = False
    strict_missing: bool = False
    atomic_batch: bool = False
    continue_on_failure: bool = False


class Config(BaseModel):
    """Configuration for sql-migrator."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    database: DatabaseConfig
    source: SourceConfig
    run: RunConfig = Field(default_factory=RunConfig)

    @property
    def database_path(self) -> Path:
        """SQLite database file."""
        return self.database.path

    @property
    def migrations_dir(self) -> Path:
        """Directory holding migration files."""
        return self.source.directory

    @property
    def history_table(self) -> str:
        """Ledger table name, including the service suffix if configured."""
        return history_table_name(self.database.history_table, self.database.service)

    def run_mode(self, **overrides: Any) -> RunMode:
        """
        Build run options from the ``[run]`` section.

        Args:
            **overrides: Values replacing the configured ones; ``None`` values
                are ignored so unset command-line flags keep the config value

        Returns:
            RunMode instance
        """
        values = self.run.model_dump()
        values.update({key: value for key, value in overrides.items() if value is not None})
        return RunMode(**values)


def get_config_path() -> Path:
    """
    Get configuration file path.

    Priority:
    1. SQL_MIGRATOR_CONFIG environment variable
    2. sql-migrator.toml in the current directory, if present
    3. Default: ~/.config/sql-migrator/config.toml

    Returns:
        Path to config file
    """
    env_config = os.environ.get(CONFIG_ENV_VAR)
    if env_config:
        return expand_path(env_config)

    project_config = Path.cwd() / PROJECT_CONFIG_FILENAME
    if project_config.exists():
        return project_config

    return expand_path(USER_CONFIG_PATH)


def create_default_config() -> Config:
    """Create default configuration from packaged template."""
    return Config.model_validate(_load_default_template())


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from TOML file using Pydantic validation.

    Values missing from the file fall back to the packaged template.

    Args:
        config_path: Optional custom config path

    Returns:
        Config instance with validated values

    Raises:
        ValueError: If config validation fails
    """
    if config_path is None:
        config_path = get_config_path()

    defaults = _load_default_template()

    if not config_path.exists():
        try:
            _copy_default_config(config_path)
        except (OSError, PermissionError) as e:
            logger.warning(f"Could not copy default config to {config_path}: {e}")

    if config_path.exists():
        with open(config_path, "rb") as f:
            try:
                data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ValueError(f"Invalid TOML in {config_path}: {e}") from e

        merged_values = _merge_config_data(defaults, data)
        return Config.model_validate(merged_values)

    return Config.model_validate(defaults)
