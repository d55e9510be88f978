"""Discovery and parsing of migration files."""

import hashlib
import logging
import re
from collections.abc import Iterable, Mapping
from importlib.resources.abc import Traversable
from pathlib import Path

from .constants import (
    BASELINE_VERSION,
    MAX_VERSION,
    MIGRATION_FILE_SUFFIX,
    NUMERIC_FILENAME_PATTERN,
    VERSION_PREFIX_PATTERN,
    VERSIONED_FILENAME_PATTERN,
    Grammar,
)
from .errors import AmbiguousGrammarError, DuplicateVersionError, InvalidNameError, SourceError
from .models import MigrationScript
from .sql import has_executable_statements, parse_sections

logger = logging.getLogger(__name__)

GRAMMAR_PATTERNS: dict[Grammar, re.Pattern[str]] = {
    Grammar.VERSIONED: re.compile(VERSIONED_FILENAME_PATTERN),
    Grammar.NUMERIC: re.compile(NUMERIC_FILENAME_PATTERN),
}

_VERSION_PREFIX = re.compile(VERSION_PREFIX_PATTERN)


def compute_checksum(body: str, normalize_line_endings: bool = False) -> str:
    """
    Calculate the checksum of a script body.

    Trailing whitespace is trimmed so that re-saving a file with an extra
    newline does not register as a modification; everything else is hashed
    byte-for-byte.

    Args:
        body: Raw script text
        normalize_line_endings: Convert CRLF and CR line endings to LF first

    Returns:
        Hex string of the SHA256 digest
    """
    if normalize_line_endings:
        body = body.replace("\r\n", "\n").replace("\r", "\n")
    normalized = body.rstrip()
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


class MigrationSource:
    """Enumerates migration scripts from a directory or an embedded set."""

    def __init__(
        self,
        grammar: Grammar = Grammar.AUTO,
        ignore_unmatched: bool = True,
        normalize_line_endings: bool = False,
    ) -> None:
        """
        Initialize migration source.

        Args:
            grammar: Filename grammar to enforce, or AUTO to infer it
            ignore_unmatched: Skip ``.sql`` files without a version prefix
                instead of rejecting them
            normalize_line_endings: Normalize line endings before checksumming
        """
        self.grammar = grammar
        self.ignore_unmatched = ignore_unmatched
        self.normalize_line_endings = normalize_line_endings

    def load(self, location: Path | str | Traversable) -> list[MigrationScript]:
        """
        Load all migration scripts from a directory.

        Accepts a filesystem path or a ``Traversable`` such as
        ``importlib.resources.files("myapp") / "migrations"`` for scripts
        shipped inside a package.

        Args:
            location: Directory containing migration files

        Returns:
            Scripts in ascending version order

        Raises:
            SourceError: If the directory cannot be read, or a file name is
                invalid, ambiguous or duplicates another version
        """
        directory: Path | Traversable = Path(location) if isinstance(location, str) else location

        if not directory.is_dir():
            raise SourceError(f"Migration directory does not exist: {directory}")

        try:
            entries = {
                entry.name: entry
                for entry in directory.iterdir()
                if entry.is_file() and entry.name.endswith(MIGRATION_FILE_SUFFIX)
            }
        except OSError as e:
            raise SourceError(f"Failed to read migration directory {directory}: {e}") from e

        selected = self._select(entries.keys())

        files: dict[str, str] = {}
        for filename in selected:
            try:
                files[filename] = entries[filename].read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise SourceError(f"Failed to read migration file {filename}: {e}") from e

        scripts = self._parse_all(files)
        logger.info(f"Found {len(scripts)} migration(s) in {directory}")
        return scripts

    def load_mapping(self, files: Mapping[str, str]) -> list[MigrationScript]:
        """
        Load migration scripts from an in-memory mapping.

        Args:
            files: Mapping of filename to script text

        Returns:
            Scripts in ascending version order
        """
        candidates = [name for name in files if name.endswith(MIGRATION_FILE_SUFFIX)]
        selected = self._select(candidates)
        return self._parse_all({name: files[name] for name in selected})

    def resolve_grammar(self, filenames: Iterable[str]) -> Grammar:
        """
        Determine the active grammar for a set of filenames.

        With an explicit grammar, files that only the other grammar accepts
        are rejected. With AUTO, the versioned grammar wins when every
        candidate satisfies it; files that only one grammar accepts on
        each side make the source ambiguous.

        Args:
            filenames: Candidate ``.sql`` filenames

        Returns:
            The grammar to parse with (never AUTO)

        Raises:
            AmbiguousGrammarError: If both grammar families are present
        """
        versioned_only: list[str] = []
        numeric_only: list[str] = []
        for filename in filenames:
            versioned = GRAMMAR_PATTERNS[Grammar.VERSIONED].match(filename) is not None
            numeric = GRAMMAR_PATTERNS[Grammar.NUMERIC].match(filename) is not None
            if versioned and not numeric:
                versioned_only.append(filename)
            elif numeric and not versioned:
                numeric_only.append(filename)

        if self.grammar == Grammar.VERSIONED:
            if numeric_only:
                raise AmbiguousGrammarError([], sorted(numeric_only))
            return Grammar.VERSIONED

        if self.grammar == Grammar.NUMERIC:
            if versioned_only:
                raise AmbiguousGrammarError(sorted(versioned_only), [])
            return Grammar.NUMERIC

        if versioned_only and numeric_only:
            raise AmbiguousGrammarError(sorted(versioned_only), sorted(numeric_only))
        return Grammar.NUMERIC if numeric_only else Grammar.VERSIONED

    def parse(self, filename: str, body: str, grammar: Grammar) -> MigrationScript:
        """
        Parse one migration file.

        Args:
            filename: File name (without directory)
            body: File content
            grammar: Active grammar

        Returns:
            Parsed MigrationScript

        Raises:
            InvalidNameError: If the name does not match the grammar or the
                version does not fit the ledger column
        """
        match = GRAMMAR_PATTERNS[grammar].match(filename)
        if match is None:
            if grammar == Grammar.VERSIONED:
                expected = "V<version>__<description>.sql"
            else:
                expected = "<version>_<description>.sql"
            raise InvalidNameError(filename, f"expected {expected}")

        version_text = match.group("version")
        description = match.group("description").replace("_", " ").strip()
        if not description:
            raise InvalidNameError(filename, "description is empty")

        version = int(version_text)
        if version > MAX_VERSION:
            raise InvalidNameError(filename, f"version is larger than {MAX_VERSION}")

        sections = parse_sections(body)
        is_baseline = (
            version == BASELINE_VERSION or sections.baseline or not has_executable_statements(sections.up)
        )

        return MigrationScript(
            version=version,
            version_text=version_text,
            name=description,
            filename=filename,
            body=body,
            up_sql=sections.up,
            down_sql=sections.down,
            checksum=compute_checksum(body, self.normalize_line_endings),
            is_baseline=is_baseline,
        )

    def _select(self, filenames: Iterable[str]) -> list[str]:
        """Filter candidate filenames down to those that look like migrations."""
        selected = []
        for filename in sorted(filenames):
            if _VERSION_PREFIX.match(filename):
                selected.append(filename)
            elif not self.ignore_unmatched:
                raise InvalidNameError(filename, "missing version prefix")
            else:
                logger.debug(f"Ignoring non-migration file: {filename}")
        return selected

    def _parse_all(self, files: Mapping[str, str]) -> list[MigrationScript]:
        """Parse files under the resolved grammar and enforce version uniqueness."""
        grammar = self.resolve_grammar(files.keys())

        by_version: dict[int, list[MigrationScript]] = {}
        for filename, body in files.items():
            script = self.parse(filename, body, grammar)
            by_version.setdefault(script.version, []).append(script)
            logger.debug(f"Parsed migration {script.label} (checksum: {script.checksum[:8]})")

        for version, scripts in by_version.items():
            if len(scripts) > 1:
                raise DuplicateVersionError(version, sorted(s.filename for s in scripts))

        return sorted((scripts[0] for scripts in by_version.values()), key=lambda s: s.version)
