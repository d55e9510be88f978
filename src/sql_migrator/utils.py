"""Utility functions for sql-migrator."""

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar, cast

from rich.console import Console
from rich.prompt import Confirm

from .constants import LOG_DATE_FORMAT, LOG_FORMAT

logger = logging.getLogger(__name__)

T = TypeVar("T")


def ensure_dir(path: Path) -> Path:
    """
    Create directory if it doesn't exist.

    Args:
        path: Directory path to create

    Returns:
        The created/existing directory path
    """
    path.mkdir(parents=True, exist_ok=True)
    return path


def expand_path(path: str) -> Path:
    """
    Expand ~ and environment variables in path.

    Args:
        path: Path string to expand

    Returns:
        Expanded Path object
    """
    return Path(os.path.expanduser(os.path.expandvars(path))).resolve()


def prompt_confirm(message: str, default: bool = False) -> bool:
    """
    Prompt user for confirmation.

    Args:
        message: Confirmation message
        default: Default value if user just presses Enter

    Returns:
        True if confirmed, False otherwise
    """
    return Confirm.ask(message, default=default)


def configure_logging(verbose: bool) -> None:
    """Configure root logging for command-line use."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        force=True,
    )


class ErrorContext:
    """Context for error handling with actionable guidance."""

    def __init__(self, error_prefix: str, suggestions: dict[type[Exception], str] | None = None):
        """
        Initialize error context.

        Args:
            error_prefix: Prefix for error messages
            suggestions: Mapping of exception types to actionable suggestions
        """
        self.error_prefix = error_prefix
        self.suggestions = suggestions or {}

    def suggestion_for(self, error: Exception) -> str | None:
        """Return the most specific suggestion registered for an error."""
        for error_type in type(error).__mro__:
            if error_type in self.suggestions:
                return self.suggestions[error_type]
        return None


def handle_operation(
    console: Console,
    operation: Callable[[], T],
    context: ErrorContext,
    error_types: tuple[type[Exception], ...] | None = None,
    reraise: bool = True,
) -> T | None:
    """
    Execute an operation with error reporting and actionable guidance.

    Args:
        console: Rich console for output
        operation: Callable that performs the operation
        context: Error context with prefix and suggestions
        error_types: Tuple of exception types to catch (None = catch all)
        reraise: Whether to re-raise the exception after reporting

    Returns:
        Result from the operation callable, or None if error and not reraising

    Raises:
        Exception: Re-raises caught exceptions if reraise=True

    Examples:
        context = ErrorContext(
            "Loading migrations",
            suggestions={InvalidNameError: "Rename the file to V<version>__<description>.sql"},
        )
        scripts = handle_operation(console, lambda: source.load(path), context)
    """
    try:
        return operation()
    except Exception as e:
        if error_types and not isinstance(e, error_types):
            raise

        console.print(f"[red]Error:[/red] {context.error_prefix}: {e}")

        suggestion = context.suggestion_for(e)
        if suggestion:
            console.print(f"[cyan]Suggestion:[/cyan] {suggestion}")
        elif isinstance(e, (PermissionError, OSError)):
            console.print("[cyan]Suggestion:[/cyan] Check file permissions and disk space")
        elif isinstance(e, (ConnectionError, TimeoutError)):
            console.print("[cyan]Suggestion:[/cyan] Check that the database server is reachable")

        logger.debug(f"{context.error_prefix} failed", exc_info=True)

        if reraise:
            raise
        return None


def run_guarded(console: Console, operation: Callable[[], T], context: ErrorContext) -> T:
    """
    Execute an engine operation, reporting migrator errors before re-raising.

    Args:
        console: Rich console for error output
        operation: Callable that performs the operation
        context: Error context with prefix and suggestions

    Returns:
        Result from the operation callable

    Raises:
        MigratorError: Re-raised from operation failures
    """
    from .errors import MigratorError

    # handle_operation returns T | None, but with reraise=True it always returns T or raises
    result = handle_operation(console, operation, context, error_types=(MigratorError,))
    return cast(T, result)
