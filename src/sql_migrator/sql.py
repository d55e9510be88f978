"""Migration script text handling: up/down sections and statement splitting."""

from dataclasses import dataclass

from .constants import (
    BASELINE_MARKER,
    SECTION_DOWN_MARKER,
    SECTION_UP_MARKER,
    STATEMENT_BEGIN_MARKER,
    STATEMENT_END_MARKER,
    STATEMENT_PREVIEW_LENGTH,
)


@dataclass(frozen=True)
class ScriptSections:
    """Sections of a migration script body."""

    up: str
    down: str | None = None
    baseline: bool = False


def parse_sections(body: str) -> ScriptSections:
    """
    Split a script body on its ``-- +migrate`` markers.

    Text before any marker belongs to the up section, so a file without
    markers is entirely "up". The down section is kept but never executed.

    Args:
        body: Raw script text

    Returns:
        ScriptSections with stripped up/down text and the baseline flag
    """
    up_lines: list[str] = []
    down_lines: list[str] | None = None
    current = up_lines
    baseline = False

    for line in body.splitlines():
        marker = line.strip()
        if marker == SECTION_UP_MARKER:
            current = up_lines
            continue
        if marker == SECTION_DOWN_MARKER:
            if down_lines is None:
                down_lines = []
            current = down_lines
            continue
        if marker == BASELINE_MARKER:
            baseline = True
            continue
        current.append(line)

    down = "\n".join(down_lines).strip() if down_lines is not None else None
    return ScriptSections(up="\n".join(up_lines).strip(), down=down, baseline=baseline)


def split_statements(sql: str) -> list[str]:
    """
    Split SQL text into individual statements.

    Semicolons inside quoted strings and comments do not terminate a
    statement. Text between ``-- +migrate StatementBegin`` and
    ``-- +migrate StatementEnd`` lines is kept as one statement, which is how
    trigger and function bodies containing semicolons are written.
    Fragments holding only comments or whitespace are dropped.

    Args:
        sql: SQL text (usually the up section of a script)

    Returns:
        List of statements without their terminating semicolons
    """
    statements: list[str] = []
    buffer: list[str] = []
    has_code = False
    quote: str | None = None
    in_block_comment = False
    block_lines: list[str] | None = None

    def flush() -> None:
        nonlocal has_code
        text = "".join(buffer).strip()
        if has_code and text:
            statements.append(text)
        buffer.clear()
        has_code = False

    for line in sql.splitlines(keepends=True):
        marker = line.strip()

        if block_lines is not None:
            if marker == STATEMENT_END_MARKER:
                block = "".join(block_lines).strip()
                if block:
                    statements.append(block)
                block_lines = None
            else:
                block_lines.append(line)
            continue

        if marker == STATEMENT_BEGIN_MARKER and quote is None and not in_block_comment:
            flush()
            block_lines = []
            continue

        i = 0
        while i < len(line):
            ch = line[i]
            nxt = line[i + 1] if i + 1 < len(line) else ""

            if in_block_comment:
                if ch == "*" and nxt == "/":
                    buffer.append("*/")
                    in_block_comment = False
                    i += 2
                    continue
                buffer.append(ch)
                i += 1
                continue

            if quote is not None:
                buffer.append(ch)
                if ch == "\\" and nxt:
                    buffer.append(nxt)
                    i += 2
                    continue
                if ch == quote:
                    if nxt == quote:
                        # Doubled quote is an escaped quote
                        buffer.append(nxt)
                        i += 2
                        continue
                    quote = None
                i += 1
                continue

            if ch == "-" and nxt == "-":
                buffer.append(line[i:])
                break
            if ch == "/" and nxt == "*":
                buffer.append("/*")
                in_block_comment = True
                i += 2
                continue
            if ch in ("'", '"', "`"):
                quote = ch
                has_code = True
                buffer.append(ch)
                i += 1
                continue
            if ch == ";":
                flush()
                i += 1
                continue

            if not ch.isspace():
                has_code = True
            buffer.append(ch)
            i += 1

    # Unterminated StatementBegin block runs to the end of the text
    if block_lines:
        block = "".join(block_lines).strip()
        if block:
            statements.append(block)

    flush()
    return statements


def has_executable_statements(sql: str) -> bool:
    """Return True if the SQL text contains at least one statement."""
    return bool(split_statements(sql))


def preview_statement(statement: str, length: int = STATEMENT_PREVIEW_LENGTH) -> str:
    """Collapse whitespace and shorten a statement for logs and errors."""
    collapsed = " ".join(statement.split())
    if len(collapsed) > length:
        return f"{collapsed[:length]}..."
    return collapsed
