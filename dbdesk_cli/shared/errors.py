"""Classification and enrichment of raw driver error messages.

Driver exceptions arrive as free text ("near \"SELEC\": syntax error",
"UNIQUE constraint failed: users.email", ...). ``enhance_error`` maps a message
to an :class:`ErrorCode` by the first matching pattern and attaches
suggestions, troubleshooting steps and a documentation pointer so every
failure that leaves the core carries both a code and a readable explanation.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable

from .exceptions import DatabaseError, ErrorCode

DOCUMENTATION_URLS: dict[ErrorCode, str] = {
    ErrorCode.SQL_SYNTAX_ERROR: "https://www.sqlite.org/lang.html",
    ErrorCode.SQL_CONSTRAINT_ERROR: "https://www.sqlite.org/lang_createtable.html#constraints",
    ErrorCode.CONNECTION_ERROR: "https://www.sqlite.org/c3ref/open.html",
    ErrorCode.ENCRYPTION_ERROR: "https://www.zetetic.net/sqlcipher/sqlcipher-api/",
    ErrorCode.PERMISSION_ERROR: "https://www.sqlite.org/c3ref/open.html",
    ErrorCode.FILE_NOT_FOUND: "https://www.sqlite.org/c3ref/open.html",
    ErrorCode.EMPTY_DATABASE: "https://www.sqlite.org/fileformat.html",
    ErrorCode.CONNECTION_NOT_FOUND: "https://www.sqlite.org/c3ref/open.html",
    ErrorCode.UNKNOWN_ERROR: "https://www.sqlite.org/rescode.html",
}

TROUBLESHOOTING_STEPS: dict[ErrorCode, tuple[str, ...]] = {
    ErrorCode.FILE_NOT_FOUND: (
        "Verify the database file path is correct",
        "Check if the file was moved or renamed",
        "Ensure the file extension is correct (.db, .sqlite, .sqlite3)",
    ),
    ErrorCode.PERMISSION_ERROR: (
        "Check file permissions (read/write access)",
        "Ensure the parent directory is writable",
        "Check if the file is locked by another application",
        "Try opening in read-only mode if write access is not needed",
    ),
    ErrorCode.ENCRYPTION_ERROR: (
        "Verify the encryption password is correct",
        "Try different cipher configurations (SQLCipher 3 vs 4)",
        "Check if the database was created with a different encryption tool",
        "Verify the file is actually an encrypted SQLite database",
    ),
    ErrorCode.CONNECTION_ERROR: (
        "Close other applications that might be using the database",
        "Check if the disk has sufficient free space",
        "Verify the database file is not corrupted",
    ),
    ErrorCode.EMPTY_DATABASE: (
        "The file is zero bytes long and contains no database",
        "Check whether the file was truncated during a copy or download",
    ),
}

DEFAULT_CONNECTION_STEPS = (
    "Verify the database file path is correct",
    "Check file permissions and accessibility",
    "Ensure no other process is locking the file",
)

DEFAULT_SUGGESTIONS = (
    "Review the SQL syntax carefully",
    "Check the SQLite documentation for correct usage",
    "Verify all table and column names are correct",
)

_PASSWORD_PATTERNS = (
    re.compile(r"file is not a database", re.IGNORECASE),
    re.compile(r"encrypted", re.IGNORECASE),
)


@dataclass(frozen=True, slots=True)
class ErrorPosition:
    line: int
    column: int


@dataclass(frozen=True, slots=True)
class _Pattern:
    regex: re.Pattern[str]
    code: ErrorCode
    suggest: Callable[[re.Match[str]], tuple[str, ...]]


def _p(pattern: str, code: ErrorCode, suggest: Callable[[re.Match[str]], tuple[str, ...]]) -> _Pattern:
    return _Pattern(re.compile(pattern, re.IGNORECASE), code, suggest)


_PATTERNS: tuple[_Pattern, ...] = (
    _p(
        r'near "([^"]+)": syntax error',
        ErrorCode.SQL_SYNTAX_ERROR,
        lambda m: (
            f'Check the syntax near "{m.group(1)}"',
            "Verify all keywords are spelled correctly",
            "Ensure proper use of quotes and parentheses",
        ),
    ),
    _p(
        r"incomplete input",
        ErrorCode.SQL_SYNTAX_ERROR,
        lambda m: (
            "Check for missing closing parentheses or quotes",
            "Verify all clauses are complete",
        ),
    ),
    _p(
        r'unrecognized token: "([^"]+)"',
        ErrorCode.SQL_SYNTAX_ERROR,
        lambda m: (
            f'Remove or fix the unrecognized token "{m.group(1)}"',
            "Verify string literals use single quotes, not double quotes",
        ),
    ),
    _p(
        r"no such table: (\S+)",
        ErrorCode.SQL_SYNTAX_ERROR,
        lambda m: (
            f'Verify the table "{m.group(1)}" exists',
            "Check for typos in the table name",
            "Ensure you are connected to the correct database",
        ),
    ),
    _p(
        r"(?:no such column|has no column named):? (\S+)",
        ErrorCode.SQL_SYNTAX_ERROR,
        lambda m: (
            f'Verify the column "{m.group(1)}" exists in the table',
            "Check for typos in the column name",
        ),
    ),
    _p(
        r"ambiguous column name: (\S+)",
        ErrorCode.SQL_SYNTAX_ERROR,
        lambda m: (
            f'Prefix "{m.group(1)}" with the table name (e.g., table.{m.group(1)})',
            "Use table aliases to disambiguate columns",
        ),
    ),
    _p(
        r"UNIQUE constraint failed: (\S+)",
        ErrorCode.SQL_CONSTRAINT_ERROR,
        lambda m: (
            f'A row with this value already exists for "{m.group(1)}"',
            "Use INSERT OR REPLACE to update existing rows",
        ),
    ),
    _p(
        r"NOT NULL constraint failed: (\S+)",
        ErrorCode.SQL_CONSTRAINT_ERROR,
        lambda m: (
            f'Provide a value for the required column "{m.group(1)}"',
            "Check if a default value should be set for this column",
        ),
    ),
    _p(
        r"FOREIGN KEY constraint failed",
        ErrorCode.SQL_CONSTRAINT_ERROR,
        lambda m: (
            "Ensure the referenced record exists in the parent table",
            "Check that foreign key values match parent primary key values",
        ),
    ),
    _p(
        r"CHECK constraint failed: (\S+)",
        ErrorCode.SQL_CONSTRAINT_ERROR,
        lambda m: (
            f'The value violates the CHECK constraint "{m.group(1)}"',
            "Review the constraint definition in the table schema",
        ),
    ),
    _p(
        r"PRIMARY KEY constraint failed|duplicate key value violates",
        ErrorCode.SQL_CONSTRAINT_ERROR,
        lambda m: (
            "The key value already exists",
            "Use a unique value for the primary key column",
        ),
    ),
    _p(
        r"violates (?:not-null|foreign key|check) constraint",
        ErrorCode.SQL_CONSTRAINT_ERROR,
        lambda m: ("Review the constraint definition in the table schema",),
    ),
    _p(
        r"unable to open database file",
        ErrorCode.FILE_NOT_FOUND,
        lambda m: (
            "Verify the file path is correct",
            "Ensure the directory exists and is accessible",
        ),
    ),
    _p(
        r"permission denied|attempt to write a readonly database|readonly database|read-only mode",
        ErrorCode.PERMISSION_ERROR,
        lambda m: (
            "Check file permissions for the database file",
            "Reopen the database without read-only mode to apply changes",
        ),
    ),
    _p(
        r"file is not a database|encrypted",
        ErrorCode.ENCRYPTION_ERROR,
        lambda m: (
            "The database may be encrypted - provide a password",
            "Verify the encryption key is correct",
        ),
    ),
    _p(
        r"database is locked",
        ErrorCode.CONNECTION_ERROR,
        lambda m: (
            "Another process may be using the database",
            "Wait a moment and try again",
        ),
    ),
    _p(
        r"disk I/O error",
        ErrorCode.CONNECTION_ERROR,
        lambda m: ("Check if the disk has sufficient free space",),
    ),
    _p(
        r"database disk image is malformed",
        ErrorCode.CONNECTION_ERROR,
        lambda m: (
            "The database file may be corrupted",
            "Try running PRAGMA integrity_check",
        ),
    ),
    _p(
        r"connection refused|could not connect|could not translate host name",
        ErrorCode.CONNECTION_ERROR,
        lambda m: (
            "Verify the server is running and accessible",
            "Check that the host and port are correct",
        ),
    ),
    _p(
        r"table (\S+) already exists",
        ErrorCode.SQL_SYNTAX_ERROR,
        lambda m: (
            f'Table "{m.group(1)}" already exists',
            "Use CREATE TABLE IF NOT EXISTS to avoid this error",
        ),
    ),
    _p(
        r"misuse of aggregate:? ?(\S+)?",
        ErrorCode.SQL_SYNTAX_ERROR,
        lambda m: (
            f'Aggregate function "{m.group(1) or "aggregate"}" used incorrectly',
            "Add a GROUP BY clause when using aggregate functions with other columns",
        ),
    ),
)


@dataclass(frozen=True, slots=True)
class EnhancedError:
    """Driver message enriched with a code and remediation hints."""

    error: str
    code: ErrorCode
    suggestions: tuple[str, ...] = ()
    documentation_url: str | None = None
    troubleshooting_steps: tuple[str, ...] = ()
    position: ErrorPosition | None = None

    def to_exception(self, exc_type: type[DatabaseError] = DatabaseError, **kwargs: Any) -> DatabaseError:
        return exc_type(
            self.error,
            code=self.code,
            suggestions=self.suggestions,
            troubleshooting_steps=self.troubleshooting_steps,
            documentation_url=self.documentation_url,
            **kwargs,
        )


def error_code_for(message: str) -> ErrorCode:
    """Return the error code of the first pattern matching ``message``."""
    for pattern in _PATTERNS:
        if pattern.regex.search(message):
            return pattern.code
    return ErrorCode.UNKNOWN_ERROR


def suggestions_for(message: str) -> tuple[str, ...]:
    for pattern in _PATTERNS:
        match = pattern.regex.search(message)
        if match:
            return pattern.suggest(match)
    return DEFAULT_SUGGESTIONS


def documentation_url(code: ErrorCode) -> str:
    return DOCUMENTATION_URLS.get(code, DOCUMENTATION_URLS[ErrorCode.UNKNOWN_ERROR])


def offset_to_position(query: str, offset: int) -> ErrorPosition:
    """Convert a character offset into a 1-based line/column pair."""
    line = 1
    column = 1
    for char in query[: max(0, offset)]:
        if char == "\n":
            line += 1
            column = 1
        else:
            column += 1
    return ErrorPosition(line=line, column=column)


def parse_error_position(message: str, query: str | None = None) -> ErrorPosition | None:
    offset_match = re.search(r"at (?:position|offset) (\d+)", message, re.IGNORECASE)
    if offset_match and query:
        return offset_to_position(query, int(offset_match.group(1)))

    line_match = re.search(r"(?:near )?line\s*(\d+)[\s,]+column\s*(\d+)", message, re.IGNORECASE)
    if line_match:
        return ErrorPosition(line=int(line_match.group(1)), column=int(line_match.group(2)))

    near_match = re.search(r'near "([^"]+)"', message, re.IGNORECASE)
    if near_match and query:
        index = query.upper().find(near_match.group(1).upper())
        if index != -1:
            return offset_to_position(query, index)
    return None


def enhance_error(message: str, query: str | None = None) -> EnhancedError:
    """Classify ``message`` and attach suggestions and documentation."""
    code = error_code_for(message)
    return EnhancedError(
        error=message,
        code=code,
        suggestions=suggestions_for(message),
        documentation_url=documentation_url(code),
        troubleshooting_steps=TROUBLESHOOTING_STEPS.get(code, ()),
        position=parse_error_position(message, query),
    )


def enhance_connection_error(message: str) -> EnhancedError:
    """Like :func:`enhance_error` but always provides troubleshooting steps."""
    enhanced = enhance_error(message)
    if enhanced.troubleshooting_steps:
        return enhanced
    return EnhancedError(
        error=enhanced.error,
        code=enhanced.code,
        suggestions=enhanced.suggestions,
        documentation_url=enhanced.documentation_url,
        troubleshooting_steps=DEFAULT_CONNECTION_STEPS,
        position=enhanced.position,
    )


def needs_password(message: str) -> bool:
    """Return True when a driver message signals an encryption mismatch."""
    return any(pattern.search(message) for pattern in _PASSWORD_PATTERNS)

