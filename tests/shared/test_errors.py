from __future__ import annotations

import pytest

from dbdesk_cli.shared.errors import (
    DEFAULT_CONNECTION_STEPS,
    DEFAULT_SUGGESTIONS,
    ErrorPosition,
    enhance_connection_error,
    enhance_error,
    needs_password,
    offset_to_position,
    parse_error_position,
)
from dbdesk_cli.shared.exceptions import ChangeApplyError, ErrorCode


@pytest.mark.parametrize(
    "message, code",
    [
        ('near "SELEC": syntax error', ErrorCode.SQL_SYNTAX_ERROR),
        ("no such table: missing", ErrorCode.SQL_SYNTAX_ERROR),
        ("table users has no column named nickname", ErrorCode.SQL_SYNTAX_ERROR),
        ("UNIQUE constraint failed: users.email", ErrorCode.SQL_CONSTRAINT_ERROR),
        ("NOT NULL constraint failed: users.email", ErrorCode.SQL_CONSTRAINT_ERROR),
        ("FOREIGN KEY constraint failed", ErrorCode.SQL_CONSTRAINT_ERROR),
        ('duplicate key value violates unique constraint "users_pkey"', ErrorCode.SQL_CONSTRAINT_ERROR),
        ("unable to open database file", ErrorCode.FILE_NOT_FOUND),
        ("attempt to write a readonly database", ErrorCode.PERMISSION_ERROR),
        ("file is not a database", ErrorCode.ENCRYPTION_ERROR),
        ("database is locked", ErrorCode.CONNECTION_ERROR),
        ("something nobody anticipated", ErrorCode.UNKNOWN_ERROR),
    ],
)
def test_enhance_error_classifies_messages(message: str, code: ErrorCode) -> None:
    enhanced = enhance_error(message)
    assert enhanced.code is code
    assert enhanced.error == message
    assert enhanced.suggestions
    assert enhanced.documentation_url


def test_enhance_error_suggestions_mention_captured_names() -> None:
    enhanced = enhance_error("no such table: invoices")
    assert any("invoices" in suggestion for suggestion in enhanced.suggestions)


def test_unknown_errors_get_default_suggestions() -> None:
    assert enhance_error("odd failure").suggestions == DEFAULT_SUGGESTIONS


def test_enhance_error_locates_near_token() -> None:
    query = "SELECT id\nFRM users"
    enhanced = enhance_error('near "FRM": syntax error', query)
    assert enhanced.position == ErrorPosition(line=2, column=1)


def test_parse_error_position_from_line_and_column() -> None:
    assert parse_error_position("error at line 3, column 7") == ErrorPosition(line=3, column=7)
    assert parse_error_position("no position here") is None


def test_offset_to_position_counts_newlines() -> None:
    assert offset_to_position("ab\ncd", 4) == ErrorPosition(line=2, column=2)


def test_connection_errors_always_have_troubleshooting_steps() -> None:
    enhanced = enhance_connection_error("some driver refused the open")
    assert enhanced.troubleshooting_steps == DEFAULT_CONNECTION_STEPS

    encrypted = enhance_connection_error("file is not a database")
    assert encrypted.code is ErrorCode.ENCRYPTION_ERROR
    assert "Verify the encryption password is correct" in encrypted.troubleshooting_steps


def test_to_exception_carries_code_and_extra_fields() -> None:
    exc = enhance_error("UNIQUE constraint failed: users.email").to_exception(
        ChangeApplyError, change_id="c-1"
    )
    assert isinstance(exc, ChangeApplyError)
    assert exc.code is ErrorCode.SQL_CONSTRAINT_ERROR
    assert exc.change_id == "c-1"
    assert exc.documentation_url


@pytest.mark.parametrize(
    "message, expected",
    [
        ("file is not a database", True),
        ("file is encrypted or is not a database", True),
        ("no such table: users", False),
    ],
)
def test_needs_password(message: str, expected: bool) -> None:
    assert needs_password(message) is expected
